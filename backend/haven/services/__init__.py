# Services package init
"""
Handcrafted Haven Backend — Services Layer
==========================================

What:  Business rules sitting between routes (HTTP) and the database.
How:   Each service is a stateless class with a module-level singleton;
       methods take the AsyncSession they should use and raise
       haven.exceptions errors that the global handlers turn into JSON.

Service Inventory:
    - AuthService:    sign up/in/out, bearer sessions, password reset
    - ProfileService: profile edits, artisan upgrade, shop info, avatars,
                      seller directory, verification, account deletion
    - ProductService: catalogue filters and stats, artisan listings
    - ReviewService:  reviews and the per-product rating aggregate
    - ContactService: messages to artisans and the seller inbox
    - FileService:    image validation, storage, serving and cleanup

Helpers:
    - error_messages: raw backend error text → sentence for the storefront
    - security:       Argon2 hashing and opaque token strings
"""
