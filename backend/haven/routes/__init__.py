# Routes package init
"""
Handcrafted Haven Backend — API Routes Package
==============================================

What:  HTTP route handlers for the storefront and the artisan dashboard.

Route Inventory:
    - auth.py:      /api/auth/*             (sign up/in/out, me, password reset)
    - profiles.py:  /api/profiles/*         (own profile, shop, avatar, public view)
    - sellers.py:   /api/sellers            (directory, contact an artisan)
    - products.py:  /api/products/*         (catalogue, listings, images)
                    /api/artisans/{id}/products
    - reviews.py:   /api/products/{id}/reviews/*, /api/reviews/{id}
    - messages.py:  /api/messages/*         (seller inbox)
    - files.py:     /api/files/{path}       (stored images)
    - health.py:    /health

Routes stay THIN: pull values out of the request, call a service, set
headers. Business rules live in services.
"""
