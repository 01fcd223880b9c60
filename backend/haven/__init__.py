"""
Handcrafted Haven Backend — Application Package Initializer
===========================================================

What: Marks the `haven` directory as a Python package.
Why:  Enables module imports like `from haven.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The marketplace backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Validation, ownership, field mapping
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database & File Storage (I/O)     │  ← Async sessions, image files
    └─────────────────────────────────────┘

    Artisans (sellers) list products, buyers browse, review and contact
    sellers. Authentication, relational storage and image storage are all
    served by this package.
"""

__version__ = "1.0.0"
