"""
Handcrafted Haven Backend — Pydantic Schemas
============================================

Request bodies and response models, one module per resource. Kept apart
from the ORM models so the API contract can carry computed and legacy
fields without touching the tables.
"""
