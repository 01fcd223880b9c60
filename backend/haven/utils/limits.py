"""
Handcrafted Haven Backend — Column Length Checks
================================================

What:  Rejects text that would not fit its VARCHAR column.
Why:   PostgreSQL refuses overlong values at flush time with a DataError,
       which would surface as a 500; SQLite never complains at all.
How:   The limit is read from the mapped column itself, so models stay
       the single place where lengths are declared.

Usage:
    check_length(Product.title, title, "Product title")
    → ValidationError("Product title is too long (maximum 200 characters)")
"""

from typing import Optional

from haven.exceptions import ValidationError


def column_length(column) -> Optional[int]:
    """Declared length of a mapped String column, or None for Text."""
    return getattr(column.type, "length", None)


def check_length(column, value: Optional[str], label: str, field: Optional[str] = None) -> None:
    limit = column_length(column)
    if value is None or limit is None or len(value) <= limit:
        return
    raise ValidationError(
        message=f"{label} is too long (maximum {limit} characters)",
        field=field or column.key,
        context={"length": len(value), "max_length": limit},
    )
