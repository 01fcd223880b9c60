"""
Price display helpers.

Formats amounts the way the storefront shows them (en-US conventions:
symbol first, thousands separators, two decimals by default).
"""

import math
from decimal import ROUND_HALF_UP, Decimal

# Symbols as rendered for an en-US audience; unknown codes fall back to "XYZ 1.00"
CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "MXN": "MX$",
}


def format_price(price: float, currency: str = "USD", show_decimals: bool = True) -> str:
    """
    Format a numeric price as a currency string.

    >>> format_price(89)
    '$89.00'
    >>> format_price(75.5, currency="EUR")
    '€75.50'
    >>> format_price(89, show_decimals=False)
    '$89'
    """
    code = currency.upper()
    places = Decimal("0.01") if show_decimals else Decimal("1")
    amount = Decimal(str(price)).quantize(places, rounding=ROUND_HALF_UP)

    sign = "-" if amount < 0 else ""
    digits = f"{abs(amount):,.2f}" if show_decimals else f"{abs(amount):,.0f}"

    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {digits}"
    return f"{sign}{symbol}{digits}"


def calculate_discount_percentage(original_price: float, current_price: float) -> int:
    """Whole-number percent saved; 0 when there is no discount."""
    if original_price <= current_price:
        return 0
    discount = (original_price - current_price) / original_price * 100
    # Half rounds up (12.5 → 13), matching how the storefront badges read
    return int(math.floor(discount + 0.5))
