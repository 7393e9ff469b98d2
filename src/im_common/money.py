"""Integer arithmetic utilities for order amounts.

All payment amounts are int (cents). No float, no Decimal.
"""

_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "INR": "₹"}


def cents_to_display(cents: int, currency: str = "USD") -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'.

    Currencies without a known symbol are suffixed: 6500, 'AED' -> '65.00 AED'.
    """
    sign = "-" if cents < 0 else ""
    abs_cents = abs(cents)
    amount = f"{abs_cents // 100:,}.{abs_cents % 100:02d}"
    symbol = _SYMBOLS.get(currency.upper())
    if symbol is None:
        return f"{sign}{amount} {currency.upper()}"
    return f"{sign}{symbol}{amount}"
