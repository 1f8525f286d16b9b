"""Sponsorship price table and order totals."""

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_CURRENCY = "USD"
DEFAULT_PACKAGE = "single"
LEGACY_PACKAGE = "legacy"

# Per-book price by currency, then package.
PRICE_TABLE: dict[str, dict[str, Decimal]] = {
    "USD": {"single": Decimal("350"), "series": Decimal("1750"), "legacy": Decimal("2750")},
    "GBP": {"single": Decimal("275"), "series": Decimal("1390"), "legacy": Decimal("2190")},
    "ZAR": {"single": Decimal("6400"), "series": Decimal("31000"), "legacy": Decimal("49000")},
}

_CENTS = Decimal("0.01")


def round2(amount: Decimal | int | float | str) -> Decimal:
    return Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def unit_price(package: str | None, currency: str | None) -> Decimal:
    prices = PRICE_TABLE.get((currency or "").strip().upper(), PRICE_TABLE[DEFAULT_CURRENCY])
    return prices.get((package or DEFAULT_PACKAGE).strip().lower(), prices[DEFAULT_PACKAGE])


def order_quantity(package: str | None, quantity: int) -> int:
    if (package or "").strip().lower() == LEGACY_PACKAGE:
        return 1
    return quantity


def order_total(package: str | None, currency: str | None, quantity: int) -> Decimal:
    """round2(quantity * unit price); legacy is always a single unit."""
    qty = order_quantity(package, quantity)
    return round2(qty * unit_price(package, currency))


def format_amount(amount: Decimal) -> str:
    return f"{round2(amount):.2f}"
