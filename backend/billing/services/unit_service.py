# Overview: Service-layer unit conversion and unit price derivation; pure arithmetic, no database work.

"""
Unit Price Deriver

Every caller that turns a (unit, quantity) pair into a price or into base
units goes through this module: product registration, the price calculator,
sale reduction, restock and stock availability checks.

CONVERSION RULES:
- base unit:       1 : 1
- secondary unit:  conversion_rate secondary units per base unit
- gram of a kg product, ml of a liter product: 1000 : 1
- anything else:   UnsupportedUnitError

TRACKED UNIT:
- Stock is counted in the smallest tracked unit: the secondary unit when
  the product has one, otherwise the base unit. One base unit is
  conversion_rate tracked units; a piece of a 12-piece box counts as 1.

PRICING:
- unit_prices holds an entry for each of the nine recognized units. The base
  unit's entry is base_price; gram (kg products) and ml (liter products) are
  base_price / 1000; all others are 0.
- Monetary results are rounded half-up to 2 decimal places. The stored unit
  table is not rounded, so 500 gram of a 5.00/kg product prices at 2.50.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..validation import RECOGNIZED_UNITS, parse_decimal


CENTS = Decimal("0.01")
THOUSAND = Decimal("1000")

# base unit -> (sub unit, sub units per base unit)
FIXED_SUB_UNITS = {
    "kg": ("gram", THOUSAND),
    "liter": ("ml", THOUSAND),
}


class UnsupportedUnitError(ValueError):
    """No conversion path between the requested unit and the product's base unit."""

    def __init__(self, unit: str, base_unit: str):
        super().__init__(f"Invalid unit conversion: {unit} -> {base_unit}")
        self.unit = unit
        self.base_unit = base_unit


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _rate(product) -> Decimal:
    rate = product.conversion_rate
    if rate is None or Decimal(rate) <= 0:
        return Decimal("1")
    return Decimal(rate)


def derive_unit_prices(base_unit: str, base_price) -> dict[str, Decimal]:
    base_price = Decimal(base_price or 0)
    prices = {unit: Decimal("0") for unit in RECOGNIZED_UNITS}
    if base_unit in prices:
        prices[base_unit] = base_price
    if base_unit in FIXED_SUB_UNITS:
        sub_unit, factor = FIXED_SUB_UNITS[base_unit]
        prices[sub_unit] = base_price / factor
    return prices


def derive_secondary_price(base_price, secondary_unit: str | None, conversion_rate) -> Decimal | None:
    if not secondary_unit:
        return None
    rate = Decimal(conversion_rate or 1)
    if rate <= 0:
        rate = Decimal("1")
    return Decimal(base_price or 0) / rate


def serialize_unit_prices(prices: dict[str, Decimal]) -> dict[str, str]:
    # JSON column: decimals travel as strings to keep full precision
    return {unit: format(price.normalize(), "f") if price else "0" for unit, price in prices.items()}


def apply_pricing(product) -> None:
    """Recompute base_price fallback, unit table and secondary price on a product in place."""
    if product.base_price is None:
        product.base_price = product.mrp or Decimal("0")
    product.unit_prices = serialize_unit_prices(
        derive_unit_prices(product.base_unit, product.base_price)
    )
    product.secondary_price = derive_secondary_price(
        product.base_price, product.secondary_unit, product.conversion_rate
    )


def price_for(product, unit: str, quantity) -> Decimal:
    """
    Price `quantity` of `unit` for a product.

    Lookup order: base unit, secondary unit, non-zero unit table entry,
    gram/ml fallback. Raises UnsupportedUnitError when nothing matches.
    """
    quantity = parse_decimal(quantity, "quantity", positive=True)
    base_price = Decimal(product.base_price or 0)

    if unit == product.base_unit:
        return round_money(base_price * quantity)

    if product.secondary_unit and unit == product.secondary_unit:
        secondary_price = product.secondary_price
        if secondary_price is None:
            secondary_price = derive_secondary_price(base_price, product.secondary_unit, product.conversion_rate)
        return round_money(Decimal(secondary_price) * quantity)

    table_price = Decimal((product.unit_prices or {}).get(unit, "0") or "0")
    if table_price:
        return round_money(table_price * quantity)

    sub = FIXED_SUB_UNITS.get(product.base_unit)
    if sub and unit == sub[0]:
        return round_money(base_price / sub[1] * quantity)

    raise UnsupportedUnitError(unit, product.base_unit)


def to_base_units(product, unit: str | None, quantity) -> Decimal:
    """Convert a quantity expressed in `unit` into the product's base unit."""
    quantity = Decimal(quantity)
    if not unit or unit == product.base_unit:
        return quantity
    if product.secondary_unit and unit == product.secondary_unit:
        return quantity / _rate(product)
    sub = FIXED_SUB_UNITS.get(product.base_unit)
    if sub and unit == sub[0]:
        return quantity / sub[1]
    raise UnsupportedUnitError(unit, product.base_unit)


def from_base_units(product, unit: str | None, quantity) -> Decimal:
    """Inverse of to_base_units: express a base-unit quantity in `unit`."""
    quantity = Decimal(quantity)
    if not unit or unit == product.base_unit:
        return quantity
    if product.secondary_unit and unit == product.secondary_unit:
        return quantity * _rate(product)
    sub = FIXED_SUB_UNITS.get(product.base_unit)
    if sub and unit == sub[0]:
        return quantity * sub[1]
    raise UnsupportedUnitError(unit, product.base_unit)


def tracked_unit(product) -> str:
    return product.secondary_unit or product.base_unit


def to_tracked_units(product, unit: str | None, quantity) -> Decimal:
    """Convert a quantity expressed in `unit` into the product's tracked unit."""
    quantity = Decimal(quantity)
    if product.secondary_unit and unit == product.secondary_unit:
        return quantity
    return to_base_units(product, unit, quantity) * _rate(product)


def from_tracked_units(product, unit: str | None, units) -> Decimal:
    units = Decimal(units)
    if product.secondary_unit and unit == product.secondary_unit:
        return units
    return from_base_units(product, unit, units / _rate(product))
