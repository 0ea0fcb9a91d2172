"""
Unit conversion and pricing tests.

Pure arithmetic: products are plain namespaces, no database involved.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from billing.services.unit_service import (
    UnsupportedUnitError,
    apply_pricing,
    derive_secondary_price,
    derive_unit_prices,
    from_base_units,
    from_tracked_units,
    price_for,
    round_money,
    serialize_unit_prices,
    to_base_units,
    to_tracked_units,
    tracked_unit,
)
from billing.validation import RECOGNIZED_UNITS, ValidationError


def make_product(**kw):
    defaults = dict(
        mrp=Decimal("100"),
        base_price=None,
        base_unit="kg",
        secondary_unit=None,
        conversion_rate=Decimal("1"),
        secondary_price=None,
        unit_prices=None,
    )
    defaults.update(kw)
    product = SimpleNamespace(**defaults)
    apply_pricing(product)
    return product


# =============================================================================
# UNIT PRICE TABLE
# =============================================================================


class TestUnitPriceTable:

    def test_table_covers_every_recognized_unit(self):
        prices = derive_unit_prices("box", Decimal("50"))
        assert set(prices) == set(RECOGNIZED_UNITS)
        assert prices["box"] == Decimal("50")
        assert all(v == 0 for k, v in prices.items() if k != "box")

    def test_kg_derives_gram(self):
        prices = derive_unit_prices("kg", Decimal("100"))
        assert prices["kg"] == Decimal("100")
        assert prices["gram"] == Decimal("0.1")

    def test_liter_derives_ml(self):
        prices = derive_unit_prices("liter", Decimal("60"))
        assert prices["ml"] == Decimal("0.06")

    def test_serialized_table_has_no_exponents(self):
        table = serialize_unit_prices(derive_unit_prices("kg", Decimal("100")))
        assert table["kg"] == "100"
        assert table["gram"] == "0.1"
        assert table["box"] == "0"

    def test_base_price_falls_back_to_mrp(self):
        product = make_product(mrp=Decimal("75.50"))
        assert product.base_price == Decimal("75.50")

    def test_explicit_base_price_is_kept(self):
        product = make_product(mrp=Decimal("75.50"), base_price=Decimal("70"))
        assert product.base_price == Decimal("70")

    def test_secondary_price_is_base_over_rate(self):
        assert derive_secondary_price(Decimal("240"), "piece", Decimal("12")) == Decimal("20")
        assert derive_secondary_price(Decimal("240"), None, Decimal("12")) is None


# =============================================================================
# PRICE CALCULATION
# =============================================================================


class TestPriceFor:

    def test_base_unit_identity(self):
        product = make_product()
        assert price_for(product, "kg", "3") == Decimal("300.00")

    def test_grams_of_kg_product(self):
        product = make_product()
        assert price_for(product, "gram", "500") == Decimal("50.00")

    def test_ml_of_liter_product(self):
        product = make_product(base_unit="liter", mrp=Decimal("60"))
        assert price_for(product, "ml", 250) == Decimal("15.00")

    def test_secondary_unit(self):
        product = make_product(base_unit="box", secondary_unit="piece", conversion_rate=Decimal("12"), mrp=Decimal("240"))
        assert price_for(product, "piece", 3) == Decimal("60.00")

    def test_result_is_rounded_half_up(self):
        product = make_product(base_unit="box", secondary_unit="piece", conversion_rate=Decimal("3"), mrp=Decimal("10"))
        # 10 / 3 = 3.3333.. per piece
        assert price_for(product, "piece", 1) == Decimal("3.33")
        assert round_money(Decimal("0.125")) == Decimal("0.13")

    def test_unsupported_unit(self):
        product = make_product(base_unit="box")
        with pytest.raises(UnsupportedUnitError) as exc:
            price_for(product, "liter", 1)
        assert str(exc.value) == "Invalid unit conversion: liter -> box"

    @pytest.mark.parametrize("quantity", [None, "", "abc", 0, -2, "NaN"])
    def test_bad_quantity(self, quantity):
        product = make_product()
        with pytest.raises(ValidationError):
            price_for(product, "kg", quantity)


# =============================================================================
# BASE-UNIT CONVERSION
# =============================================================================


class TestBaseUnitConversion:

    def test_base_unit_and_missing_unit_are_identity(self):
        product = make_product()
        assert to_base_units(product, "kg", Decimal("2")) == Decimal("2")
        assert to_base_units(product, None, Decimal("2")) == Decimal("2")

    def test_gram_to_kg(self):
        product = make_product()
        assert to_base_units(product, "gram", Decimal("500")) == Decimal("0.5")
        assert from_base_units(product, "gram", Decimal("0.5")) == Decimal("500.0")

    def test_secondary_to_base(self):
        product = make_product(base_unit="box", secondary_unit="piece", conversion_rate=Decimal("12"))
        assert to_base_units(product, "piece", Decimal("24")) == Decimal("2")
        assert from_base_units(product, "piece", Decimal("2")) == Decimal("24")

    def test_unknown_unit_has_no_fallback(self):
        product = make_product(base_unit="box")
        with pytest.raises(UnsupportedUnitError):
            to_base_units(product, "gram", Decimal("1"))
        with pytest.raises(UnsupportedUnitError):
            from_base_units(product, "bag", Decimal("1"))


class TestTrackedUnits:

    def test_single_piece_is_exactly_one(self):
        product = make_product(base_unit="box", secondary_unit="piece", conversion_rate=Decimal("12"))
        assert tracked_unit(product) == "piece"
        assert to_tracked_units(product, "piece", Decimal("1")) == Decimal("1")
        assert to_tracked_units(product, "box", Decimal("2")) == Decimal("24")
        assert from_tracked_units(product, "box", Decimal("108")) == Decimal("9")

    def test_without_secondary_the_base_unit_is_tracked(self):
        product = make_product()
        assert tracked_unit(product) == "kg"
        assert to_tracked_units(product, "gram", Decimal("250")) == Decimal("0.25")
        assert from_tracked_units(product, "gram", Decimal("0.25")) == Decimal("250")
