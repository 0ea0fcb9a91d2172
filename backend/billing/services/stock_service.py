# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

# backend/billing/services/stock_service.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from billing.time_utils import to_utc_z
from ..models import Product, StockLedger, StockHistory
from ..models.catalog import QTY
from ..validation import NotFoundError, ConflictError, ValidationError, check_dates, parse_decimal
from .concurrency import lock_for_update, run_with_retry
from .unit_service import (
    UnsupportedUnitError,
    apply_pricing,
    from_tracked_units,
    round_money,
    to_tracked_units,
    tracked_unit,
)
"""
Stock Ledger Invariants (authoritative)

Quantities:
- Ledger counts and Product.overall_quantity are exact amounts in the
  product's smallest tracked unit (unit_service.tracked_unit). A quantity
  given in any other unit goes through tracked_quantity(), which rejects
  amounts finer than the stored scale instead of rounding them.
- Product.stock_quantity is the base-unit view of overall_quantity,
  derived by the Product mapper hooks.

Ledger rules:
- RESTOCK: total_quantity and available_quantity grow by delta. The ledger
  row is created on the first stock event, seeded with that delta.
- SALE: requires available_quantity >= delta, otherwise
  InsufficientStockError and nothing changes. Only available_quantity
  shrinks; total_quantity is the lifetime-received figure.
- DELETE: the ledger row is removed together with the product.
- available_quantity <= total_quantity at all times.

Concurrency:
- Product and ledger rows are read with SELECT ... FOR UPDATE and the product
  carries an optimistic version column, so two sales racing past the
  sufficiency check cannot both commit. Conflicts are retried.

Audit:
- Each successful mutation appends one StockHistory row AFTER the ledger
  commit. History is best-effort: a failed write is logged and the ledger
  update stands. History quantities are base-unit stock figures.
"""


STOCK_RESTOCK = "RESTOCK"
STOCK_SALE = "SALE"
STOCK_DELETE = "DELETE"

STOCK_KINDS = (STOCK_RESTOCK, STOCK_SALE, STOCK_DELETE)

ZERO = Decimal("0")


class InsufficientStockError(ValueError):
    """Requested quantity exceeds the available stock (both in base units)."""

    def __init__(self, product_code: str, available: Decimal, required: Decimal):
        super().__init__(
            f"Not enough stock available for {product_code}: "
            f"available {available}, required {required}"
        )
        self.product_code = product_code
        self.available = available
        self.required = required


@dataclass
class StockChange:
    """Outcome of one ledger mutation. Stock figures are in base units."""
    kind: str
    product_code: str
    previous_stock: Decimal
    delta: Decimal
    new_stock: Decimal
    product: Product | None = None
    ledger: StockLedger | None = None
    history: StockHistory | None = None
    history_fields: dict = field(default_factory=dict, repr=False)


def quantize_qty(value) -> Decimal:
    return Decimal(value).quantize(QTY, rounding=ROUND_HALF_UP)


def _dec(value) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def tracked_quantity(product: Product, unit: str | None, quantity) -> Decimal:
    """
    `quantity` of `unit` as an exact count in the product's tracked unit.

    Raises ValidationError when the count would need rounding to fit the
    stored scale; a tiny request never silently becomes zero.
    """
    units = to_tracked_units(product, unit, quantity)
    if quantize_qty(units) != units:
        raise ValidationError(
            f"quantity {quantity} {unit or product.base_unit} cannot be tracked "
            f"exactly in {tracked_unit(product)}"
        )
    return units


def base_quantity(product: Product, units) -> Decimal:
    return quantize_qty(from_tracked_units(product, product.base_unit, units))


def get_product_by_code(product_code: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(product_code=product_code)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _get_ledger(product_code: str, *, lock: bool = False) -> StockLedger | None:
    query = db.session.query(StockLedger).filter_by(product_code=product_code)
    if lock:
        query = lock_for_update(query)
    return query.first()


def derive_profit(product: Product) -> None:
    # Profit is always mrp - seller_price; never trusted from the client
    product.profit = round_money(_dec(product.mrp) - _dec(product.seller_price))


def retrack_units(product: Product, old_rate) -> None:
    """
    Follow a conversion rate or secondary unit edit.

    Tracked counts are rescaled by new_rate / old_rate so the base-unit stock
    is unchanged. A rescale that would leave a fractional count raises
    ValidationError.
    """
    with db.session.no_autoflush:
        ledger = _get_ledger(product.product_code, lock=True)
    if ledger is not None:
        ledger.unit = tracked_unit(product)

    old_rate = Decimal(old_rate) if old_rate else Decimal("1")
    new_rate = _dec(product.conversion_rate)
    if new_rate == old_rate:
        return

    def _rescale(value) -> Decimal:
        scaled = _dec(value) * new_rate / old_rate
        if quantize_qty(scaled) != scaled:
            raise ValidationError(
                f"conversion_rate {new_rate} would leave a fractional {tracked_unit(product)} count"
            )
        return scaled

    product.overall_quantity = _rescale(product.overall_quantity)
    if ledger is not None:
        ledger.total_quantity = _rescale(ledger.total_quantity)
        ledger.available_quantity = _rescale(ledger.available_quantity)
        ledger.selling_quantity = _rescale(ledger.selling_quantity)
    product.sync_stock_quantity()


def _history_fields(
    product: Product,
    *,
    kind: str,
    previous: Decimal,
    delta: Decimal,
    new: Decimal,
    updated_by: str | None,
    notes: str | None,
) -> dict:
    """Snapshot taken inside the ledger transaction (the product may be gone after commit)."""
    return {
        "product_id": product.id,
        "product_code": product.product_code,
        "product_name": product.product_name,
        "action": kind,
        "previous_stock": previous,
        "added_stock": delta,
        "new_stock": new,
        "supplier_name": product.supplier_name or "N/A",
        "batch_number": product.batch_number or "N/A",
        "manufacture_date": product.manufacture_date,
        "expiry_date": product.expiry_date,
        "mrp": _dec(product.mrp),
        "seller_price": _dec(product.seller_price),
        "updated_by": updated_by or "system",
        "notes": notes,
    }


def _apply_in_session(product: Product, units: Decimal, kind: str) -> StockChange:
    """
    Core ledger arithmetic without locking, retry, history or commit.

    `units` is an exact count in the product's tracked unit. Called by
    apply_stock_delta() and by product registration, which needs the product
    insert and the ledger seed in one transaction.
    """
    previous = _dec(product.stock_quantity)
    ledger = _get_ledger(product.product_code, lock=True)

    if kind == STOCK_RESTOCK:
        if ledger is None:
            ledger = StockLedger(
                product_code=product.product_code,
                product_name=product.product_name,
                unit=tracked_unit(product),
                total_quantity=units,
                available_quantity=units,
                selling_quantity=ZERO,
            )
            db.session.add(ledger)
        else:
            ledger.total_quantity = _dec(ledger.total_quantity) + units
            ledger.available_quantity = _dec(ledger.available_quantity) + units
            ledger.product_name = product.product_name
            ledger.unit = tracked_unit(product)
        product.overall_quantity = _dec(product.overall_quantity) + units

    elif kind == STOCK_SALE:
        available = _dec(ledger.available_quantity) if ledger is not None else ZERO
        if available < units:
            raise InsufficientStockError(
                product.product_code, base_quantity(product, available), base_quantity(product, units)
            )
        ledger.available_quantity = available - units
        ledger.selling_quantity = _dec(ledger.selling_quantity) + units
        product.overall_quantity = _dec(product.overall_quantity) - units

    elif kind == STOCK_DELETE:
        if ledger is not None:
            db.session.delete(ledger)
            ledger = None
        db.session.delete(product)

    else:
        raise ValidationError(f"kind must be one of: {', '.join(STOCK_KINDS)}")

    if kind == STOCK_DELETE:
        new = ZERO
        recorded_delta = ZERO
    else:
        product.sync_stock_quantity()
        new = _dec(product.stock_quantity)
        recorded_delta = new - previous

    return StockChange(
        kind=kind,
        product_code=product.product_code,
        previous_stock=previous,
        delta=recorded_delta,
        new_stock=new,
        product=product if kind != STOCK_DELETE else None,
        ledger=ledger,
    )


def _append_history(change: StockChange) -> StockHistory | None:
    """Best-effort audit write; the ledger change is already committed."""
    try:
        entry = StockHistory(**change.history_fields)
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Stock history write failed for %s (%s); ledger update stands uncorrected",
            change.product_code,
            change.kind,
        )
        return None
    return entry


def apply_stock_delta(
    product_code: str,
    quantity,
    kind: str,
    *,
    unit: str | None = None,
    product_updates: dict | None = None,
    updated_by: str | None = None,
    notes: str | None = None,
) -> StockChange:
    """
    Apply one stock event to a product's ledger and append its history.

    `quantity` is expressed in `unit` (default: the base unit) and must be
    > 0 for RESTOCK and SALE; it is ignored for DELETE. It is converted to
    the tracked unit under the row lock. `product_updates` (column -> value)
    is written to the product in the same transaction, e.g. the
    supplier/batch metadata that accompanies a restock.
    """
    if kind not in STOCK_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(STOCK_KINDS)}")

    qty = ZERO if kind == STOCK_DELETE else parse_decimal(quantity, "quantity", positive=True)

    def _op():
        product = get_product_by_code(product_code, lock=True)
        units = ZERO if kind == STOCK_DELETE else tracked_quantity(product, unit, qty)

        if product_updates:
            for key, value in product_updates.items():
                setattr(product, key, value)
            check_dates(product.manufacture_date, product.expiry_date)
            if "mrp" in product_updates or "seller_price" in product_updates:
                derive_profit(product)

        change = _apply_in_session(product, units, kind)
        change.history_fields = _history_fields(
            product,
            kind=kind,
            previous=change.previous_stock,
            delta=change.delta,
            new=change.new_stock,
            updated_by=updated_by,
            notes=notes,
        )
        db.session.commit()
        return change

    try:
        change = run_with_retry(_op)
    except (InsufficientStockError, NotFoundError, ValidationError, UnsupportedUnitError):
        db.session.rollback()
        raise

    current_app.logger.info(
        "Stock %s on %s: %s -> %s", kind, change.product_code, change.previous_stock, change.new_stock
    )
    change.history = _append_history(change)
    return change


# =============================================================================
# PRODUCT REGISTRATION
# =============================================================================

def register_product(patch: dict, *, updated_by: str | None = None) -> StockChange:
    """
    Create a product and seed its stock ledger with the initial stock.

    Derives base price (falls back to MRP), the unit price table, the
    secondary price, profit and overall quantity. The initial stock is in
    the base unit. Duplicate product codes raise ConflictError.
    """
    patch = dict(patch)
    initial = patch.pop("stock_quantity", None) or ZERO
    patch.pop("profit", None)

    code = patch.get("product_code")
    if db.session.query(Product.id).filter_by(product_code=code).first() is not None:
        raise ConflictError(f"Product code {code} already exists")

    product = Product(**patch)
    product.stock_quantity = ZERO
    product.overall_quantity = ZERO
    if product.conversion_rate is None:
        product.conversion_rate = Decimal("1")
    units = tracked_quantity(product, product.base_unit, initial)
    apply_pricing(product)
    derive_profit(product)

    try:
        db.session.add(product)
        db.session.flush()
        change = _apply_in_session(product, units, STOCK_RESTOCK)
        change.history_fields = _history_fields(
            product,
            kind=STOCK_RESTOCK,
            previous=ZERO,
            delta=change.delta,
            new=change.new_stock,
            updated_by=updated_by,
            notes="Initial stock",
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Product code {code} already exists")

    current_app.logger.info("Registered product %s with initial stock %s", code, change.new_stock)
    change.history = _append_history(change)
    return change


# =============================================================================
# STOCK OPERATIONS
# =============================================================================

def restock_product(
    product_code: str,
    *,
    quantity,
    unit: str | None = None,
    previous_stock=None,
    updates: dict | None = None,
    updated_by: str | None = None,
    notes: str | None = None,
) -> StockChange:
    """
    Add stock to an existing product.

    `quantity` is in `unit` (default: the base unit). Metadata in `updates`
    (supplier, batch, dates, mrp, seller price) replaces the product's
    values; profit is re-derived when either price changes.
    """
    qty = parse_decimal(quantity, "newStockAdded", positive=True)

    if previous_stock is not None:
        product = get_product_by_code(product_code)
        claimed = parse_decimal(previous_stock, "previousStock")
        if claimed != _dec(product.stock_quantity):
            current_app.logger.warning(
                "Client previousStock %s for %s differs from server stock %s; using server value",
                claimed,
                product_code,
                product.stock_quantity,
            )

    cleaned = {k: v for k, v in (updates or {}).items() if v is not None and v != ""}
    return apply_stock_delta(
        product_code,
        qty,
        STOCK_RESTOCK,
        unit=unit,
        product_updates=cleaned,
        updated_by=updated_by,
        notes=notes,
    )


def reduce_stock(
    product_code: str,
    quantity,
    unit: str | None = None,
    *,
    updated_by: str | None = None,
    notes: str | None = None,
) -> StockChange:
    """Sell `quantity` of `unit` (default: base unit) from a product's stock."""
    qty = parse_decimal(quantity, "quantity", positive=True)
    return apply_stock_delta(
        product_code, qty, STOCK_SALE, unit=unit, updated_by=updated_by, notes=notes
    )


def delete_product(product_id: int, *, updated_by: str | None = None) -> StockChange:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return apply_stock_delta(
        product.product_code,
        None,
        STOCK_DELETE,
        updated_by=updated_by,
        notes="Product deleted from system",
    )


def check_stock(product_code: str, unit: str | None, quantity) -> dict:
    """
    Stock availability for `quantity` of `unit`.

    The comparison uses the same exact tracked-unit counts as reduce_stock();
    available and required are reported in base units and availableDisplay
    expresses the available stock in the requested unit.
    """
    product = get_product_by_code(product_code)
    qty = parse_decimal(quantity, "quantity", positive=True)
    unit = unit or product.base_unit
    required_units = tracked_quantity(product, unit, qty)
    required = float(base_quantity(product, required_units))

    ledger = _get_ledger(product_code)
    if ledger is None:
        return {
            "available": 0,
            "required": required,
            "isAvailable": False,
            "availableDisplay": 0,
            "baseUnit": product.base_unit,
            "requestedUnit": unit,
        }

    available_units = _dec(ledger.available_quantity)
    return {
        "available": float(base_quantity(product, available_units)),
        "required": required,
        "isAvailable": available_units >= required_units,
        "availableDisplay": float(quantize_qty(from_tracked_units(product, unit, available_units))),
        "baseUnit": product.base_unit,
        "requestedUnit": unit,
    }


# =============================================================================
# QUERIES
# =============================================================================

def get_stock_view(product_code: str, *, history_limit: int = 50) -> dict:
    product = get_product_by_code(product_code)
    ledger = _get_ledger(product_code)
    history = (
        db.session.query(StockHistory)
        .filter_by(product_code=product_code)
        .order_by(StockHistory.created_at.desc(), StockHistory.id.desc())
        .limit(history_limit)
        .all()
    )

    if ledger is not None:
        stock = ledger.to_dict()
    else:
        stock = {
            "productCode": product.product_code,
            "productName": product.product_name,
            "unit": tracked_unit(product),
            "totalQuantity": 0,
            "availableQuantity": 0,
            "sellingQuantity": 0,
        }

    return {
        "product": product.to_dict(),
        "stock": stock,
        "stockHistory": [h.to_dict() for h in history],
    }


def list_stock_history(
    *,
    product_code: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[StockHistory]:
    """History rows, newest first. Date bounds are inclusive."""
    query = db.session.query(StockHistory)
    if product_code:
        query = query.filter(StockHistory.product_code == product_code)
    if start is not None:
        query = query.filter(StockHistory.created_at >= start)
    if end is not None:
        query = query.filter(StockHistory.created_at <= end)
    return query.order_by(StockHistory.created_at.desc(), StockHistory.id.desc()).all()


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_seller_expenses(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    supplier_name: str | None = None,
) -> list[dict]:
    """
    Products grouped by (supplier_name, batch_number).

    totalAmount = sum(stock_quantity * seller_price)
    totalProfit = sum(stock_quantity * (mrp - seller_price))

    Products without a supplier or batch are not part of any group.
    """
    query = db.session.query(Product).filter(
        Product.supplier_name.isnot(None),
        Product.supplier_name != "",
        Product.batch_number.isnot(None),
        Product.batch_number != "",
    )
    if start is not None:
        query = query.filter(Product.created_at >= start)
    if end is not None:
        query = query.filter(Product.created_at <= end)
    if supplier_name:
        query = query.filter(
            Product.supplier_name.ilike(f"%{escape_like(supplier_name)}%", escape="\\")
        )

    products = query.order_by(
        Product.supplier_name.asc(), Product.batch_number.asc(), Product.created_at.asc(), Product.id.asc()
    ).all()

    groups: dict[tuple[str, str], dict] = {}
    for p in products:
        key = (p.supplier_name, p.batch_number)
        group = groups.get(key)
        if group is None:
            group = {
                "supplierName": p.supplier_name,
                "batchNumber": p.batch_number,
                "products": [],
                "_amount": ZERO,
                "_profit": ZERO,
            }
            groups[key] = group

        stock = _dec(p.stock_quantity)
        group["_amount"] += stock * _dec(p.seller_price)
        group["_profit"] += stock * (_dec(p.mrp) - _dec(p.seller_price))
        group["products"].append({
            "id": p.id,
            "productName": p.product_name,
            "productCode": p.product_code,
            "category": p.category,
            "baseUnit": p.base_unit,
            "addedStock": float(stock),
            "sellerPrice": float(_dec(p.seller_price)),
            "mrp": float(_dec(p.mrp)),
            "manufactureDate": to_utc_z(p.manufacture_date),
            "expiryDate": to_utc_z(p.expiry_date),
            "createdAt": to_utc_z(p.created_at),
        })

    result = []
    for group in groups.values():
        group["totalAmount"] = float(round_money(group.pop("_amount")))
        group["totalProfit"] = float(round_money(group.pop("_profit")))
        result.append(group)
    return result
