from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import event

from ..extensions import db
from billing.time_utils import utcnow, to_utc_z

# Scale of every stored stock quantity
QTY = Decimal("0.000001")


def as_number(value):
    """Decimal -> float for JSON responses; None passes through."""
    if value is None:
        return None
    return float(value)


class Product(db.Model):
    """
    Product master data plus its current stock position.

    PRODUCT CODE: product_code is the canonical identifier used by the
    billing counter, the stock ledger and the stock history. It is unique
    across the catalogue.

    QUANTITIES:
    - overall_quantity is the exact stock in the smallest tracked unit (the
      secondary unit, or the base unit when there is none). Stock services
      move it; nothing else writes it.
    - stock_quantity = overall_quantity / conversion_rate, the same stock in
      the base unit. Derived by the mapper hooks below on every insert and
      update, rounded to the column scale.

    PROFIT: derived from mrp - seller_price by the stock service whenever
    either price changes; clients never set it directly.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_supplier_batch", "supplier_name", "batch_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    product_name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(120), nullable=True)
    hsn_code = db.Column(db.String(32), nullable=True)
    brand = db.Column(db.String(120), nullable=True)

    mrp = db.Column(db.Numeric(12, 2), nullable=False)
    seller_price = db.Column(db.Numeric(12, 2), nullable=False)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    gst_category = db.Column(db.String(16), nullable=False)
    gst = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0"))

    base_unit = db.Column(db.String(16), nullable=False)
    secondary_unit = db.Column(db.String(16), nullable=True)
    # Secondary units per one base unit (1 box = 12 piece -> 12)
    conversion_rate = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("1"))
    base_price = db.Column(db.Numeric(12, 2), nullable=True)
    secondary_price = db.Column(db.Numeric(14, 4), nullable=True)
    # unit name -> price per unit, stored as decimal strings
    unit_prices = db.Column(db.JSON, nullable=False, default=dict)

    stock_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=Decimal("0"))
    overall_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=Decimal("0"))
    low_stock_alert = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))

    supplier_name = db.Column(db.String(255), nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)
    manufacture_date = db.Column(db.DateTime, nullable=True)
    expiry_date = db.Column(db.DateTime, nullable=True)
    manufacture_location = db.Column(db.String(255), nullable=True)
    incoming_date = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r} name={self.product_name!r}>"

    def sync_stock_quantity(self) -> None:
        rate = Decimal(self.conversion_rate if self.conversion_rate is not None else 1)
        overall = Decimal(self.overall_quantity if self.overall_quantity is not None else 0)
        self.stock_quantity = (overall / rate).quantize(QTY, rounding=ROUND_HALF_UP)

    @property
    def is_low_stock(self) -> bool:
        threshold = self.low_stock_alert or 0
        return threshold > 0 and (self.stock_quantity or 0) <= threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productCode": self.product_code,
            "productName": self.product_name,
            "category": self.category,
            "hsnCode": self.hsn_code,
            "brand": self.brand,
            "mrp": as_number(self.mrp),
            "sellerPrice": as_number(self.seller_price),
            "profit": as_number(self.profit),
            "discount": as_number(self.discount),
            "gstCategory": self.gst_category,
            "gst": as_number(self.gst),
            "baseUnit": self.base_unit,
            "secondaryUnit": self.secondary_unit,
            "conversionRate": as_number(self.conversion_rate),
            "basePrice": as_number(self.base_price),
            "secondaryPrice": as_number(self.secondary_price),
            "unitPrices": {k: float(v) for k, v in (self.unit_prices or {}).items()},
            "stockQuantity": as_number(self.stock_quantity),
            "overallQuantity": as_number(self.overall_quantity),
            "lowStockAlert": as_number(self.low_stock_alert),
            "isLowStock": self.is_low_stock,
            "supplierName": self.supplier_name,
            "batchNumber": self.batch_number,
            "manufactureDate": to_utc_z(self.manufacture_date),
            "expiryDate": to_utc_z(self.expiry_date),
            "manufactureLocation": self.manufacture_location,
            "incomingDate": to_utc_z(self.incoming_date),
            "version_id": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _product_stock_quantity(mapper, connection, target: Product) -> None:
    target.sync_stock_quantity()


class StockLedger(db.Model):
    """
    Running stock position per product code.

    - total_quantity: lifetime received (never decreased by a sale)
    - available_quantity: what can still be sold, always <= total_quantity
    - selling_quantity: units sold to date
    All quantities are exact counts in `unit`, the product's smallest
    tracked unit.
    """
    __tablename__ = "stock_ledger"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    total_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=Decimal("0"))
    available_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=Decimal("0"))
    selling_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=Decimal("0"))

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<StockLedger code={self.product_code!r} total={self.total_quantity} "
            f"available={self.available_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productCode": self.product_code,
            "productName": self.product_name,
            "unit": self.unit,
            "totalQuantity": as_number(self.total_quantity),
            "availableQuantity": as_number(self.available_quantity),
            "sellingQuantity": as_number(self.selling_quantity),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockHistory(db.Model):
    """
    Append-only stock audit trail.

    product_id is a plain integer (no foreign key) so the DELETE marker
    survives the product row it describes.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_code_created", "product_code", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=True)
    product_code = db.Column(db.String(64), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(16), nullable=False, index=True)  # RESTOCK, SALE, DELETE

    previous_stock = db.Column(db.Numeric(18, 6), nullable=False)
    added_stock = db.Column(db.Numeric(18, 6), nullable=False)
    new_stock = db.Column(db.Numeric(18, 6), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=False, default="N/A")
    batch_number = db.Column(db.String(64), nullable=False, default="N/A")
    manufacture_date = db.Column(db.DateTime, nullable=True)
    expiry_date = db.Column(db.DateTime, nullable=True)
    mrp = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    seller_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    updated_by = db.Column(db.String(64), nullable=False, default="system")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<StockHistory id={self.id} code={self.product_code!r} action={self.action}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productCode": self.product_code,
            "productName": self.product_name,
            "action": self.action,
            "previousStock": as_number(self.previous_stock),
            "addedStock": as_number(self.added_stock),
            "newStock": as_number(self.new_stock),
            "supplierName": self.supplier_name,
            "batchNumber": self.batch_number,
            "manufactureDate": to_utc_z(self.manufacture_date),
            "expiryDate": to_utc_z(self.expiry_date),
            "mrp": as_number(self.mrp),
            "sellerPrice": as_number(self.seller_price),
            "updatedBy": self.updated_by,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }


@event.listens_for(StockHistory, "before_update")
def _stock_history_is_append_only(mapper, connection, target: StockHistory) -> None:
    raise ValueError("stock history is append-only")
