# backend/billing/services/products_service.py
"""
Products Service

Catalogue reads and descriptive edits. Anything that moves stock lives in
stock_service; this module never touches stock_quantity.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError, ValidationError, check_dates
from .stock_service import get_product_by_code, derive_profit, escape_like, retrack_units
from .unit_service import apply_pricing, round_money

# Stock moves only through the ledger; pricing fields are derived
PRODUCT_MUTABLE_FIELDS = {
    "product_name", "category", "hsn_code", "brand",
    "mrp", "seller_price", "discount", "gst_category", "gst",
    "base_unit", "secondary_unit", "conversion_rate", "base_price",
    "low_stock_alert", "supplier_name", "batch_number",
    "manufacture_date", "expiry_date", "manufacture_location", "incoming_date",
}

PRICING_FIELDS = {"mrp", "base_unit", "secondary_unit", "conversion_rate", "base_price"}

SEARCH_LIMIT = 10


def list_products(page: int | None = None, per_page: int | None = None) -> dict:
    """
    Products newest first, optionally paginated.

    Args:
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
    """
    base_query = db.session.query(Product).order_by(Product.created_at.desc(), Product.id.desc())

    if page is None:
        items = base_query.all()
        return {"items": [p.to_dict() for p in items], "count": len(items)}

    page = max(page, 1)
    per_page = min(max(per_page or 20, 1), 100)
    total = base_query.count()
    items = base_query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict() for p in items],
        "count": len(items),
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }


def get_product(product_code: str) -> dict:
    return get_product_by_code(product_code).to_dict()


def find_product_by_name(name: str) -> dict:
    """First product whose name contains `name`, case-insensitive."""
    product = (
        db.session.query(Product)
        .filter(Product.product_name.ilike(f"%{escape_like(name)}%", escape="\\"))
        .order_by(Product.product_name.asc(), Product.id.asc())
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found")
    return product.to_dict()


def search_products(query: str | None) -> list[dict]:
    if not query or len(query.strip()) < 2:
        raise ValidationError("Search query must be at least 2 characters")
    pattern = f"%{escape_like(query.strip())}%"
    rows = (
        db.session.query(Product)
        .filter(or_(
            Product.product_code.ilike(pattern, escape="\\"),
            Product.product_name.ilike(pattern, escape="\\"),
        ))
        .order_by(Product.product_name.asc(), Product.id.asc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    return [p.to_dict() for p in rows]


def get_profit_summary() -> dict:
    """Per-unit profit summed over the catalogue."""
    products = db.session.query(Product.profit).all()
    total = sum((Decimal(p.profit or 0) for p in products), Decimal("0"))
    count = len(products)
    average = round_money(total / count) if count else Decimal("0")
    return {
        "totalProducts": count,
        "totalProfit": float(round_money(total)),
        "averageProfit": float(average),
    }


def get_seller_info(supplier_name: str | None, brand: str | None) -> dict:
    if not supplier_name or not brand:
        raise ValidationError("Supplier name and brand are required")
    product = (
        db.session.query(Product)
        .filter(
            Product.supplier_name.ilike(f"%{escape_like(supplier_name)}%", escape="\\"),
            Product.brand.ilike(f"%{escape_like(brand)}%", escape="\\"),
        )
        .order_by(Product.id.asc())
        .first()
    )
    if product is None:
        raise NotFoundError("No products found for this supplier and brand")
    return {
        "sellerId": product.id,
        "supplierName": product.supplier_name,
        "brand": product.brand,
    }


def update_product(product_id: int, patch: dict) -> dict:
    """
    Edit a product's descriptive and pricing fields.

    A new conversion rate rescales the counts held in the tracked unit so
    the base-unit stock stays the same.

    The unit price table and secondary price are re-derived when a pricing
    input changes; profit is re-derived when mrp or seller_price changes.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    old_rate = product.conversion_rate

    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(product, k, v)

    try:
        if product.secondary_unit and product.secondary_unit == product.base_unit:
            raise ValidationError("secondary_unit must differ from base_unit")
        check_dates(product.manufacture_date, product.expiry_date)
        retrack_units(product, old_rate)
    except ValidationError:
        db.session.rollback()
        raise

    if PRICING_FIELDS & patch.keys():
        apply_pricing(product)
    if "mrp" in patch or "seller_price" in patch:
        derive_profit(product)

    db.session.commit()
    current_app.logger.info("Updated product %s (%s)", product.product_code, ", ".join(sorted(patch)))
    return product.to_dict()
