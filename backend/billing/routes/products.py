# Overview: Flask API routes for the product catalogue; parses input and returns JSON responses.

# backend/billing/routes/products.py
"""
Product catalogue routes.

The API speaks camelCase (productCode, sellerPrice, ...); the policies below
map those keys onto the snake_case columns.

Stock-moving routes (restock, reduce, availability, history, seller
expenses) live in routes/stock.py under the same /api/products prefix.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..services import products_service, stock_service
from ..services.unit_service import price_for, UnsupportedUnitError

PRODUCT_ALIASES = {
    "productCode": "product_code",
    "productName": "product_name",
    "hsnCode": "hsn_code",
    "sellerPrice": "seller_price",
    "gstCategory": "gst_category",
    "baseUnit": "base_unit",
    "secondaryUnit": "secondary_unit",
    "conversionRate": "conversion_rate",
    "basePrice": "base_price",
    "stockQuantity": "stock_quantity",
    "lowStockAlert": "low_stock_alert",
    "supplierName": "supplier_name",
    "batchNumber": "batch_number",
    "manufactureDate": "manufacture_date",
    "expiryDate": "expiry_date",
    "manufactureLocation": "manufacture_location",
    "incomingDate": "incoming_date",
}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_code", "product_name", "category", "hsn_code", "brand",
        "mrp", "seller_price", "profit", "discount", "gst_category", "gst",
        "base_unit", "secondary_unit", "conversion_rate", "base_price",
        "stock_quantity", "low_stock_alert", "supplier_name", "batch_number",
        "manufacture_date", "expiry_date", "manufacture_location", "incoming_date",
    },
    required_on_create={"product_code", "product_name", "mrp", "seller_price", "gst_category", "base_unit"},
    aliases=PRODUCT_ALIASES,
)

# Edits never move stock and never set the product code
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"product_code", "stock_quantity", "profit"},
    aliases=PRODUCT_ALIASES,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List products, newest first.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return products_service.list_products(page=page, per_page=per_page), 200


@products_bp.post("")
def create_product_route():
    """
    Register a product and seed its stock ledger.

    Derived on the server: unit price table, secondary price, overall
    quantity and profit (mrp - sellerPrice).
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "JSON object body is required"}, 400
    actor = payload.pop("updatedBy", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        change = stock_service.register_product(patch, updated_by=actor)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to save product")
        return {"error": "Failed to save product"}, 500

    return change.product.to_dict(), 201


@products_bp.get("/profit-summary")
def profit_summary_route():
    return products_service.get_profit_summary(), 200


@products_bp.get("/code/<string:code>")
def get_product_by_code_route(code: str):
    try:
        return products_service.get_product(code), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/name/<string:name>")
def get_product_by_name_route(name: str):
    """Case-insensitive name lookup; returns the first match."""
    try:
        return products_service.find_product_by_name(name), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/search")
def search_products_route():
    """Search by product code or name (query >= 2 chars, max 10 results)."""
    try:
        return products_service.search_products(request.args.get("query")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@products_bp.get("/seller-info")
def seller_info_route():
    try:
        return products_service.get_seller_info(
            request.args.get("supplierName"), request.args.get("brand")
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/calculate-price/<string:code>")
def calculate_price_route(code: str):
    """
    Price a quantity of any supported unit.

    Query params:
    - unit: str (required)
    - quantity: number > 0 (required)
    """
    unit = request.args.get("unit")
    if not unit:
        return {"error": "unit is required"}, 400

    try:
        product = stock_service.get_product_by_code(code)
        price = price_for(product, unit, request.args.get("quantity"))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except (ValidationError, UnsupportedUnitError) as e:
        return {"error": str(e)}, 400

    return {"price": float(price)}, 200


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    if isinstance(payload, dict):
        payload.pop("updatedBy", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch, partial=True)
        updated = products_service.update_product(product_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product, drop its ledger row and leave a DELETE marker in stock history."""
    try:
        stock_service.delete_product(product_id, updated_by=request.args.get("updatedBy"))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Failed to delete product"}, 500

    return {
        "success": True,
        "message": "Product and associated stock records deleted successfully",
    }, 200
