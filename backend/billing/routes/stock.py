# Overview: Flask API routes for stock movements and stock reports.

# backend/billing/routes/stock.py
"""
Stock ledger routes.

Every quantity sent here may be expressed in any unit the product supports;
the ledger counts exactly in the product's smallest tracked unit.

Time semantics:
- startDate/endDate accept ISO-8601 dates or datetimes (Z/offsets allowed).
- Both bounds are inclusive; a bare endDate covers that whole day.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from billing.time_utils import parse_range_bound
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_restock,
    ValidationError,
    NotFoundError,
)
from ..services import stock_service
from ..services.stock_service import InsufficientStockError
from ..services.unit_service import UnsupportedUnitError


stock_bp = Blueprint("stock", __name__, url_prefix="/api/products")

RESTOCK_POLICY = ModelValidationPolicy(
    writable_fields={"supplier_name", "batch_number", "manufacture_date", "expiry_date", "mrp", "seller_price"},
    aliases={
        "supplierName": "supplier_name",
        "batchNumber": "batch_number",
        "manufactureDate": "manufacture_date",
        "expiryDate": "expiry_date",
        "sellerPrice": "seller_price",
    },
)

# Keys handled by the route itself, not copied onto the product
RESTOCK_CONTROL_KEYS = ("newStockAdded", "previousStock", "unit", "updatedBy", "notes")


def _date_bounds():
    start = parse_range_bound(request.args.get("startDate"))
    end = parse_range_bound(request.args.get("endDate"), end=True)
    return start, end


@stock_bp.put("/stock/<string:code>")
def restock_route(code: str):
    """
    Add stock to a product.

    Body:
    - newStockAdded: number > 0 (required), in `unit` (default: base unit)
    - previousStock: number (optional; informational, the server value wins)
    - supplierName, batchNumber, manufactureDate, expiryDate, mrp, sellerPrice (optional)
    - updatedBy, notes (optional)
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "JSON object body is required"}, 400

    control = {k: payload.get(k) for k in RESTOCK_CONTROL_KEYS}
    metadata = {k: v for k, v in payload.items() if k not in RESTOCK_CONTROL_KEYS}

    if control["newStockAdded"] is None:
        return {"error": "newStockAdded is required"}, 400

    try:
        updates = validate_payload(model=Product, payload=metadata, policy=RESTOCK_POLICY, partial=True)
        enforce_rules_restock(updates)
        change = stock_service.restock_product(
            code,
            quantity=control["newStockAdded"],
            unit=control["unit"],
            previous_stock=control["previousStock"],
            updates=updates,
            updated_by=control["updatedBy"],
            notes=control["notes"],
        )
    except (ValidationError, UnsupportedUnitError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "success": True,
        "message": "Stock updated successfully",
        "product": change.product.to_dict(),
        "stock": change.ledger.to_dict() if change.ledger is not None else None,
        "history": change.history.to_dict() if change.history is not None else None,
    }, 200


@stock_bp.patch("/reduce-stock/<string:code>")
def reduce_stock_route(code: str):
    """
    Sell stock from a product.

    Body:
    - quantity: number > 0 (required)
    - unit: str (optional, default base unit)

    Returns 409 when available stock is insufficient; nothing changes then.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "JSON object body is required"}, 400
    if payload.get("quantity") is None:
        return {"error": "quantity is required"}, 400

    try:
        change = stock_service.reduce_stock(
            code,
            payload.get("quantity"),
            payload.get("unit"),
            updated_by=payload.get("updatedBy"),
            notes=payload.get("notes"),
        )
    except (ValidationError, UnsupportedUnitError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {
            "error": "Not enough stock available",
            "available": float(e.available),
            "required": float(e.required),
        }, 409

    return {"message": "Stock updated", "updatedProduct": change.product.to_dict()}, 200


@stock_bp.get("/check-stock/<string:code>")
def check_stock_route(code: str):
    """
    Query params:
    - unit: str (optional, default base unit)
    - quantity: number > 0 (required)
    """
    try:
        return stock_service.check_stock(
            code, request.args.get("unit"), request.args.get("quantity")
        ), 200
    except (ValidationError, UnsupportedUnitError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404


@stock_bp.get("/stock/<string:code>")
def stock_view_route(code: str):
    """Product, ledger row and recent history (newest first)."""
    limit = current_app.config["STOCK_HISTORY_PAGE_LIMIT"]
    try:
        return stock_service.get_stock_view(code, history_limit=limit), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@stock_bp.get("/stock-history")
def stock_history_route():
    """
    Query params:
    - productCode: str (optional)
    - startDate, endDate: ISO date/datetime (optional, inclusive)
    """
    try:
        start, end = _date_bounds()
    except ValueError:
        return {"error": "startDate/endDate must be ISO-8601 dates"}, 400

    rows = stock_service.list_stock_history(
        product_code=request.args.get("productCode"), start=start, end=end
    )
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}, 200


@stock_bp.get("/seller-expenses")
def seller_expenses_route():
    """
    Products grouped by supplier and batch with purchase totals.

    Query params:
    - startDate, endDate: ISO date/datetime on product creation (optional, inclusive)
    - supplierName: str (optional, partial match)
    """
    try:
        start, end = _date_bounds()
    except ValueError:
        return {"error": "startDate/endDate must be ISO-8601 dates"}, 400

    groups = stock_service.get_seller_expenses(
        start=start, end=end, supplier_name=request.args.get("supplierName")
    )
    return {"items": groups, "count": len(groups)}, 200
