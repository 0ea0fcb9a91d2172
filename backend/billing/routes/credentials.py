# backend/billing/routes/credentials.py
"""
Console credential routes.

- /admin: the single admin login (POST creates or overwrites it)
- /users: cashier logins

Password hashes are never returned.
"""
from flask import Blueprint, request

from ..models import CashierUser
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
)
from ..services import credential_service


credentials_bp = Blueprint("credentials", __name__, url_prefix="/api/credentials")

CASHIER_POLICY = ModelValidationPolicy(
    writable_fields={"cashier_name", "cashier_id", "counter_num", "contact_number"},
    required_on_create={"cashier_name", "cashier_id"},
    aliases={
        "cashierName": "cashier_name",
        "cashierId": "cashier_id",
        "counterNum": "counter_num",
        "contactNumber": "contact_number",
    },
)


@credentials_bp.post("/admin")
def save_admin_route():
    """
    Body:
    - username: str (required)
    - password: str (required, >= 8 chars with a letter and a digit)
    - contactNumber: str (optional)
    """
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    if not username:
        return {"error": "username is required"}, 400

    try:
        admin, created = credential_service.save_admin(
            username=username,
            contact_number=payload.get("contactNumber"),
            password=payload.get("password"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    message = "Admin credentials created" if created else "Admin credentials updated"
    return {"message": message, "admin": admin.to_dict()}, 201 if created else 200


@credentials_bp.get("/admin")
def get_admin_route():
    try:
        return {"admin": credential_service.get_admin().to_dict()}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@credentials_bp.post("/users")
def add_cashier_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "JSON object body is required"}, 400

    password = payload.get("password")
    fields = {k: v for k, v in payload.items() if k != "password"}

    try:
        patch = validate_payload(model=CashierUser, payload=fields, policy=CASHIER_POLICY, partial=False)
        cashier = credential_service.add_cashier(patch, password)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"message": "User added successfully", "user": cashier.to_dict()}, 201


@credentials_bp.get("/users")
def list_cashiers_route():
    rows = credential_service.list_cashiers()
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}, 200


@credentials_bp.delete("/users/<int:cashier_pk>")
def delete_cashier_route(cashier_pk: int):
    try:
        credential_service.delete_cashier(cashier_pk)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"message": "User deleted successfully"}, 200
