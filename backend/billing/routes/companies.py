# backend/billing/routes/companies.py
from flask import Blueprint, request

from ..models import Company
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, NotFoundError
from ..services import company_service


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")

# Field names follow the registration form
COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={
        "business_name", "full_name", "email", "phone_number", "gstin",
        "business_type", "business_category", "address", "city", "state",
        "pincode", "country", "logo_url", "signature_url",
    },
    required_on_create={"business_name"},
    aliases={
        "companyName": "business_name",
        "businessName": "business_name",
        "fullName": "full_name",
        "mobile": "phone_number",
        "phoneNumber": "phone_number",
        "gstNumber": "gstin",
        "businessType": "business_type",
        "businessCategory": "business_category",
        "businessAddress": "address",
        "zip": "pincode",
        "logoUrl": "logo_url",
        "signatureUrl": "signature_url",
    },
)


@companies_bp.post("/register")
def register_company_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=False)
        email = patch.get("email")
        if email and "@" not in email:
            raise ValidationError("email is not a valid address")
    except ValidationError as e:
        return {"error": str(e)}, 400

    company = company_service.register_company(patch)
    return {"message": "Company registered successfully", "company": company.to_dict()}, 201


@companies_bp.get("")
def list_companies_route():
    rows = company_service.list_companies()
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}, 200


@companies_bp.get("/<int:company_id>")
def get_company_route(company_id: int):
    try:
        return company_service.get_company(company_id).to_dict(), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
