# Overview: Service-layer operations for company profiles.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Company
from ..validation import NotFoundError


def register_company(patch: dict) -> Company:
    company = Company(**patch)
    db.session.add(company)
    db.session.commit()
    current_app.logger.info("Registered company %s", company.business_name)
    return company


def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.created_at.desc(), Company.id.desc()).all()


def get_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company
