# Overview: Service-layer operations for console credentials; admin login and cashier users.

"""
Credential Service

- Exactly one admin credential exists at a time; saving again overwrites it.
- Cashier users are added one per call and listed in creation order.
- Passwords are hashed with bcrypt and never leave the service layer.

Authenticating against these credentials (sessions, tokens) is handled
elsewhere; this module only maintains them.
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AdminCredential, CashierUser
from ..validation import ConflictError, NotFoundError, ValidationError


def validate_password_strength(password: str | None) -> None:
    """
    Minimum bar for counter passwords:
    - at least 8 characters
    - at least one letter and one digit
    """
    if not password or len(password) < 8:
        raise ValidationError("password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise ValidationError("password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")  # Store as string in database


def get_admin() -> AdminCredential:
    admin = db.session.query(AdminCredential).order_by(AdminCredential.id.asc()).first()
    if admin is None:
        raise NotFoundError("No admin found")
    return admin


def save_admin(*, username: str, contact_number: str | None, password: str) -> tuple[AdminCredential, bool]:
    """Create the admin credential, or overwrite the existing one. Returns (admin, created)."""
    password_hash = hash_password(password)

    admin = db.session.query(AdminCredential).order_by(AdminCredential.id.asc()).first()
    created = admin is None
    if created:
        admin = AdminCredential(username=username, contact_number=contact_number, password_hash=password_hash)
        db.session.add(admin)
    else:
        admin.username = username
        admin.contact_number = contact_number
        admin.password_hash = password_hash

    db.session.commit()
    current_app.logger.info("Admin credential %s (%s)", "created" if created else "updated", username)
    return admin, created


def add_cashier(patch: dict, password: str) -> CashierUser:
    cashier = CashierUser(**patch)
    cashier.password_hash = hash_password(password)
    db.session.add(cashier)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Cashier ID {patch.get('cashier_id')} already exists")
    current_app.logger.info("Added cashier %s", cashier.cashier_id)
    return cashier


def list_cashiers() -> list[CashierUser]:
    return db.session.query(CashierUser).order_by(CashierUser.id.asc()).all()


def delete_cashier(cashier_pk: int) -> None:
    cashier = db.session.get(CashierUser, cashier_pk)
    if cashier is None:
        raise NotFoundError("Cashier not found")
    db.session.delete(cashier)
    db.session.commit()
    current_app.logger.info("Deleted cashier %s", cashier.cashier_id)
