from __future__ import annotations

from ..extensions import db
from billing.time_utils import utcnow, to_utc_z


class Company(db.Model):
    """Business profile printed on bills. Logo/signature are stored as URLs only."""
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)
    business_type = db.Column(db.String(120), nullable=True)
    business_category = db.Column(db.String(120), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(120), nullable=True)
    state = db.Column(db.String(120), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)
    country = db.Column(db.String(120), nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)
    signature_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.business_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businessName": self.business_name,
            "fullName": self.full_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
            "gstin": self.gstin,
            "businessType": self.business_type,
            "businessCategory": self.business_category,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "country": self.country,
            "logoUrl": self.logo_url,
            "signatureUrl": self.signature_url,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class AdminCredential(db.Model):
    """
    The single admin login for the console.

    Only one row is ever kept; saving again overwrites it.
    """
    __tablename__ = "admin_credentials"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    contact_number = db.Column(db.String(32), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<AdminCredential id={self.id} username={self.username!r}>"

    def to_dict(self) -> dict:
        # password_hash is never serialized
        return {
            "id": self.id,
            "username": self.username,
            "contactNumber": self.contact_number,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class CashierUser(db.Model):
    __tablename__ = "cashier_users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    cashier_name = db.Column(db.String(120), nullable=False)
    cashier_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    counter_num = db.Column(db.String(32), nullable=True)
    contact_number = db.Column(db.String(32), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<CashierUser id={self.id} cashier_id={self.cashier_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cashierName": self.cashier_name,
            "cashierId": self.cashier_id,
            "counterNum": self.counter_num,
            "contactNumber": self.contact_number,
            "createdAt": to_utc_z(self.created_at),
        }
