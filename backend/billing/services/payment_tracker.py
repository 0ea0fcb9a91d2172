# Overview: Client-owned seller payment cache; tracks paid and balance amounts per supplier batch.

"""
Seller Payment Balance Tracker

WHY: Supplier batches are paid off in instalments. The server only knows
what a batch costs (seller expenses); how much of it has been paid is kept
by the console itself, in a local JSON document that is never shared
between machines.

DESIGN PRINCIPLES:
- Client-owned cache: state lives in a PaymentStore (JSON file or memory),
  keyed by batch key "{supplierName}-{batchNumber}".
- The server is the source of truth for totals. reconcile() compares every
  stored totalAmount with the freshly computed one and resynchronizes:
  balance = new_total - paid. paidAmount is never adjusted automatically.
- paid_amount + balance_amount == total_amount for every stored status.
- mark_unpaid() is irreversible: status and history for the batch are dropped.

NOT SHARED: two consoles recording payments for the same batch diverge
silently. There is no cross-client consistency at all.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from flask import current_app

from billing.time_utils import utcnow, to_utc_z
from ..validation import NotFoundError, ValidationError, parse_decimal
from .unit_service import round_money

STATUS_DOCUMENT = "sellerPaymentStatus"
HISTORY_DOCUMENT = "sellerPaymentHistory"

ZERO = Decimal("0.00")


class PaymentError(ValueError):
    """Raised when a payment is rejected (non-positive or above the balance)."""


class StateInconsistencyError(Exception):
    """
    Stored totalAmount drifted from the server-computed total.

    Raised and recovered inside reconcile(); callers never see it.
    """

    def __init__(self, key: str, stored_total: Decimal, fresh_total: Decimal):
        super().__init__(f"{key}: stored total {stored_total} != computed total {fresh_total}")
        self.key = key
        self.stored_total = stored_total
        self.fresh_total = fresh_total


def batch_key(supplier_name: str, batch_number: str) -> str:
    return f"{supplier_name}-{batch_number}"


def _money(value) -> Decimal:
    return round_money(Decimal(str(value)))


@dataclass
class PaymentRecord:
    amount: Decimal
    date: str
    notes: str = ""

    def to_dict(self) -> dict:
        return {"amount": float(self.amount), "date": self.date, "notes": self.notes}

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentRecord":
        return cls(amount=_money(data.get("amount", 0)), date=data.get("date", ""), notes=data.get("notes") or "")


@dataclass
class PaymentStatus:
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    balance_amount: Decimal = ZERO
    is_paid: bool = False
    last_payment_date: str | None = None
    payments: list[PaymentRecord] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return self.paid_amount + self.balance_amount == self.total_amount

    def to_dict(self) -> dict:
        return {
            "isPaid": self.is_paid,
            "paidAmount": float(self.paid_amount),
            "balanceAmount": float(self.balance_amount),
            "lastPaymentDate": self.last_payment_date,
            "payments": [p.to_dict() for p in self.payments],
            "totalAmount": float(self.total_amount),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentStatus":
        return cls(
            total_amount=_money(data.get("totalAmount", 0)),
            paid_amount=_money(data.get("paidAmount", 0)),
            balance_amount=_money(data.get("balanceAmount", 0)),
            is_paid=bool(data.get("isPaid", False)),
            last_payment_date=data.get("lastPaymentDate"),
            payments=[PaymentRecord.from_dict(p) for p in data.get("payments") or []],
        )


class MemoryPaymentStore:
    """Process-local store; used by tests and one-shot scripts."""

    def __init__(self, documents: dict | None = None):
        self.documents = documents or {STATUS_DOCUMENT: {}, HISTORY_DOCUMENT: {}}

    def load(self) -> dict:
        return json.loads(json.dumps(self.documents))

    def save(self, documents: dict) -> None:
        self.documents = json.loads(json.dumps(documents))


class JsonFilePaymentStore:
    """
    One JSON file holding both documents, the on-disk analogue of the
    browser's local storage. Writes go through a temp file + rename so a
    crash never leaves half a document behind.
    """

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> dict:
        if not self.path.exists():
            return {STATUS_DOCUMENT: {}, HISTORY_DOCUMENT: {}}
        with self.path.open("r", encoding="utf-8") as fh:
            raw = fh.read().strip()
        if not raw:
            return {STATUS_DOCUMENT: {}, HISTORY_DOCUMENT: {}}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Payment state file {self.path} is not valid JSON: {exc}") from exc
        data.setdefault(STATUS_DOCUMENT, {})
        data.setdefault(HISTORY_DOCUMENT, {})
        return data

    def save(self, documents: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".payments-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(documents, fh, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class PaymentBalanceTracker:
    """
    Payment status per batch key, reconciled against seller-expense totals.

    Typical flow:
        tracker = PaymentBalanceTracker(JsonFilePaymentStore(path))
        tracker.reconcile(stock_service.get_seller_expenses())
        tracker.record_payment(batch_key("Acme", "B-1"), "250.00", "cheque 118")
    """

    def __init__(self, store):
        self.store = store
        documents = store.load()
        self._status = {
            key: PaymentStatus.from_dict(value)
            for key, value in documents.get(STATUS_DOCUMENT, {}).items()
        }
        self._history = {
            key: [PaymentRecord.from_dict(p) for p in records]
            for key, records in documents.get(HISTORY_DOCUMENT, {}).items()
        }
        # Server-computed totals seen by the last reconcile()
        self._totals: dict[str, Decimal] = {}

    # -------------------------------------------------------------------------
    # persistence
    # -------------------------------------------------------------------------

    def _save(self) -> None:
        self.store.save({
            STATUS_DOCUMENT: {key: status.to_dict() for key, status in self._status.items()},
            HISTORY_DOCUMENT: {
                key: [p.to_dict() for p in records] for key, records in self._history.items()
            },
        })

    # -------------------------------------------------------------------------
    # reconciliation
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_total(key: str, status: PaymentStatus, fresh_total: Decimal) -> None:
        if status.total_amount != fresh_total:
            raise StateInconsistencyError(key, status.total_amount, fresh_total)

    def _resync(self, key: str, fresh_total: Decimal) -> bool:
        status = self._status.get(key)
        if status is None:
            return False
        try:
            self._check_total(key, status, fresh_total)
        except StateInconsistencyError as exc:
            current_app.logger.warning("Payment total drift, resynchronizing: %s", exc)
            status.balance_amount = fresh_total - status.paid_amount
            status.total_amount = fresh_total
            status.is_paid = status.balance_amount <= 0
            return True
        return False

    def reconcile(self, groups) -> list[str]:
        """
        Learn fresh totals from seller-expense groups and resync drifted statuses.

        `groups` are the dicts returned by stock_service.get_seller_expenses().
        Returns the batch keys whose stored status changed.
        """
        changed = []
        for group in groups:
            key = batch_key(group["supplierName"], group["batchNumber"])
            fresh_total = _money(group["totalAmount"])
            self._totals[key] = fresh_total
            if self._resync(key, fresh_total):
                changed.append(key)
        if changed:
            self._save()
        return changed

    # -------------------------------------------------------------------------
    # queries
    # -------------------------------------------------------------------------

    def known_total(self, key: str) -> Decimal | None:
        if key in self._totals:
            return self._totals[key]
        status = self._status.get(key)
        return status.total_amount if status else None

    def get_status(self, key: str) -> PaymentStatus | None:
        return self._status.get(key)

    def current_balance(self, key: str) -> Decimal:
        status = self._status.get(key)
        if status is not None:
            return status.balance_amount
        total = self.known_total(key)
        if total is None:
            raise NotFoundError(f"Unknown batch: {key}")
        return total

    def get_history(self, key: str) -> list[PaymentRecord]:
        return list(self._history.get(key, []))

    def keys(self) -> list[str]:
        return sorted(set(self._totals) | set(self._status))

    # -------------------------------------------------------------------------
    # mutations
    # -------------------------------------------------------------------------

    def record_payment(self, key: str, amount, notes: str = "") -> PaymentStatus:
        try:
            amount = round_money(parse_decimal(amount, "amount"))
        except ValidationError as exc:
            raise PaymentError(str(exc)) from exc
        if amount <= 0:
            raise PaymentError("Payment amount must be greater than 0")

        total = self.known_total(key)
        if total is None:
            raise NotFoundError(f"Unknown batch: {key}")

        # A total that moved since the status was stored is resynced first
        self._resync(key, total)

        existing = self._status.get(key) or PaymentStatus(
            total_amount=total, paid_amount=ZERO, balance_amount=total
        )
        if amount > existing.balance_amount:
            raise PaymentError(
                f"Payment amount cannot exceed the balance of {existing.balance_amount}"
            )

        paid = existing.paid_amount + amount
        balance = total - paid
        now = to_utc_z(utcnow())
        record = PaymentRecord(amount=amount, date=now, notes=notes or "")

        status = PaymentStatus(
            total_amount=total,
            paid_amount=paid,
            balance_amount=balance,
            is_paid=balance <= 0,
            last_payment_date=now,
            payments=[*existing.payments, record],
        )
        self._status[key] = status
        self._history.setdefault(key, []).append(record)
        self._save()

        current_app.logger.info("Recorded payment of %s for %s; balance %s", amount, key, balance)
        return status

    def mark_unpaid(self, key: str) -> bool:
        """Drop all payment state for a batch. Returns whether anything was stored."""
        existed = self._status.pop(key, None) is not None
        existed = (self._history.pop(key, None) is not None) or existed
        self._save()
        if existed:
            current_app.logger.info("Cleared payment records for %s", key)
        return existed
