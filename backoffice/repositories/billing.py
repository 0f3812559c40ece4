from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import exists, select

from backoffice.models.billing import Invoice, InvoiceStatus, Payment, PaymentStatus
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import coerce_uuid, now_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class InvoiceRepository(Repository):
    model = Invoice

    @staticmethod
    async def list_by_contract(db: Session, contract_id) -> list[Invoice]:
        await simulate_latency()
        stmt = (
            select(Invoice)
            .where(Invoice.contract_id == coerce_uuid(contract_id))
            .order_by(Invoice.billing_month.desc(), Invoice.created_at.desc())
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_month(db: Session, org_id: str, billing_month: date) -> list[Invoice]:
        await simulate_latency()
        stmt = (
            select(Invoice)
            .where(Invoice.org_id == org_id, Invoice.billing_month == billing_month)
            .order_by(Invoice.due_date, Invoice.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_status(
        db: Session, org_id: str, statuses: list[InvoiceStatus]
    ) -> list[Invoice]:
        await simulate_latency()
        stmt = (
            select(Invoice)
            .where(Invoice.org_id == org_id, Invoice.status.in_(statuses))
            .order_by(Invoice.due_date, Invoice.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_all(
        db: Session, org_id: str, limit: int = 50, offset: int = 0
    ) -> list[Invoice]:
        await simulate_latency()
        stmt = (
            select(Invoice)
            .where(Invoice.org_id == org_id)
            .order_by(Invoice.billing_month.desc(), Invoice.due_date, Invoice.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def get_by_contract_month(db: Session, contract_id, billing_month: date) -> Invoice | None:
        await simulate_latency()
        stmt = select(Invoice).where(
            Invoice.contract_id == coerce_uuid(contract_id),
            Invoice.billing_month == billing_month,
        )
        return db.scalars(stmt).first()

    @classmethod
    async def create(cls, db: Session, **fields) -> Invoice:
        await simulate_latency()
        return cls._stage(db, **fields)

    @staticmethod
    async def mark_sent(db: Session, invoice: Invoice, sent_at: datetime | None = None) -> Invoice:
        await simulate_latency()
        invoice.status = InvoiceStatus.sent
        invoice.sent_at = sent_at or now_utc()
        invoice.updated_at = now_utc()
        return invoice

    @staticmethod
    async def mark_paid(db: Session, invoice: Invoice) -> Invoice:
        await simulate_latency()
        invoice.status = InvoiceStatus.paid
        invoice.updated_at = now_utc()
        return invoice

    @staticmethod
    async def mark_overdue(db: Session, invoice: Invoice) -> Invoice:
        await simulate_latency()
        invoice.status = InvoiceStatus.overdue
        invoice.updated_at = now_utc()
        return invoice

    @staticmethod
    async def mark_void(db: Session, invoice: Invoice, note: str | None = None) -> Invoice:
        await simulate_latency()
        invoice.status = InvoiceStatus.void
        if note:
            invoice.adjustment_note = note
        invoice.updated_at = now_utc()
        return invoice


class PaymentRepository(Repository):
    model = Payment

    @staticmethod
    async def list_by_contract(db: Session, contract_id) -> list[Payment]:
        await simulate_latency()
        stmt = (
            select(Payment)
            .where(Payment.contract_id == coerce_uuid(contract_id))
            .order_by(Payment.created_at.desc(), Payment.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_invoice(db: Session, invoice_id) -> list[Payment]:
        await simulate_latency()
        stmt = (
            select(Payment)
            .where(Payment.invoice_id == coerce_uuid(invoice_id))
            .order_by(Payment.created_at.desc(), Payment.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_status(db: Session, org_id: str, status: PaymentStatus) -> list[Payment]:
        await simulate_latency()
        stmt = (
            select(Payment)
            .where(Payment.org_id == org_id, Payment.status == status)
            .order_by(Payment.created_at.desc(), Payment.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def has_succeeded(db: Session, contract_id) -> bool:
        await simulate_latency()
        stmt = select(
            exists().where(
                Payment.contract_id == coerce_uuid(contract_id),
                Payment.status == PaymentStatus.succeeded,
            )
        )
        return bool(db.scalar(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> Payment:
        await simulate_latency()
        return cls._stage(db, **fields)

    @staticmethod
    async def mark_succeeded(db: Session, payment: Payment, paid_at: datetime | None = None) -> Payment:
        await simulate_latency()
        payment.status = PaymentStatus.succeeded
        payment.paid_at = paid_at or now_utc()
        payment.failure_reason = None
        return payment

    @staticmethod
    async def mark_failed(db: Session, payment: Payment, reason: str) -> Payment:
        await simulate_latency()
        payment.status = PaymentStatus.failed
        payment.failure_reason = reason
        return payment


invoices = InvoiceRepository()
payments = PaymentRepository()
