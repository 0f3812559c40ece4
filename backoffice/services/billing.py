"""Invoices and payments.

Invoice status moves are one-directional. Overdue is also derived at read time
from the due date (``Invoice.effective_status``), so an unpaid ``sent`` invoice
past due shows as overdue without a stored transition.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.billing import InvoiceStatus, PaymentProvider, PaymentStatus
from backoffice.models.contracts import ContractStatus
from backoffice.models.ops_log import OpsLogAction
from backoffice.schemas.billing import PaymentCreate
from backoffice.services.common import (
    billing_today,
    clamp_day,
    coerce_uuid,
    current_billing_month,
    format_month,
    next_billing_month,
    now_utc,
    parse_month,
    round_money,
    validate_enum,
)
from backoffice.services.locks import aggregate_locks
from backoffice.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

INVOICE_TRANSITIONS = {
    InvoiceStatus.draft: {InvoiceStatus.sent, InvoiceStatus.void},
    InvoiceStatus.sent: {InvoiceStatus.paid, InvoiceStatus.overdue, InvoiceStatus.void},
    InvoiceStatus.overdue: {InvoiceStatus.paid, InvoiceStatus.void},
    InvoiceStatus.paid: set(),
    InvoiceStatus.void: set(),
}

INVOICEABLE_CONTRACT_STATUSES = frozenset({ContractStatus.active, ContractStatus.cancel_pending})


def _ensure_invoice_transition(invoice, target: InvoiceStatus) -> None:
    if target not in INVOICE_TRANSITIONS.get(invoice.status, set()):
        raise HTTPException(
            status_code=400,
            detail=f"Invoice cannot move from {invoice.status.value} to {target.value}",
        )


def invoice_due_date(billing_month, payment_day: int):
    """The payment day in the month after the billing month, clamped to month end."""
    return clamp_day(next_billing_month(billing_month), payment_day)


@asynccontextmanager
async def locked_invoice(db: Session, invoice_id):
    """Hold the owning contract's lock, then the invoice's, and yield a fresh invoice.

    Invoice state feeds the contract cancellation guard, so invoice moves
    serialize with ``change_status`` on the same contract.
    """
    invoice = await repo.invoices.get(db, invoice_id)
    async with aggregate_locks.hold("contract", invoice.contract_id):
        async with aggregate_locks.hold("invoice", invoice.id):
            yield await repo.invoices.get(db, invoice.id, fresh=True)


@asynccontextmanager
async def locked_payment(db: Session, payment_id):
    """Contract lock first, then the payment's; yields a fresh payment."""
    payment = await repo.payments.get(db, payment_id)
    async with aggregate_locks.hold("contract", payment.contract_id):
        async with aggregate_locks.hold("payment", payment.id):
            yield await repo.payments.get(db, payment.id, fresh=True)


class Invoices(ListResponseMixin):
    @staticmethod
    async def get(db: Session, invoice_id: str):
        return await repo.invoices.get(db, invoice_id)

    @staticmethod
    async def list(
        db: Session,
        org_id: str | None,
        billing_month: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ):
        org_id = org_id or settings.default_org_id
        status = validate_enum(status, InvoiceStatus, "status")
        if billing_month:
            items = await repo.invoices.list_by_month(db, org_id, parse_month(billing_month))
        elif status:
            stored = [status]
            if status == InvoiceStatus.overdue:
                stored.append(InvoiceStatus.sent)
            items = await repo.invoices.list_by_status(db, org_id, stored)
        else:
            return await repo.invoices.list_all(db, org_id, limit, offset)
        if status:
            today = billing_today()
            items = [invoice for invoice in items if invoice.effective_status(today) == status]
        return items[offset : offset + limit]

    @staticmethod
    async def list_by_contract(db: Session, contract_id: str):
        await repo.contracts.get(db, contract_id)
        return await repo.invoices.list_by_contract(db, contract_id)

    @staticmethod
    async def list_uninvoiced_contracts(db: Session, org_id: str | None, billing_month=None):
        """Invoiceable contracts that have no invoice for the month yet."""
        org_id = org_id or settings.default_org_id
        month = parse_month(billing_month) if billing_month else current_billing_month()
        candidates = await repo.contracts.filter(
            db, org_id, statuses=INVOICEABLE_CONTRACT_STATUSES, limit=10_000
        )
        invoiced = {invoice.contract_id for invoice in await repo.invoices.list_by_month(db, org_id, month)}
        return [contract for contract in candidates if contract.id not in invoiced]

    @staticmethod
    async def generate(
        db: Session, contract_id: str, billing_month=None, actor_user_id: str | None = None
    ):
        """Create the draft invoice for a contract and month (one per pair).

        Raises:
            HTTPException: 400 if the contract cannot be invoiced, 409 on a duplicate
        """
        month = parse_month(billing_month) if billing_month else current_billing_month()
        contract_key = coerce_uuid(contract_id)
        async with aggregate_locks.hold("contract", contract_key), aggregate_locks.hold(
            "contract-invoice", (contract_key, month)
        ):
            # A cancellation committed while we waited must be visible here
            contract = await repo.contracts.get(db, contract_id, fresh=True)
            if contract.status not in INVOICEABLE_CONTRACT_STATUSES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Contracts in {contract.status.value} status cannot be invoiced",
                )
            if await repo.invoices.get_by_contract_month(db, contract.id, month):
                raise HTTPException(
                    status_code=409,
                    detail=f"Invoice already exists for {format_month(month)}",
                )
            try:
                invoice = await repo.invoices.create(
                    db,
                    org_id=contract.org_id,
                    contract_id=contract.id,
                    billing_month=month,
                    amount=round_money(contract.contract_monthly_price_snapshot),
                    status=InvoiceStatus.draft,
                    due_date=invoice_due_date(month, contract.payment_day),
                    issue_date=billing_today(),
                )
                await repo.ops_logs.append(
                    db,
                    org_id=contract.org_id,
                    contract_id=contract.id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.invoice_generated,
                    after={
                        "invoice_id": str(invoice.id),
                        "billing_month": format_month(month),
                        "amount": str(invoice.amount),
                    },
                )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise HTTPException(
                    status_code=409,
                    detail=f"Invoice already exists for {format_month(month)}",
                ) from exc
            except Exception:
                db.rollback()
                raise
            db.refresh(invoice)
            logger.info(
                "Generated invoice %s for contract %s (%s)", invoice.id, contract.id, format_month(month)
            )
            return invoice

    @staticmethod
    async def send(db: Session, invoice_id: str, actor_user_id: str | None = None):
        async with locked_invoice(db, invoice_id) as invoice:
            _ensure_invoice_transition(invoice, InvoiceStatus.sent)
            previous = invoice.status
            try:
                await repo.invoices.mark_sent(db, invoice)
                await repo.ops_logs.append(
                    db,
                    org_id=invoice.org_id,
                    contract_id=invoice.contract_id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.invoice_sent,
                    before={"invoice_id": str(invoice.id), "status": previous.value},
                    after={"invoice_id": str(invoice.id), "status": InvoiceStatus.sent.value},
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(invoice)
            logger.info("Invoice %s sent", invoice.id)
            return invoice

    @staticmethod
    async def record_manual_payment(
        db: Session,
        invoice_id: str,
        actor_user_id: str | None = None,
        paid_at=None,
        provider_payment_id: str | None = None,
        note: str | None = None,
    ):
        """Record a manual payment for the full amount and settle the invoice.

        The payment, the invoice status and the ops log row commit together.
        """
        async with locked_invoice(db, invoice_id) as invoice:
            _ensure_invoice_transition(invoice, InvoiceStatus.paid)
            previous = invoice.status
            try:
                payment = await repo.payments.create(
                    db,
                    org_id=invoice.org_id,
                    contract_id=invoice.contract_id,
                    invoice_id=invoice.id,
                    provider=PaymentProvider.manual,
                    provider_payment_id=provider_payment_id or f"manual-{uuid.uuid4().hex[:12]}",
                    amount=invoice.amount,
                    currency=settings.billing_currency,
                    status=PaymentStatus.succeeded,
                    paid_at=paid_at or now_utc(),
                )
                await repo.invoices.mark_paid(db, invoice)
                await repo.ops_logs.append(
                    db,
                    org_id=invoice.org_id,
                    contract_id=invoice.contract_id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.payment_manual_recorded,
                    before={"invoice_id": str(invoice.id), "status": previous.value},
                    after={
                        "invoice_id": str(invoice.id),
                        "status": InvoiceStatus.paid.value,
                        "payment_id": str(payment.id),
                        "amount": str(payment.amount),
                    },
                    reason=note,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(payment)
            logger.info("Manual payment %s recorded for invoice %s", payment.id, invoice.id)
            return payment

    @staticmethod
    async def mark_overdue(db: Session, invoice_id: str, actor_user_id: str | None = None):
        async with locked_invoice(db, invoice_id) as invoice:
            _ensure_invoice_transition(invoice, InvoiceStatus.overdue)
            previous = invoice.status
            try:
                await repo.invoices.mark_overdue(db, invoice)
                await repo.ops_logs.append(
                    db,
                    org_id=invoice.org_id,
                    contract_id=invoice.contract_id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.invoice_overdue,
                    before={"invoice_id": str(invoice.id), "status": previous.value},
                    after={"invoice_id": str(invoice.id), "status": InvoiceStatus.overdue.value},
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(invoice)
            logger.info("Invoice %s marked overdue", invoice.id)
            return invoice

    @staticmethod
    async def void(
        db: Session, invoice_id: str, note: str | None = None, actor_user_id: str | None = None
    ):
        async with locked_invoice(db, invoice_id) as invoice:
            _ensure_invoice_transition(invoice, InvoiceStatus.void)
            previous = invoice.status
            try:
                await repo.invoices.mark_void(db, invoice, note)
                await repo.ops_logs.append(
                    db,
                    org_id=invoice.org_id,
                    contract_id=invoice.contract_id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.invoice_voided,
                    before={"invoice_id": str(invoice.id), "status": previous.value},
                    after={"invoice_id": str(invoice.id), "status": InvoiceStatus.void.value},
                    reason=note,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(invoice)
            logger.info("Invoice %s voided", invoice.id)
            return invoice

    async def generate_for_month(
        self, db: Session, org_id: str | None = None, billing_month=None
    ) -> dict:
        """Generate invoices for every invoiceable contract not yet billed for the month."""
        month = parse_month(billing_month) if billing_month else current_billing_month()
        generated = []
        for contract in await self.list_uninvoiced_contracts(db, org_id, month):
            invoice = await self.generate(db, contract.id, month)
            generated.append(invoice.id)
        logger.info("Invoice run %s: %d generated", format_month(month), len(generated))
        return {"billing_month": format_month(month), "generated": generated}


class Payments:
    @staticmethod
    async def create(db: Session, payload: PaymentCreate):
        # Payments feed the activation guard, so they serialize on the contract
        async with aggregate_locks.hold("contract", coerce_uuid(payload.contract_id)):
            contract = await repo.contracts.get(db, payload.contract_id)
            if payload.invoice_id:
                invoice = await repo.invoices.get(db, payload.invoice_id)
                if invoice.contract_id != contract.id:
                    raise HTTPException(
                        status_code=400, detail="Invoice does not belong to this contract"
                    )
            data = payload.model_dump(exclude={"org_id", "currency", "amount"})
            try:
                payment = await repo.payments.create(
                    db,
                    org_id=payload.org_id or contract.org_id,
                    currency=payload.currency or settings.billing_currency,
                    amount=round_money(payload.amount),
                    **data,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(payment)
            logger.info("Payment %s created for contract %s", payment.id, contract.id)
            return payment

    @staticmethod
    async def get(db: Session, payment_id: str):
        return await repo.payments.get(db, payment_id)

    @staticmethod
    async def list_by_contract(db: Session, contract_id: str):
        await repo.contracts.get(db, contract_id)
        return await repo.payments.list_by_contract(db, contract_id)

    @staticmethod
    async def list_by_invoice(db: Session, invoice_id: str):
        await repo.invoices.get(db, invoice_id)
        return await repo.payments.list_by_invoice(db, invoice_id)

    @staticmethod
    async def list_by_status(db: Session, org_id: str | None, status: str):
        status = validate_enum(status, PaymentStatus, "status")
        return await repo.payments.list_by_status(db, org_id or settings.default_org_id, status)

    @staticmethod
    async def mark_succeeded(db: Session, payment_id: str, paid_at=None):
        async with locked_payment(db, payment_id) as payment:
            if payment.status != PaymentStatus.pending:
                raise HTTPException(
                    status_code=400,
                    detail=f"Payment cannot succeed from {payment.status.value}",
                )
            try:
                await repo.payments.mark_succeeded(db, payment, paid_at)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(payment)
            logger.info("Payment %s succeeded", payment.id)
            return payment

    @staticmethod
    async def mark_failed(db: Session, payment_id: str, reason: str):
        async with locked_payment(db, payment_id) as payment:
            if payment.status != PaymentStatus.pending:
                raise HTTPException(
                    status_code=400,
                    detail=f"Payment cannot fail from {payment.status.value}",
                )
            try:
                await repo.payments.mark_failed(db, payment, reason)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(payment)
            logger.warning("Payment %s failed: %s", payment.id, reason)
            return payment


invoices = Invoices()
payments = Payments()
