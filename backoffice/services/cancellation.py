import logging
from datetime import date

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.billing import PaymentStatus
from backoffice.models.contracts import ContractStatus
from backoffice.services.common import now_utc, require_reason
from backoffice.services.contract_lifecycle import (
    TransitionResult,
    cancellation_blockers,
    contract_lifecycle,
)

logger = logging.getLogger(__name__)


class Cancellations:
    @staticmethod
    async def request(
        db: Session,
        contract_id: str,
        reason: str,
        effective_date: date,
        actor_user_id: str | None = None,
    ) -> TransitionResult:
        """Move an active contract to cancel_pending and record the request details."""
        reason = require_reason(reason)
        contract = await repo.contracts.get(db, contract_id)
        if effective_date < contract.start_date:
            raise HTTPException(
                status_code=400, detail="Cancellation cannot take effect before the contract starts"
            )
        return await contract_lifecycle.change_status(
            db,
            contract_id,
            ContractStatus.cancel_pending,
            reason,
            actor_user_id=actor_user_id,
            extra_changes={
                "cancellation_requested_at": now_utc(),
                "cancellation_effective_date": effective_date,
                "cancellation_reason": reason,
            },
        )

    @staticmethod
    async def confirm(
        db: Session, contract_id: str, reason: str, actor_user_id: str | None = None
    ) -> TransitionResult:
        return await contract_lifecycle.change_status(
            db, contract_id, ContractStatus.cancelled, reason, actor_user_id=actor_user_id
        )

    @staticmethod
    async def queue(db: Session, org_id: str | None = None) -> list[dict]:
        """Pending cancellations with what still blocks each of them."""
        org_id = org_id or settings.default_org_id
        pending = await repo.contracts.list_by_status(db, org_id, ContractStatus.cancel_pending)
        items = []
        for contract in pending:
            invoices = await repo.invoices.list_by_contract(db, contract.id)
            last_invoice = invoices[0] if invoices else None
            last_payment = None
            if last_invoice is not None:
                payments = await repo.payments.list_by_invoice(db, last_invoice.id)
                last_payment = next(
                    (p for p in payments if p.status == PaymentStatus.succeeded), None
                )
            account = await repo.accounts.find(db, contract.account_id)
            blockers = await cancellation_blockers(db, contract)
            items.append(
                {
                    "contract": contract,
                    "account_name": account.account_name if account else None,
                    "last_invoice": last_invoice,
                    "last_payment": last_payment,
                    "route": await repo.routes.get_by_contract(db, contract.id),
                    "blockers": blockers,
                    "can_complete": not blockers,
                }
            )
        return items


cancellations = Cancellations()
