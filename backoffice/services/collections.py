import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.billing import InvoiceStatus, PaymentStatus
from backoffice.services.common import billing_today, round_money

logger = logging.getLogger(__name__)


def classify_urgency(overdue_days: int) -> str:
    if overdue_days >= settings.overdue_critical_days:
        return "critical"
    if overdue_days >= settings.overdue_warning_days:
        return "warning"
    return "normal"


class Collections:
    @staticmethod
    async def overdue_board(db: Session, org_id: str | None = None, today: date | None = None) -> dict:
        """Effectively overdue invoices, worst first, plus failed payments."""
        org_id = org_id or settings.default_org_id
        today = today or billing_today()
        candidates = await repo.invoices.list_by_status(
            db, org_id, [InvoiceStatus.sent, InvoiceStatus.overdue]
        )
        items = []
        total = Decimal("0.00")
        for invoice in candidates:
            if invoice.effective_status(today) != InvoiceStatus.overdue:
                continue
            contract = await repo.contracts.get(db, invoice.contract_id)
            account = await repo.accounts.get(db, contract.account_id)
            days = invoice.overdue_days(today)
            items.append(
                {
                    "invoice": invoice,
                    "contract_id": contract.id,
                    "account_id": account.id,
                    "account_name": account.account_name,
                    "overdue_days": days,
                    "urgency": classify_urgency(days),
                }
            )
            total += invoice.amount
        items.sort(key=lambda item: item["overdue_days"], reverse=True)
        failed = await repo.payments.list_by_status(db, org_id, PaymentStatus.failed)
        logger.debug("Overdue board for %s: %d invoices", org_id, len(items))
        return {
            "items": items,
            "count": len(items),
            "total_overdue_amount": round_money(total),
            "failed_payments": failed,
        }


collections = Collections()
