from __future__ import annotations

from pydantic import BaseModel

from backoffice.schemas.billing import InvoiceRead, PaymentRead
from backoffice.schemas.contracts import ContractRead
from backoffice.schemas.routes import RouteIntegrationRead


class CancellationQueueItem(BaseModel):
    contract: ContractRead
    account_name: str | None = None
    last_invoice: InvoiceRead | None = None
    last_payment: PaymentRead | None = None
    route: RouteIntegrationRead | None = None
    blockers: list[str]
    can_complete: bool
