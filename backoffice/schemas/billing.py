from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.models.billing import Invoice, InvoiceStatus, PaymentProvider, PaymentStatus
from backoffice.services.common import billing_today


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    contract_id: UUID
    billing_month: date
    amount: Decimal
    status: InvoiceStatus
    effective_status: InvoiceStatus
    overdue_days: int = 0
    due_date: date
    issue_date: date
    pdf_url: str | None = None
    sent_at: datetime | None = None
    adjustment_note: str | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _derive_overdue(cls, data):
        if isinstance(data, Invoice):
            today = billing_today()
            values = {column.key: getattr(data, column.key) for column in Invoice.__table__.columns}
            values["effective_status"] = data.effective_status(today)
            values["overdue_days"] = data.overdue_days(today)
            return values
        return data


class InvoiceGenerate(BaseModel):
    billing_month: str | None = Field(default=None, description="YYYY-MM; defaults to current month")
    actor_user_id: str | None = Field(default=None, max_length=64)


class InvoiceAction(BaseModel):
    actor_user_id: str | None = Field(default=None, max_length=64)
    note: str | None = None


class ManualPaymentCreate(BaseModel):
    actor_user_id: str | None = Field(default=None, max_length=64)
    paid_at: datetime | None = None
    provider_payment_id: str | None = Field(default=None, max_length=120)
    note: str | None = None


class PaymentCreate(BaseModel):
    contract_id: UUID
    invoice_id: UUID | None = None
    provider: PaymentProvider = PaymentProvider.monthlypay
    provider_payment_id: str | None = Field(default=None, max_length=120)
    amount: Decimal = Field(ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    status: PaymentStatus = PaymentStatus.pending
    paid_at: datetime | None = None
    org_id: str | None = None

    @model_validator(mode="after")
    def _validate_paid_at(self) -> "PaymentCreate":
        if self.status == PaymentStatus.succeeded and self.paid_at is None:
            raise ValueError("paid_at is required when status is succeeded")
        return self


class PaymentSucceeded(BaseModel):
    paid_at: datetime | None = None


class PaymentFailed(BaseModel):
    reason: str = Field(min_length=1)


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    contract_id: UUID
    invoice_id: UUID | None = None
    provider: PaymentProvider
    provider_payment_id: str | None = None
    amount: Decimal
    currency: str
    status: PaymentStatus
    paid_at: datetime | None = None
    failure_reason: str | None = None
    created_at: datetime


class OverdueItemRead(BaseModel):
    invoice: InvoiceRead
    contract_id: UUID
    account_id: UUID
    account_name: str
    overdue_days: int
    urgency: str


class OverdueBoardRead(BaseModel):
    items: list[OverdueItemRead]
    count: int
    total_overdue_amount: Decimal
    failed_payments: list[PaymentRead]
