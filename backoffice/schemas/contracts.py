from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.models.contracts import BillingMethod, ContractStatus
from backoffice.models.ops_log import OpsLogAction


class ContractBase(BaseModel):
    account_id: UUID
    plan_id: UUID
    start_date: date
    end_date: date | None = None
    billing_method: BillingMethod = BillingMethod.monthlypay
    sales_owner_user_id: str | None = Field(default=None, max_length=64)
    ops_owner_user_id: str | None = Field(default=None, max_length=64)
    payment_day: int = Field(default=27, ge=1, le=31)
    notes: str | None = None


class ContractCreate(ContractBase):
    org_id: str | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> "ContractCreate":
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class ContractUpdate(BaseModel):
    """Editable contract fields; status and the price snapshot are not among them."""

    end_date: date | None = None
    billing_method: BillingMethod | None = None
    sales_owner_user_id: str | None = Field(default=None, max_length=64)
    ops_owner_user_id: str | None = Field(default=None, max_length=64)
    payment_day: int | None = Field(default=None, ge=1, le=31)
    notes: str | None = None


class ContractRead(ContractBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    status: ContractStatus
    contract_monthly_price_snapshot: Decimal
    cancellation_requested_at: datetime | None = None
    cancellation_effective_date: date | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class ContractStatusChange(BaseModel):
    status: ContractStatus
    reason: str
    actor_user_id: str | None = Field(default=None, max_length=64)


class TransitionOptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: ContractStatus
    allowed: bool
    blockers: list[str]


class CancellationRequest(BaseModel):
    reason: str
    effective_date: date
    actor_user_id: str | None = Field(default=None, max_length=64)


class NoteCreate(BaseModel):
    note: str
    actor_user_id: str | None = Field(default=None, max_length=64)


class OpsLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    contract_id: UUID | None = None
    agent_id: UUID | None = None
    actor_user_id: str
    action: OpsLogAction
    before: dict | None = None
    after: dict | None = None
    reason: str | None = None
    created_at: datetime
