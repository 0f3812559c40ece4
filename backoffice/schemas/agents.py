from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.agents import (
    AgentContractStatus,
    BankAccountType,
    PayoutMethod,
    PayoutStatus,
    SettlementStatus,
)


class AgentBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    contract_start_date: date
    contract_end_date: date | None = None
    stock_unit_price: Decimal = Field(ge=0)
    monthly_target: int = Field(default=0, ge=0)
    settlement_type: str = Field(default="stock_only", max_length=40)
    is_active: bool = True
    contact_email: str | None = Field(default=None, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=40)
    bank_name: str | None = Field(default=None, max_length=120)
    bank_branch: str | None = Field(default=None, max_length=120)
    bank_account_type: BankAccountType | None = None
    bank_account_number: str | None = Field(default=None, max_length=40)
    bank_account_holder: str | None = Field(default=None, max_length=160)
    notes: str | None = None


class AgentCreate(AgentBase):
    org_id: str | None = None


class AgentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    contract_end_date: date | None = None
    stock_unit_price: Decimal | None = Field(default=None, ge=0)
    monthly_target: int | None = Field(default=None, ge=0)
    contact_email: str | None = Field(default=None, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=40)
    bank_name: str | None = Field(default=None, max_length=120)
    bank_branch: str | None = Field(default=None, max_length=120)
    bank_account_type: BankAccountType | None = None
    bank_account_number: str | None = Field(default=None, max_length=40)
    bank_account_holder: str | None = Field(default=None, max_length=160)
    notes: str | None = None


class AgentRead(AgentBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    has_bank_details: bool
    created_at: datetime
    updated_at: datetime


class AgentContractCreate(BaseModel):
    contract_id: UUID
    billing_month: str = Field(description="YYYY-MM")
    status: AgentContractStatus = AgentContractStatus.active


class AgentContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    contract_id: UUID
    billing_month: date
    status: AgentContractStatus
    created_at: datetime


class PerformanceUpsert(BaseModel):
    acquired_count: int = Field(ge=0)


class PerformanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    billing_month: date
    acquired_count: int
    created_at: datetime


class EntitlementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    billing_month: date
    entitled_count: int
    earned_count: int
    deficit_count: int
    created_at: datetime


class SettlementCreate(BaseModel):
    billing_month: str = Field(description="YYYY-MM")


class SettlementAction(BaseModel):
    actor_user_id: str | None = Field(default=None, max_length=64)


class PayoutRequest(BaseModel):
    method: PayoutMethod
    provider_id: str | None = Field(default=None, max_length=120)
    actor_user_id: str | None = Field(default=None, max_length=64)


class PayoutFailure(BaseModel):
    reason: str = Field(min_length=1)
    actor_user_id: str | None = Field(default=None, max_length=64)


class SettlementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    billing_month: date
    entitled_count: int
    payable_count: int
    cancelled_offset: int
    unit_price: Decimal
    total_amount: Decimal
    status: SettlementStatus
    invoice_id: str | None = None
    payout_method: PayoutMethod | None = None
    payout_status: PayoutStatus
    payout_requested_at: datetime | None = None
    payout_completed_at: datetime | None = None
    payout_provider: str | None = None
    payout_provider_id: str | None = None
    payout_error_reason: str | None = None
    created_at: datetime
    updated_at: datetime
