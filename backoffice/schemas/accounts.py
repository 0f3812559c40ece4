from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.route import IntegrationStatus


class AccountBase(BaseModel):
    account_name: str = Field(min_length=1, max_length=200)
    admin_email: str = Field(min_length=3, max_length=255)
    postal_code: str | None = Field(default=None, max_length=16)
    prefecture: str | None = Field(default=None, max_length=40)
    address_detail: str | None = Field(default=None, max_length=255)
    phone_area: str | None = Field(default=None, max_length=8)
    phone_local: str | None = Field(default=None, max_length=8)
    phone_number: str | None = Field(default=None, max_length=8)
    account_manager: str | None = Field(default=None, max_length=120)
    line_official_notification: bool = False
    memo: str | None = None
    instagram_integration: IntegrationStatus = IntegrationStatus.not_connected
    gbp_management: IntegrationStatus = IntegrationStatus.not_connected
    instagram_gbp_integration: IntegrationStatus = IntegrationStatus.not_connected


class AccountCreate(AccountBase):
    org_id: str | None = None


class AccountUpdate(BaseModel):
    account_name: str | None = Field(default=None, min_length=1, max_length=200)
    admin_email: str | None = Field(default=None, min_length=3, max_length=255)
    postal_code: str | None = Field(default=None, max_length=16)
    prefecture: str | None = Field(default=None, max_length=40)
    address_detail: str | None = Field(default=None, max_length=255)
    phone_area: str | None = Field(default=None, max_length=8)
    phone_local: str | None = Field(default=None, max_length=8)
    phone_number: str | None = Field(default=None, max_length=8)
    account_manager: str | None = Field(default=None, max_length=120)
    line_official_notification: bool | None = None
    memo: str | None = None
    instagram_integration: IntegrationStatus | None = None
    gbp_management: IntegrationStatus | None = None
    instagram_gbp_integration: IntegrationStatus | None = None


class AccountRead(AccountBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    phone: str | None = None
    created_at: datetime
    updated_at: datetime


class PlanBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    monthly_price: Decimal = Field(ge=0)
    setup_fee: Decimal | None = Field(default=None, ge=0)
    is_active: bool = True


class PlanCreate(PlanBase):
    org_id: str | None = None


class PlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    monthly_price: Decimal | None = Field(default=None, ge=0)
    setup_fee: Decimal | None = Field(default=None, ge=0)
    is_active: bool | None = None


class PlanRead(PlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    created_at: datetime
    updated_at: datetime
