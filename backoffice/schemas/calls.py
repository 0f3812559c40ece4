from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.calls import CallRecordStatus, CallResult


class CallRecordBase(BaseModel):
    customer_id: str = Field(min_length=1, max_length=64)
    store_name: str = Field(min_length=1, max_length=200)
    customer_name: str = Field(min_length=1, max_length=160)
    customer_name_kana: str | None = Field(default=None, max_length=160)
    phone1: str = Field(min_length=1, max_length=40)
    phone2: str | None = Field(default=None, max_length=40)
    industry: str | None = Field(default=None, max_length=120)
    address: str | None = None
    plan_name: str | None = Field(default=None, max_length=120)
    plan_price: Decimal | None = Field(default=None, ge=0)
    acquisition_company: str | None = Field(default=None, max_length=160)
    meo_provider: str | None = Field(default=None, max_length=120)
    re_call_assignee: str | None = Field(default=None, max_length=120)
    re_call_date: date | None = None
    re_call_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    notes: str | None = None
    status: CallRecordStatus = CallRecordStatus.new


class CallRecordCreate(CallRecordBase):
    org_id: str | None = None
    created_by: str | None = Field(default=None, max_length=64)


class CallRecordUpdate(BaseModel):
    store_name: str | None = Field(default=None, min_length=1, max_length=200)
    customer_name: str | None = Field(default=None, min_length=1, max_length=160)
    customer_name_kana: str | None = Field(default=None, max_length=160)
    phone1: str | None = Field(default=None, min_length=1, max_length=40)
    phone2: str | None = Field(default=None, max_length=40)
    industry: str | None = Field(default=None, max_length=120)
    address: str | None = None
    plan_name: str | None = Field(default=None, max_length=120)
    plan_price: Decimal | None = Field(default=None, ge=0)
    acquisition_company: str | None = Field(default=None, max_length=160)
    meo_provider: str | None = Field(default=None, max_length=120)
    re_call_assignee: str | None = Field(default=None, max_length=120)
    re_call_date: date | None = None
    re_call_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    notes: str | None = None
    status: CallRecordStatus | None = None
    modified_by: str | None = Field(default=None, max_length=64)


class CallRecordRead(CallRecordBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    created_by: str | None = None
    modified_by: str | None = None
    created_at: datetime
    updated_at: datetime


class CallNeighborsRead(BaseModel):
    first_id: UUID | None = None
    previous_id: UUID | None = None
    next_id: UUID | None = None
    last_id: UUID | None = None
    position: int
    total: int


class CallStart(BaseModel):
    caller_employee_name: str = Field(min_length=1, max_length=160)
    caller_employee_id: str | None = Field(default=None, max_length=64)
    started_at: datetime | None = None
    notes: str | None = None


class CallEnd(BaseModel):
    result: CallResult
    result_note: str | None = None
    ended_at: datetime | None = None


class CallHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    call_record_id: UUID
    org_id: str
    caller_employee_id: str | None = None
    caller_employee_name: str
    result: CallResult | None = None
    result_note: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_seconds: int | None = None
    notes: str | None = None
    created_at: datetime
