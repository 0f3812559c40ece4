from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.route import IntegrationStatus, RouteStatus


class RouteIntegrationCreate(BaseModel):
    route_customer_id: str | None = Field(default=None, max_length=120)
    route_store_id: str | None = Field(default=None, max_length=120)
    location_id: str | None = Field(default=None, max_length=120)
    location_name: str | None = Field(default=None, max_length=200)
    gbp_group_id: str | None = Field(default=None, max_length=120)
    actor_user_id: str | None = Field(default=None, max_length=64)


class RouteAction(BaseModel):
    reason: str | None = None
    actor_user_id: str | None = Field(default=None, max_length=64)


class RouteErrorReport(BaseModel):
    message: str = Field(min_length=1)
    actor_user_id: str | None = Field(default=None, max_length=64)


class RouteIntegrationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    contract_id: UUID
    account_id: UUID
    route_customer_id: str | None = None
    route_store_id: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    status: RouteStatus
    running_started_at: datetime | None = None
    stopped_at: datetime | None = None
    last_error: str | None = None
    facebook_status: IntegrationStatus
    instagram_status: IntegrationStatus
    gbp_status: IntegrationStatus
    line_status: IntegrationStatus
    facebook_error: str | None = None
    instagram_error: str | None = None
    gbp_error: str | None = None
    line_error: str | None = None
    gbp_group_id: str | None = None
    has_integration_errors: bool
    is_fully_connected: bool
    created_at: datetime
    updated_at: datetime
