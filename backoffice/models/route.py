import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db import Base


class RouteStatus(enum.Enum):
    preparing = "preparing"
    running = "running"
    paused = "paused"
    deleting = "deleting"
    deleted = "deleted"
    error = "error"


class IntegrationStatus(enum.Enum):
    not_connected = "not_connected"
    connected = "connected"
    error = "error"
    pending = "pending"


PLATFORMS = ("facebook", "instagram", "gbp", "line")

# Route states in which the store is no longer being operated
STOPPED_ROUTE_STATUSES = frozenset({RouteStatus.paused, RouteStatus.deleted})


class RouteIntegration(Base):
    __tablename__ = "route_integrations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contracts.id"), nullable=False, unique=True
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    route_customer_id: Mapped[str | None] = mapped_column(String(120))
    route_store_id: Mapped[str | None] = mapped_column(String(120))
    location_id: Mapped[str | None] = mapped_column(String(120))
    location_name: Mapped[str | None] = mapped_column(String(200))

    status: Mapped[RouteStatus] = mapped_column(
        Enum(RouteStatus), default=RouteStatus.preparing
    )
    running_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    stopped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_error: Mapped[str | None] = mapped_column(Text)

    facebook_status: Mapped[IntegrationStatus] = mapped_column(
        Enum(IntegrationStatus), default=IntegrationStatus.not_connected
    )
    instagram_status: Mapped[IntegrationStatus] = mapped_column(
        Enum(IntegrationStatus), default=IntegrationStatus.not_connected
    )
    gbp_status: Mapped[IntegrationStatus] = mapped_column(
        Enum(IntegrationStatus), default=IntegrationStatus.not_connected
    )
    line_status: Mapped[IntegrationStatus] = mapped_column(
        Enum(IntegrationStatus), default=IntegrationStatus.not_connected
    )
    facebook_error: Mapped[str | None] = mapped_column(Text)
    instagram_error: Mapped[str | None] = mapped_column(Text)
    gbp_error: Mapped[str | None] = mapped_column(Text)
    line_error: Mapped[str | None] = mapped_column(Text)
    gbp_group_id: Mapped[str | None] = mapped_column(String(120))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    contract = relationship("Contract", back_populates="route_integration")

    def platform_statuses(self) -> dict[str, IntegrationStatus]:
        return {name: getattr(self, f"{name}_status") for name in PLATFORMS}

    @property
    def has_integration_errors(self) -> bool:
        return any(
            status == IntegrationStatus.error for status in self.platform_statuses().values()
        )

    @property
    def is_fully_connected(self) -> bool:
        return all(
            status == IntegrationStatus.connected
            for status in self.platform_statuses().values()
        )

    @property
    def is_stopped(self) -> bool:
        return self.status in STOPPED_ROUTE_STATUSES
