import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db import Base


class OpsLogAction(enum.Enum):
    status_changed = "status_changed"
    note_added = "note_added"
    route_created = "route_created"
    route_pause = "route_pause"
    route_resume = "route_resume"
    route_delete = "route_delete"
    route_error = "route_error"
    payment_manual_recorded = "payment_manual_recorded"
    invoice_generated = "invoice_generated"
    invoice_sent = "invoice_sent"
    invoice_overdue = "invoice_overdue"
    invoice_voided = "invoice_voided"
    cancellation_requested = "cancellation_requested"
    agent_settlement_invoiced = "agent_settlement_invoiced"
    agent_settlement_paid = "agent_settlement_paid"
    agent_payout_requested = "agent_payout_requested"
    agent_payout_processing = "agent_payout_processing"
    agent_payout_completed = "agent_payout_completed"
    agent_payout_failed = "agent_payout_failed"
    agent_payout_cancelled = "agent_payout_cancelled"


class OpsLog(Base):
    """Append-only audit row; tied to a contract or, for settlements, to an agent."""

    __tablename__ = "ops_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contract_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contracts.id"), index=True
    )
    agent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("agents.id"), index=True
    )
    actor_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[OpsLogAction] = mapped_column(Enum(OpsLogAction), nullable=False)
    before: Mapped[dict | None] = mapped_column(JSON)
    after: Mapped[dict | None] = mapped_column(JSON)
    reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class OpsLogImmutableError(Exception):
    """Raised when an ops log row is updated or deleted."""


@event.listens_for(OpsLog, "before_update")
def _reject_ops_log_update(mapper, connection, target):
    raise OpsLogImmutableError(f"Ops log {target.id} is write-once")


@event.listens_for(OpsLog, "before_delete")
def _reject_ops_log_delete(mapper, connection, target):
    raise OpsLogImmutableError(f"Ops log {target.id} is write-once")
