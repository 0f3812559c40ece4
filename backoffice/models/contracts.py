import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db import Base


class ContractStatus(enum.Enum):
    lead = "lead"
    closed_won = "closed_won"
    active = "active"
    cancel_pending = "cancel_pending"
    cancelled = "cancelled"


class BillingMethod(enum.Enum):
    monthlypay = "monthlypay"
    invoice = "invoice"


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        CheckConstraint("payment_day BETWEEN 1 AND 31", name="ck_contracts_payment_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("plans.id"), nullable=False)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus), default=ContractStatus.lead
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    billing_method: Mapped[BillingMethod] = mapped_column(
        Enum(BillingMethod), default=BillingMethod.monthlypay
    )
    # Captured from the plan when the contract is created; never follows plan price changes
    contract_monthly_price_snapshot: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    sales_owner_user_id: Mapped[str | None] = mapped_column(String(64))
    ops_owner_user_id: Mapped[str | None] = mapped_column(String(64))
    cancellation_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_effective_date: Mapped[date | None] = mapped_column(Date)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    payment_day: Mapped[int] = mapped_column(Integer, default=27)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    account = relationship("Account", back_populates="contracts")
    plan = relationship("Plan")
    invoices = relationship("Invoice", back_populates="contract")
    payments = relationship("Payment", back_populates="contract")
    route_integration = relationship(
        "RouteIntegration", back_populates="contract", uselist=False
    )
