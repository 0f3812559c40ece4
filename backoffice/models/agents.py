import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db import Base


class AgentContractStatus(enum.Enum):
    active = "active"
    cancelled = "cancelled"
    excluded = "excluded"


class BankAccountType(enum.Enum):
    ordinary = "ordinary"
    current = "current"


class SettlementStatus(enum.Enum):
    draft = "draft"
    invoiced = "invoiced"
    paid = "paid"


class PayoutStatus(enum.Enum):
    unpaid = "unpaid"
    requested = "requested"
    processing = "processing"
    paid = "paid"
    failed = "failed"
    cancelled = "cancelled"


class PayoutMethod(enum.Enum):
    gmo_bank_transfer = "gmo_bank_transfer"
    gmo_pg_remittance = "gmo_pg_remittance"
    manual = "manual"


class Agent(Base):
    __tablename__ = "agents"
    __table_args__ = (
        CheckConstraint("monthly_target >= 0", name="ck_agents_monthly_target"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    contract_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    contract_end_date: Mapped[date | None] = mapped_column(Date)
    stock_unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    monthly_target: Mapped[int] = mapped_column(Integer, default=0)
    settlement_type: Mapped[str] = mapped_column(String(40), default="stock_only")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    contact_email: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(40))
    bank_name: Mapped[str | None] = mapped_column(String(120))
    bank_branch: Mapped[str | None] = mapped_column(String(120))
    bank_account_type: Mapped[BankAccountType | None] = mapped_column(Enum(BankAccountType))
    bank_account_number: Mapped[str | None] = mapped_column(String(40))
    bank_account_holder: Mapped[str | None] = mapped_column(String(160))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    agent_contracts = relationship("AgentContract", back_populates="agent")
    settlements = relationship("AgentSettlement", back_populates="agent")

    @property
    def has_bank_details(self) -> bool:
        return bool(self.bank_name and self.bank_account_number and self.bank_account_holder)


class AgentContract(Base):
    """One acquisition credited to an agent for a billing month."""

    __tablename__ = "agent_contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contracts.id"), nullable=False
    )
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[AgentContractStatus] = mapped_column(
        Enum(AgentContractStatus), default=AgentContractStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    agent = relationship("Agent", back_populates="agent_contracts")
    contract = relationship("Contract")


class AgentMonthlyPerformance(Base):
    __tablename__ = "agent_monthly_performance"
    __table_args__ = (
        UniqueConstraint("agent_id", "billing_month", name="uq_agent_performance_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    acquired_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class AgentMonthlyEntitlement(Base):
    __tablename__ = "agent_monthly_entitlements"
    __table_args__ = (
        UniqueConstraint("agent_id", "billing_month", name="uq_agent_entitlement_month"),
        CheckConstraint("deficit_count >= 0", name="ck_agent_entitlement_deficit"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    entitled_count: Mapped[int] = mapped_column(Integer, default=0)
    earned_count: Mapped[int] = mapped_column(Integer, default=0)
    deficit_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class AgentSettlement(Base):
    __tablename__ = "agent_settlements"
    __table_args__ = (
        UniqueConstraint("agent_id", "billing_month", name="uq_agent_settlement_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    entitled_count: Mapped[int] = mapped_column(Integer, default=0)
    payable_count: Mapped[int] = mapped_column(Integer, default=0)
    cancelled_offset: Mapped[int] = mapped_column(Integer, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    status: Mapped[SettlementStatus] = mapped_column(
        Enum(SettlementStatus), default=SettlementStatus.draft
    )
    invoice_id: Mapped[str | None] = mapped_column(String(80))
    payout_method: Mapped[PayoutMethod | None] = mapped_column(Enum(PayoutMethod))
    payout_status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus), default=PayoutStatus.unpaid
    )
    payout_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payout_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payout_provider: Mapped[str | None] = mapped_column(String(40))
    payout_provider_id: Mapped[str | None] = mapped_column(String(120))
    payout_error_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    agent = relationship("Agent", back_populates="settlements")
