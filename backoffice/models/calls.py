import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db import Base


class CallRecordStatus(enum.Enum):
    new = "new"
    calling = "calling"
    recall = "recall"
    won = "won"
    lost = "lost"


class CallResult(enum.Enum):
    connected = "connected"
    completed = "completed"
    no_answer = "no_answer"
    busy = "busy"
    rejected = "rejected"
    callback = "callback"


class CallRecord(Base):
    __tablename__ = "call_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    store_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(160), nullable=False)
    customer_name_kana: Mapped[str | None] = mapped_column(String(160))
    phone1: Mapped[str] = mapped_column(String(40), nullable=False)
    phone2: Mapped[str | None] = mapped_column(String(40))
    industry: Mapped[str | None] = mapped_column(String(120))
    address: Mapped[str | None] = mapped_column(Text)
    plan_name: Mapped[str | None] = mapped_column(String(120))
    plan_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    acquisition_company: Mapped[str | None] = mapped_column(String(160))
    meo_provider: Mapped[str | None] = mapped_column(String(120))
    re_call_assignee: Mapped[str | None] = mapped_column(String(120))
    re_call_date: Mapped[date | None] = mapped_column(Date)
    re_call_time: Mapped[str | None] = mapped_column(String(8))
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[CallRecordStatus] = mapped_column(
        Enum(CallRecordStatus), default=CallRecordStatus.new
    )
    created_by: Mapped[str | None] = mapped_column(String(64))
    modified_by: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    history = relationship("CallHistory", back_populates="call_record")


class CallHistory(Base):
    __tablename__ = "call_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    call_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("call_records.id"), nullable=False, index=True
    )
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    caller_employee_id: Mapped[str | None] = mapped_column(String(64))
    caller_employee_name: Mapped[str] = mapped_column(String(160), nullable=False)
    result: Mapped[CallResult | None] = mapped_column(Enum(CallResult))
    result_note: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    call_record = relationship("CallRecord", back_populates="history")

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None
