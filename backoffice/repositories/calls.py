from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from fastapi import HTTPException
from sqlalchemy import and_, func, or_, select

from backoffice.models.calls import CallHistory, CallRecord, CallRecordStatus, CallResult
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import as_utc, coerce_uuid, now_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _after(record: CallRecord):
    return or_(
        CallRecord.created_at > record.created_at,
        and_(CallRecord.created_at == record.created_at, CallRecord.id > record.id),
    )


def _before(record: CallRecord):
    return or_(
        CallRecord.created_at < record.created_at,
        and_(CallRecord.created_at == record.created_at, CallRecord.id < record.id),
    )


class CallRecordRepository(Repository):
    model = CallRecord
    label = "Call record"

    @staticmethod
    def _scoped(org_id: str):
        return select(CallRecord).where(CallRecord.org_id == org_id)

    @classmethod
    async def list(cls, db: Session, org_id: str, limit: int = 50, offset: int = 0) -> list[CallRecord]:
        await simulate_latency()
        stmt = (
            cls._scoped(org_id)
            .order_by(CallRecord.created_at, CallRecord.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def filter(
        cls,
        db: Session,
        org_id: str,
        status: CallRecordStatus | None = None,
        re_call_assignee: str | None = None,
        industry: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CallRecord]:
        await simulate_latency()
        stmt = cls._scoped(org_id)
        if status:
            stmt = stmt.where(CallRecord.status == status)
        if re_call_assignee:
            stmt = stmt.where(CallRecord.re_call_assignee == re_call_assignee)
        if industry:
            stmt = stmt.where(CallRecord.industry == industry)
        stmt = stmt.order_by(CallRecord.created_at, CallRecord.id).limit(limit).offset(offset)
        return list(db.scalars(stmt))

    @classmethod
    async def search(cls, db: Session, org_id: str, query: str, limit: int = 50) -> list[CallRecord]:
        await simulate_latency()
        term = f"%{query.strip()}%"
        stmt = (
            cls._scoped(org_id)
            .where(
                or_(
                    CallRecord.store_name.ilike(term),
                    CallRecord.customer_name.ilike(term),
                    CallRecord.customer_id.ilike(term),
                    CallRecord.phone1.ilike(term),
                )
            )
            .order_by(CallRecord.created_at, CallRecord.id)
            .limit(limit)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def count(db: Session, org_id: str, status: CallRecordStatus | None = None) -> int:
        await simulate_latency()
        stmt = select(func.count(CallRecord.id)).where(CallRecord.org_id == org_id)
        if status:
            stmt = stmt.where(CallRecord.status == status)
        return int(db.scalar(stmt) or 0)

    @classmethod
    async def create(cls, db: Session, **fields) -> CallRecord:
        await simulate_latency()
        return cls._stage(db, **fields)

    @classmethod
    async def get_first(cls, db: Session, org_id: str) -> CallRecord | None:
        await simulate_latency()
        stmt = cls._scoped(org_id).order_by(CallRecord.created_at, CallRecord.id).limit(1)
        return db.scalars(stmt).first()

    @classmethod
    async def get_last(cls, db: Session, org_id: str) -> CallRecord | None:
        await simulate_latency()
        stmt = (
            cls._scoped(org_id)
            .order_by(CallRecord.created_at.desc(), CallRecord.id.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    @classmethod
    async def get_next(cls, db: Session, record: CallRecord) -> CallRecord | None:
        await simulate_latency()
        stmt = (
            cls._scoped(record.org_id)
            .where(_after(record))
            .order_by(CallRecord.created_at, CallRecord.id)
            .limit(1)
        )
        return db.scalars(stmt).first()

    @classmethod
    async def get_previous(cls, db: Session, record: CallRecord) -> CallRecord | None:
        await simulate_latency()
        stmt = (
            cls._scoped(record.org_id)
            .where(_before(record))
            .order_by(CallRecord.created_at.desc(), CallRecord.id.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    @staticmethod
    async def get_position(db: Session, record: CallRecord) -> tuple[int, int]:
        """Return the record's 1-based position and the org's total."""
        await simulate_latency()
        scoped = CallRecord.org_id == record.org_id
        preceding = db.scalar(
            select(func.count(CallRecord.id)).where(scoped, _before(record))
        )
        total = db.scalar(select(func.count(CallRecord.id)).where(scoped))
        return int(preceding or 0) + 1, int(total or 0)


class CallHistoryRepository(Repository):
    model = CallHistory
    label = "Call history"

    @staticmethod
    async def list_by_call_record(db: Session, call_record_id) -> list[CallHistory]:
        await simulate_latency()
        stmt = (
            select(CallHistory)
            .where(CallHistory.call_record_id == coerce_uuid(call_record_id))
            .order_by(CallHistory.created_at.desc(), CallHistory.id)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def start_call(cls, db: Session, **fields) -> CallHistory:
        await simulate_latency()
        fields.setdefault("started_at", now_utc())
        return cls._stage(db, **fields)

    @staticmethod
    async def end_call(
        db: Session,
        history: CallHistory,
        result: CallResult,
        result_note: str | None = None,
        ended_at: datetime | None = None,
    ) -> CallHistory:
        await simulate_latency()
        if history.is_ended:
            raise HTTPException(status_code=400, detail="Call has already ended")
        ended = as_utc(ended_at) or now_utc()
        started = as_utc(history.started_at)
        if started and ended < started:
            raise HTTPException(status_code=400, detail="Call cannot end before it started")
        history.ended_at = ended
        history.duration_seconds = int((ended - started).total_seconds()) if started else None
        history.result = result
        if result_note is not None:
            history.result_note = result_note
        return history


call_records = CallRecordRepository()
call_history = CallHistoryRepository()
