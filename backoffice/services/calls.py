import logging

from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.calls import CallRecordStatus
from backoffice.schemas.calls import CallEnd, CallRecordCreate, CallRecordUpdate, CallStart
from backoffice.services.common import validate_enum
from backoffice.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class CallRecords(ListResponseMixin):
    @staticmethod
    async def create(db: Session, payload: CallRecordCreate):
        data = payload.model_dump(exclude={"org_id"})
        data["modified_by"] = data.get("created_by")
        record = await repo.call_records.create(
            db, org_id=payload.org_id or settings.default_org_id, **data
        )
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    async def get(db: Session, record_id: str):
        return await repo.call_records.get(db, record_id)

    @staticmethod
    async def list(
        db: Session,
        org_id: str | None,
        status: str | None,
        re_call_assignee: str | None,
        query: str | None,
        limit: int,
        offset: int,
    ):
        org_id = org_id or settings.default_org_id
        if query and query.strip():
            return await repo.call_records.search(db, org_id, query, limit=limit)
        status = validate_enum(status, CallRecordStatus, "status")
        if status or re_call_assignee:
            return await repo.call_records.filter(
                db,
                org_id,
                status=status,
                re_call_assignee=re_call_assignee,
                limit=limit,
                offset=offset,
            )
        return await repo.call_records.list(db, org_id, limit, offset)

    @staticmethod
    async def count(db: Session, org_id: str | None, status: str | None = None) -> int:
        status = validate_enum(status, CallRecordStatus, "status")
        return await repo.call_records.count(db, org_id or settings.default_org_id, status)

    @staticmethod
    async def update(db: Session, record_id: str, payload: CallRecordUpdate):
        record = await repo.call_records.get(db, record_id)
        await repo.call_records.update(db, record, payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    async def neighbors(db: Session, record_id: str) -> dict:
        """Ids for first/previous/next/last navigation plus the record's position."""
        record = await repo.call_records.get(db, record_id)
        first = await repo.call_records.get_first(db, record.org_id)
        last = await repo.call_records.get_last(db, record.org_id)
        previous = await repo.call_records.get_previous(db, record)
        following = await repo.call_records.get_next(db, record)
        position, total = await repo.call_records.get_position(db, record)
        return {
            "first_id": first.id if first else None,
            "previous_id": previous.id if previous else None,
            "next_id": following.id if following else None,
            "last_id": last.id if last else None,
            "position": position,
            "total": total,
        }


class CallHistories:
    @staticmethod
    async def list_by_call_record(db: Session, record_id: str):
        await repo.call_records.get(db, record_id)
        return await repo.call_history.list_by_call_record(db, record_id)

    @staticmethod
    async def get(db: Session, history_id: str):
        return await repo.call_history.get(db, history_id)

    @staticmethod
    async def start_call(db: Session, record_id: str, payload: CallStart):
        record = await repo.call_records.get(db, record_id)
        fields = payload.model_dump(exclude_none=True)
        history = await repo.call_history.start_call(
            db, call_record_id=record.id, org_id=record.org_id, **fields
        )
        if record.status == CallRecordStatus.new:
            await repo.call_records.update(db, record, {"status": CallRecordStatus.calling})
        db.commit()
        db.refresh(history)
        logger.info("Call %s started on record %s", history.id, record.id)
        return history

    @staticmethod
    async def end_call(db: Session, history_id: str, payload: CallEnd):
        history = await repo.call_history.get(db, history_id, fresh=True)
        try:
            await repo.call_history.end_call(
                db, history, payload.result, payload.result_note, payload.ended_at
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(history)
        logger.info(
            "Call %s ended: %s after %ss",
            history.id,
            history.result.value,
            history.duration_seconds,
        )
        return history


call_records = CallRecords()
call_histories = CallHistories()
