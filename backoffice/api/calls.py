from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.calls import (
    CallEnd,
    CallHistoryRead,
    CallNeighborsRead,
    CallRecordCreate,
    CallRecordRead,
    CallRecordUpdate,
    CallStart,
)
from backoffice.schemas.common import ListResponse
from backoffice.services.calls import call_histories, call_records

router = APIRouter()


@router.get("/calls", response_model=ListResponse[CallRecordRead], tags=["calls"])
async def list_call_records(
    org_id: str | None = None,
    status: str | None = None,
    re_call_assignee: str | None = None,
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return await call_records.list_response(
        db, org_id, status, re_call_assignee, q, limit, offset
    )


@router.post(
    "/calls",
    response_model=CallRecordRead,
    status_code=status.HTTP_201_CREATED,
    tags=["calls"],
)
async def create_call_record(payload: CallRecordCreate, db: Session = Depends(get_db)):
    return await call_records.create(db, payload)


@router.get("/calls/{record_id}", response_model=CallRecordRead, tags=["calls"])
async def get_call_record(record_id: str, db: Session = Depends(get_db)):
    return await call_records.get(db, record_id)


@router.patch("/calls/{record_id}", response_model=CallRecordRead, tags=["calls"])
async def update_call_record(
    record_id: str, payload: CallRecordUpdate, db: Session = Depends(get_db)
):
    return await call_records.update(db, record_id, payload)


@router.get("/calls/{record_id}/neighbors", response_model=CallNeighborsRead, tags=["calls"])
async def call_record_neighbors(record_id: str, db: Session = Depends(get_db)):
    return await call_records.neighbors(db, record_id)


@router.get(
    "/calls/{record_id}/history", response_model=list[CallHistoryRead], tags=["calls"]
)
async def list_call_history(record_id: str, db: Session = Depends(get_db)):
    return await call_histories.list_by_call_record(db, record_id)


@router.post(
    "/calls/{record_id}/history",
    response_model=CallHistoryRead,
    status_code=status.HTTP_201_CREATED,
    tags=["calls"],
)
async def start_call(record_id: str, payload: CallStart, db: Session = Depends(get_db)):
    return await call_histories.start_call(db, record_id, payload)


@router.post("/call-history/{history_id}/end", response_model=CallHistoryRead, tags=["calls"])
async def end_call(history_id: str, payload: CallEnd, db: Session = Depends(get_db)):
    return await call_histories.end_call(db, history_id, payload)
