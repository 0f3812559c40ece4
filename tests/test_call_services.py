from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from backoffice.models import CallRecordStatus, CallResult
from backoffice.schemas.calls import CallEnd, CallRecordCreate, CallRecordUpdate, CallStart
from backoffice.services.calls import call_histories, call_records


@pytest.mark.asyncio
async def test_neighbors_walk_creation_order(db_session, make_call_record):
    first = make_call_record(1)
    middle = make_call_record(2)
    last = make_call_record(3)

    neighbors = await call_records.neighbors(db_session, middle.id)

    assert neighbors == {
        "first_id": first.id,
        "previous_id": first.id,
        "next_id": last.id,
        "last_id": last.id,
        "position": 2,
        "total": 3,
    }


@pytest.mark.asyncio
async def test_neighbors_at_edges(db_session, make_call_record):
    first = make_call_record(1)
    last = make_call_record(2)

    head = await call_records.neighbors(db_session, first.id)
    tail = await call_records.neighbors(db_session, last.id)

    assert head["previous_id"] is None
    assert head["position"] == 1
    assert tail["next_id"] is None
    assert tail["position"] == 2


@pytest.mark.asyncio
async def test_search_matches_store_and_customer(db_session, make_call_record):
    make_call_record(1, store_name="Cafe Hanamizuki")
    make_call_record(2, customer_name="Suzuki Ichiro")
    make_call_record(3)

    by_store = await call_records.list(db_session, None, None, None, "hanamizuki", 50, 0)
    by_customer = await call_records.list(db_session, None, None, None, "Suzuki", 50, 0)

    assert [record.store_name for record in by_store] == ["Cafe Hanamizuki"]
    assert [record.customer_name for record in by_customer] == ["Suzuki Ichiro"]


@pytest.mark.asyncio
async def test_create_and_update_record(db_session):
    record = await call_records.create(
        db_session,
        CallRecordCreate(
            customer_id="C-9000",
            store_name="Salon Kaede",
            customer_name="Kaede Owner",
            phone1="052-000-0000",
            created_by="caller-1",
        ),
    )
    assert record.modified_by == "caller-1"

    updated = await call_records.update(
        db_session,
        record.id,
        CallRecordUpdate(status=CallRecordStatus.recall, re_call_assignee="caller-2"),
    )

    assert updated.status == CallRecordStatus.recall
    assert await call_records.count(db_session, None, "recall") == 1


@pytest.mark.asyncio
async def test_call_lifecycle_records_duration(db_session, make_call_record):
    record = make_call_record(1)
    started = datetime(2026, 9, 1, 10, 0, tzinfo=timezone.utc)

    history = await call_histories.start_call(
        db_session,
        record.id,
        CallStart(caller_employee_name="Tanaka", started_at=started),
    )
    db_session.refresh(record)
    assert record.status == CallRecordStatus.calling

    ended = await call_histories.end_call(
        db_session,
        history.id,
        CallEnd(result=CallResult.callback, ended_at=started + timedelta(seconds=95)),
    )

    assert ended.duration_seconds == 95
    assert ended.result == CallResult.callback


@pytest.mark.asyncio
async def test_ending_call_twice_is_rejected(db_session, make_call_record):
    record = make_call_record(1)
    history = await call_histories.start_call(
        db_session, record.id, CallStart(caller_employee_name="Tanaka")
    )
    await call_histories.end_call(db_session, history.id, CallEnd(result=CallResult.no_answer))

    with pytest.raises(HTTPException) as exc:
        await call_histories.end_call(db_session, history.id, CallEnd(result=CallResult.busy))

    assert exc.value.status_code == 400
    assert exc.value.detail == "Call has already ended"


@pytest.mark.asyncio
async def test_call_cannot_end_before_start(db_session, make_call_record):
    record = make_call_record(1)
    started = datetime(2026, 9, 1, 10, 0, tzinfo=timezone.utc)
    history = await call_histories.start_call(
        db_session, record.id, CallStart(caller_employee_name="Tanaka", started_at=started)
    )

    with pytest.raises(HTTPException) as exc:
        await call_histories.end_call(
            db_session,
            history.id,
            CallEnd(result=CallResult.busy, ended_at=started - timedelta(minutes=1)),
        )

    assert exc.value.status_code == 400
