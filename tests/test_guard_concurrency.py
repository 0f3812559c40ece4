import asyncio

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import sessionmaker

from backoffice.config import settings
from backoffice.models import (
    Contract,
    ContractStatus,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    RouteIntegration,
    RouteStatus,
)
from backoffice.services.billing import invoices, payments
from backoffice.services.cancellation import cancellations
from backoffice.services.locks import aggregate_locks
from backoffice.services.routes import route_integrations


@pytest.fixture()
def store_latency(monkeypatch):
    monkeypatch.setattr(
        "backoffice.repositories.base.settings",
        settings.model_copy(update={"store_latency_min_ms": 5, "store_latency_max_ms": 10}),
    )


@pytest.fixture()
def other_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


def _stored_contract(db_session, contract_id):
    db_session.expire_all()
    return db_session.get(Contract, contract_id)


@pytest.mark.asyncio
async def test_cancel_and_invoice_generation_never_both_land(
    db_session, other_session, store_latency, make_contract
):
    contract = make_contract(status=ContractStatus.cancel_pending)

    result, generated = await asyncio.gather(
        cancellations.confirm(db_session, contract.id, "Store closed"),
        invoices.generate(other_session, contract.id, "2026-09"),
        return_exceptions=True,
    )

    stored = _stored_contract(db_session, contract.id)
    rows = db_session.query(Invoice).filter_by(contract_id=contract.id).all()
    if stored.status == ContractStatus.cancelled:
        assert result.applied
        assert rows == []
        assert isinstance(generated, HTTPException)
        assert generated.status_code == 400
    else:
        assert not result.applied
        assert [row.status for row in rows] == [InvoiceStatus.draft]


@pytest.mark.asyncio
async def test_cancel_and_route_resume_never_both_land(
    db_session, other_session, store_latency, make_contract, make_route
):
    contract = make_contract(status=ContractStatus.cancel_pending)
    route = make_route(contract, status=RouteStatus.paused)

    result, resumed = await asyncio.gather(
        cancellations.confirm(db_session, contract.id, "Store closed"),
        route_integrations.resume(other_session, route.id),
        return_exceptions=True,
    )

    stored = _stored_contract(db_session, contract.id)
    stored_route = db_session.get(RouteIntegration, route.id)
    if stored.status == ContractStatus.cancelled:
        assert result.applied
        assert stored_route.status == RouteStatus.paused
        assert isinstance(resumed, HTTPException)
        assert resumed.status_code == 400
    else:
        assert not result.applied
        assert stored_route.status == RouteStatus.running


@pytest.mark.asyncio
async def test_invoice_moves_wait_for_the_contract_lock(
    other_session, make_contract, make_invoice
):
    contract = make_contract(status=ContractStatus.cancel_pending)
    invoice = make_invoice(contract, status=InvoiceStatus.draft)

    async with aggregate_locks.hold("contract", contract.id):
        task = asyncio.create_task(invoices.void(other_session, invoice.id, "Duplicate"))
        await asyncio.sleep(0.05)
        assert not task.done()

    voided = await task
    assert voided.status == InvoiceStatus.void


@pytest.mark.asyncio
async def test_payment_moves_wait_for_the_contract_lock(
    other_session, make_contract, make_payment
):
    contract = make_contract(status=ContractStatus.closed_won)
    payment = make_payment(contract, status=PaymentStatus.pending)

    async with aggregate_locks.hold("contract", contract.id):
        task = asyncio.create_task(payments.mark_succeeded(other_session, payment.id))
        await asyncio.sleep(0.05)
        assert not task.done()

    succeeded = await task
    assert succeeded.status == PaymentStatus.succeeded
