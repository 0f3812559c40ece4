import asyncio
from datetime import date

import pytest
from fastapi import HTTPException

from backoffice.models import (
    ContractStatus,
    InvoiceStatus,
    OpsLog,
    OpsLogAction,
    PaymentStatus,
    RouteStatus,
)
from backoffice.services.contract_lifecycle import (
    MISSING_PAYMENT_MESSAGE,
    adjacency_blocker,
    contract_lifecycle,
    is_adjacent,
)


def _ops_logs(db_session, contract):
    return db_session.query(OpsLog).filter(OpsLog.contract_id == contract.id).all()


def test_adjacency_follows_lifecycle_edges():
    assert is_adjacent(ContractStatus.lead, ContractStatus.closed_won)
    assert is_adjacent(ContractStatus.cancel_pending, ContractStatus.active)
    assert not is_adjacent(ContractStatus.lead, ContractStatus.active)
    assert not is_adjacent(ContractStatus.active, ContractStatus.cancelled)
    assert adjacency_blocker(ContractStatus.lead, ContractStatus.closed_won) is None
    assert "not allowed" in adjacency_blocker(ContractStatus.lead, ContractStatus.active)


@pytest.mark.asyncio
async def test_activation_blocked_without_succeeded_payment(db_session, make_contract, make_payment):
    contract = make_contract(status=ContractStatus.closed_won)
    make_payment(contract, status=PaymentStatus.failed)

    result = await contract_lifecycle.change_status(
        db_session, contract.id, ContractStatus.active, "Initial payment confirmed"
    )

    assert result.applied is False
    assert result.blockers == (MISSING_PAYMENT_MESSAGE,)
    assert result.contract.status == ContractStatus.closed_won
    assert _ops_logs(db_session, contract) == []


@pytest.mark.asyncio
async def test_activation_applies_after_payment(db_session, make_contract, make_payment):
    contract = make_contract(status=ContractStatus.closed_won)
    make_payment(contract)

    result = await contract_lifecycle.change_status(
        db_session, contract.id, "active", "Initial payment confirmed", actor_user_id="ops-7"
    )

    assert result.applied is True
    assert result.contract.status == ContractStatus.active
    logs = _ops_logs(db_session, contract)
    assert len(logs) == 1
    assert logs[0].action == OpsLogAction.status_changed
    assert logs[0].before == {"status": "closed_won"}
    assert logs[0].after == {"status": "active"}
    assert logs[0].actor_user_id == "ops-7"
    assert logs[0].reason == "Initial payment confirmed"


@pytest.mark.asyncio
async def test_cancellation_reports_every_blocker(
    db_session, make_contract, make_invoice, make_route
):
    contract = make_contract(status=ContractStatus.cancel_pending)
    make_invoice(contract, status=InvoiceStatus.sent)
    make_route(contract, status=RouteStatus.running)

    result = await contract_lifecycle.change_status(
        db_session, contract.id, ContractStatus.cancelled, "Store closed"
    )

    assert result.applied is False
    assert len(result.blockers) == 2
    assert "1 unpaid invoice(s) remain (sent)" in result.blockers[0]
    assert "route not stopped (route integration is running)" in result.blockers[1]
    assert result.message == "; ".join(result.blockers)
    assert result.contract.status == ContractStatus.cancel_pending


@pytest.mark.asyncio
async def test_cancellation_applies_once_settled_and_stopped(
    db_session, make_contract, make_invoice, make_route
):
    contract = make_contract(status=ContractStatus.cancel_pending)
    make_invoice(contract, status=InvoiceStatus.paid)
    make_invoice(contract, billing_month=date(2026, 9, 1), status=InvoiceStatus.void)
    make_route(contract, status=RouteStatus.paused)

    result = await contract_lifecycle.change_status(
        db_session, contract.id, ContractStatus.cancelled, "Store closed"
    )

    assert result.applied is True
    assert result.contract.status == ContractStatus.cancelled


@pytest.mark.asyncio
async def test_cancelled_is_absorbing(db_session, make_contract):
    contract = make_contract(status=ContractStatus.cancelled)

    for target in ContractStatus:
        result = await contract_lifecycle.change_status(
            db_session, contract.id, target, "Reopen"
        )
        assert result.applied is False
        assert result.blockers == (
            "Contract is cancelled; no further status changes are allowed",
        )


@pytest.mark.asyncio
async def test_non_adjacent_target_is_rejected(db_session, make_contract):
    contract = make_contract(status=ContractStatus.lead)

    result = await contract_lifecycle.change_status(
        db_session, contract.id, ContractStatus.active, "Skip ahead"
    )

    assert result.applied is False
    assert result.blockers == ("Transition from lead to active is not allowed",)


@pytest.mark.asyncio
async def test_blank_reason_is_rejected(db_session, make_contract):
    contract = make_contract(status=ContractStatus.lead)

    with pytest.raises(HTTPException) as exc:
        await contract_lifecycle.change_status(
            db_session, contract.id, ContractStatus.closed_won, "   "
        )

    assert exc.value.status_code == 400
    db_session.refresh(contract)
    assert contract.status == ContractStatus.lead


@pytest.mark.asyncio
async def test_missing_contract_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        await contract_lifecycle.change_status(
            db_session, "00000000-0000-0000-0000-000000000000", "closed_won", "Won"
        )
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_concurrent_transitions_apply_once(db_session, make_contract):
    contract = make_contract(status=ContractStatus.active)

    results = await asyncio.gather(
        contract_lifecycle.change_status(
            db_session, contract.id, ContractStatus.cancel_pending, "Customer asked"
        ),
        contract_lifecycle.change_status(
            db_session, contract.id, ContractStatus.cancel_pending, "Customer asked again"
        ),
    )

    assert sorted(result.applied for result in results) == [False, True]
    assert len(_ops_logs(db_session, contract)) == 1


@pytest.mark.asyncio
async def test_available_transitions_include_blockers(db_session, make_contract):
    contract = make_contract(status=ContractStatus.closed_won)

    options = await contract_lifecycle.available_transitions(db_session, contract.id)

    assert [option.status for option in options] == [ContractStatus.active]
    assert options[0].allowed is False
    assert options[0].blockers == (MISSING_PAYMENT_MESSAGE,)
