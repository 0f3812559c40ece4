import asyncio
from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from backoffice.models import (
    AgentContractStatus,
    AgentSettlement,
    OpsLogAction,
    PayoutMethod,
    PayoutStatus,
    SettlementStatus,
)
from backoffice.services.agent_settlement import (
    agent_settlements,
    compute_entitlement,
    compute_settlement,
)
from backoffice.services.ops_logs import ops_logs

MONTH = date(2026, 9, 1)


def test_compute_entitlement_caps_earned_at_target():
    counts = compute_entitlement(10, 12)
    assert (counts.entitled, counts.earned, counts.deficit) == (10, 10, 0)


def test_compute_settlement_never_goes_negative():
    figures = compute_settlement(compute_entitlement(10, 2), 5, "3000")
    assert figures.payable == 0
    assert figures.total == Decimal("0.00")


@pytest.mark.asyncio
async def test_entitlement_counts_active_contracts(db_session, make_agent, credit_agent):
    agent = make_agent(monthly_target=10)
    credit_agent(agent, MONTH, 6)
    credit_agent(agent, MONTH, 2, status=AgentContractStatus.cancelled)
    credit_agent(agent, date(2026, 8, 1), 3)

    entitlement = await agent_settlements.calculate_entitlement(db_session, agent.id, "2026-09")

    assert entitlement.entitled_count == 10
    assert entitlement.earned_count == 6
    assert entitlement.deficit_count == 4


@pytest.mark.asyncio
async def test_entitlement_recalculation_updates_same_row(db_session, make_agent, credit_agent):
    agent = make_agent(monthly_target=10)
    credit_agent(agent, MONTH, 6)
    first = await agent_settlements.calculate_entitlement(db_session, agent.id, MONTH)
    first_id = first.id

    credit_agent(agent, MONTH, 2)
    second = await agent_settlements.calculate_entitlement(db_session, agent.id, MONTH)

    assert second.id == first_id
    assert second.earned_count == 8
    assert second.deficit_count == 2
    assert len(await agent_settlements.list_entitlements(db_session, agent.id)) == 1


@pytest.mark.asyncio
async def test_settlement_multiplies_payable_by_unit_price(db_session, make_agent, credit_agent):
    agent = make_agent(monthly_target=10, stock_unit_price=Decimal("3000"))
    credit_agent(agent, MONTH, 8)

    settlement = await agent_settlements.create_settlement(db_session, agent.id, "2026-09")

    assert settlement.entitled_count == 10
    assert settlement.payable_count == 8
    assert settlement.cancelled_offset == 0
    assert settlement.total_amount == Decimal("24000.00")
    assert settlement.status == SettlementStatus.draft
    assert settlement.payout_status == PayoutStatus.unpaid


@pytest.mark.asyncio
async def test_settlement_nets_cancelled_offset(db_session, make_agent, credit_agent):
    agent = make_agent(monthly_target=10, stock_unit_price=Decimal("3000"))
    credit_agent(agent, MONTH, 8)
    credit_agent(agent, MONTH, 2, status=AgentContractStatus.cancelled)

    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)

    assert settlement.cancelled_offset == 2
    assert settlement.payable_count == 6
    assert settlement.total_amount == Decimal("18000.00")


@pytest.mark.asyncio
async def test_unit_price_is_snapshotted(db_session, make_agent, credit_agent):
    agent = make_agent(monthly_target=10, stock_unit_price=Decimal("3000"))
    credit_agent(agent, MONTH, 4)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)

    agent.stock_unit_price = Decimal("5000")
    db_session.commit()
    credit_agent(agent, MONTH, 1)
    recalculated = await agent_settlements.recalculate_settlement(db_session, settlement.id)

    assert recalculated.unit_price == Decimal("3000.00")
    assert recalculated.payable_count == 5
    assert recalculated.total_amount == Decimal("15000.00")


@pytest.mark.asyncio
async def test_concurrent_settlement_creation_keeps_one_row(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 3)

    results = await asyncio.gather(
        agent_settlements.create_settlement(db_session, agent.id, MONTH),
        agent_settlements.create_settlement(db_session, agent.id, MONTH),
        return_exceptions=True,
    )

    errors = [result for result in results if isinstance(result, HTTPException)]
    assert len(errors) == 1
    assert errors[0].status_code == 409
    assert db_session.query(AgentSettlement).filter_by(agent_id=agent.id).count() == 1


@pytest.mark.asyncio
async def test_settlement_and_payout_happy_path(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 5)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)

    with pytest.raises(HTTPException):
        await agent_settlements.request_payout(db_session, settlement.id, PayoutMethod.manual)

    settlement = await agent_settlements.mark_invoiced(db_session, settlement.id)
    assert settlement.status == SettlementStatus.invoiced
    assert settlement.invoice_id.startswith("agent-inv-")

    settlement = await agent_settlements.request_payout(
        db_session, settlement.id, "gmo_bank_transfer", provider_id="gmo-42"
    )
    assert settlement.payout_status == PayoutStatus.requested
    assert settlement.payout_provider == "gmo"
    assert settlement.payout_provider_id == "gmo-42"

    settlement = await agent_settlements.start_processing(db_session, settlement.id)
    settlement = await agent_settlements.complete_payout(db_session, settlement.id)
    assert settlement.payout_status == PayoutStatus.paid
    assert settlement.status == SettlementStatus.paid
    assert settlement.payout_completed_at is not None

    logs = await ops_logs.list_by_agent(db_session, agent.id)
    assert len(logs) == 4
    assert {log.action for log in logs} == {
        OpsLogAction.agent_settlement_invoiced,
        OpsLogAction.agent_payout_requested,
        OpsLogAction.agent_payout_processing,
        OpsLogAction.agent_payout_completed,
    }
    assert all(log.agent_id == agent.id and log.contract_id is None for log in logs)


@pytest.mark.asyncio
async def test_failed_payout_can_be_requested_again(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    await agent_settlements.mark_invoiced(db_session, settlement.id)
    await agent_settlements.request_payout(db_session, settlement.id, PayoutMethod.manual)

    failed = await agent_settlements.fail_payout(db_session, settlement.id, "Account closed")
    assert failed.payout_status == PayoutStatus.failed
    assert failed.payout_error_reason == "Account closed"

    retried = await agent_settlements.request_payout(db_session, settlement.id, PayoutMethod.manual)
    assert retried.payout_status == PayoutStatus.requested
    assert retried.payout_error_reason is None
    assert retried.payout_provider_id.startswith("payout-")


@pytest.mark.asyncio
async def test_paid_payout_is_terminal(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    await agent_settlements.mark_invoiced(db_session, settlement.id)
    await agent_settlements.request_payout(db_session, settlement.id, PayoutMethod.manual)
    await agent_settlements.complete_payout(db_session, settlement.id)

    with pytest.raises(HTTPException) as exc:
        await agent_settlements.cancel_payout(db_session, settlement.id)

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_recalculate_rejects_invoiced_settlement(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    await agent_settlements.mark_invoiced(db_session, settlement.id)

    with pytest.raises(HTTPException) as exc:
        await agent_settlements.recalculate_settlement(db_session, settlement.id)

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_run_monthly_skips_existing_settlements(db_session, make_agent, credit_agent):
    settled = make_agent(name="Kansai Partners")
    pending = make_agent(name="Tokai Sales")
    make_agent(name="Retired", is_active=False)
    credit_agent(settled, MONTH, 1)
    await agent_settlements.create_settlement(db_session, settled.id, MONTH)
    credit_agent(settled, MONTH, 2)

    result = await agent_settlements.run_monthly(db_session, None, "2026-09")

    assert result["billing_month"] == "2026-09"
    assert result["skipped"] == [settled.id]
    assert len(result["created"]) == 1
    created = await agent_settlements.get(db_session, result["created"][0])
    assert created.agent_id == pending.id
    [refreshed] = await agent_settlements.list_entitlements(db_session, settled.id)
    assert refreshed.earned_count == 3


@pytest.mark.asyncio
async def test_mark_paid_requires_invoiced_settlement(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)

    with pytest.raises(HTTPException) as exc:
        await agent_settlements.mark_paid(db_session, settlement.id)

    assert exc.value.status_code == 400
    db_session.refresh(settlement)
    assert settlement.status == SettlementStatus.draft
    assert settlement.invoice_id is None
    assert await ops_logs.list_by_agent(db_session, agent.id) == []


@pytest.mark.asyncio
async def test_settlement_cannot_be_invoiced_twice(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    invoiced = await agent_settlements.mark_invoiced(db_session, settlement.id)
    invoice_id = invoiced.invoice_id

    with pytest.raises(HTTPException) as exc:
        await agent_settlements.mark_invoiced(db_session, settlement.id)

    assert exc.value.status_code == 400
    db_session.refresh(settlement)
    assert settlement.invoice_id == invoice_id
    assert len(await ops_logs.list_by_agent(db_session, agent.id)) == 1


@pytest.mark.asyncio
async def test_unrequested_payout_cannot_skip_ahead(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    await agent_settlements.mark_invoiced(db_session, settlement.id)

    with pytest.raises(HTTPException) as processing:
        await agent_settlements.start_processing(db_session, settlement.id)
    with pytest.raises(HTTPException) as completed:
        await agent_settlements.complete_payout(db_session, settlement.id)

    assert processing.value.status_code == 400
    assert completed.value.status_code == 400
    db_session.refresh(settlement)
    assert settlement.payout_status == PayoutStatus.unpaid
    assert settlement.status == SettlementStatus.invoiced
    assert settlement.payout_completed_at is None


@pytest.mark.asyncio
async def test_fail_payout_requires_reason(db_session, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, MONTH, 2)
    settlement = await agent_settlements.create_settlement(db_session, agent.id, MONTH)
    await agent_settlements.mark_invoiced(db_session, settlement.id)
    await agent_settlements.request_payout(db_session, settlement.id, PayoutMethod.manual)

    with pytest.raises(HTTPException) as exc:
        await agent_settlements.fail_payout(db_session, settlement.id, "   ")

    assert exc.value.status_code == 400
    db_session.refresh(settlement)
    assert settlement.payout_status == PayoutStatus.requested
