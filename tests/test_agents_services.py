from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from backoffice.models import AgentContractStatus
from backoffice.schemas.agents import AgentContractCreate, AgentCreate, AgentUpdate
from backoffice.services.agents import agent_contracts, agent_performance, agents


@pytest.mark.asyncio
async def test_create_and_deactivate_agent(db_session):
    agent = await agents.create(
        db_session,
        AgentCreate(
            name="Tokai Sales",
            contract_start_date=date(2026, 1, 1),
            stock_unit_price=Decimal("2500.005"),
            monthly_target=5,
        ),
    )
    assert agent.stock_unit_price == Decimal("2500.01")
    assert agent.has_bank_details is False

    agent = await agents.update(
        db_session,
        agent.id,
        AgentUpdate(bank_name="Mizuho", bank_account_number="1234567", bank_account_holder="TOKAI"),
    )
    assert agent.has_bank_details is True

    agent = await agents.deactivate(db_session, agent.id)
    assert agent.is_active is False
    assert agent.contract_end_date is not None


@pytest.mark.asyncio
async def test_agent_contract_status_moves(db_session, make_agent, make_contract):
    agent = make_agent()
    contract = make_contract()
    credited = await agent_contracts.create(
        db_session,
        agent.id,
        AgentContractCreate(contract_id=contract.id, billing_month="2026-09"),
    )
    assert credited.billing_month == date(2026, 9, 1)

    cancelled = await agent_contracts.cancel(db_session, credited.id)
    assert cancelled.status == AgentContractStatus.cancelled
    excluded = await agent_contracts.exclude(db_session, credited.id)
    assert excluded.status == AgentContractStatus.excluded

    with pytest.raises(HTTPException) as exc:
        await agent_contracts.cancel(db_session, credited.id)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_performance_upsert_keeps_one_row_per_month(db_session, make_agent):
    agent = make_agent()

    first = await agent_performance.upsert(db_session, agent.id, "2026-09", 4)
    second = await agent_performance.upsert(db_session, agent.id, "2026-09", 7)

    assert second.id == first.id
    assert second.acquired_count == 7
    assert len(await agent_performance.list_by_agent(db_session, agent.id)) == 1
