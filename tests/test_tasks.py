from datetime import date
from unittest.mock import patch

from backoffice.models import AgentContract, AgentContractStatus, AgentSettlement, Invoice
from backoffice.tasks.agents import run_monthly_settlements
from backoffice.tasks.billing import run_invoice_generation


def test_run_monthly_settlements_task(db_session, make_agent, make_contract):
    agent = make_agent()
    contract = make_contract()
    db_session.add(
        AgentContract(
            agent_id=agent.id,
            contract_id=contract.id,
            billing_month=date(2026, 9, 1),
            status=AgentContractStatus.active,
        )
    )
    db_session.commit()

    with patch("backoffice.tasks.agents.SessionLocal", return_value=db_session):
        result = run_monthly_settlements("2026-09")

    assert result["billing_month"] == "2026-09"
    assert result["created"] and result["skipped"] == []
    settlement = db_session.query(AgentSettlement).one()
    assert settlement.payable_count == 1


def test_run_invoice_generation_task(db_session, make_contract):
    make_contract()
    make_contract()

    with patch("backoffice.tasks.billing.SessionLocal", return_value=db_session):
        result = run_invoice_generation("2026-09")

    assert len(result["generated"]) == 2
    assert db_session.query(Invoice).count() == 2


def test_beat_schedule_runs_monthly():
    from backoffice.celery_app import celery_app

    schedule = celery_app.conf.beat_schedule
    assert schedule["monthly_agent_settlements"]["task"] == run_monthly_settlements.name
    assert schedule["monthly_invoice_generation"]["task"] == run_invoice_generation.name
