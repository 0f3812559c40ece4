from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.agents import (
    AgentContractCreate,
    AgentContractRead,
    AgentCreate,
    AgentRead,
    AgentUpdate,
    EntitlementRead,
    PayoutFailure,
    PayoutRequest,
    PerformanceRead,
    PerformanceUpsert,
    SettlementAction,
    SettlementCreate,
    SettlementRead,
)
from backoffice.schemas.common import ListResponse
from backoffice.schemas.contracts import OpsLogRead
from backoffice.services.agent_settlement import agent_settlements
from backoffice.services.agents import agent_contracts, agent_performance, agents
from backoffice.services.ops_logs import ops_logs

router = APIRouter()


# --- Agents ---


@router.get("/agents", response_model=ListResponse[AgentRead], tags=["agents"])
async def list_agents(
    org_id: str | None = None,
    active_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return await agents.list_response(db, org_id, active_only, limit, offset)


@router.post(
    "/agents", response_model=AgentRead, status_code=status.HTTP_201_CREATED, tags=["agents"]
)
async def create_agent(payload: AgentCreate, db: Session = Depends(get_db)):
    return await agents.create(db, payload)


@router.get("/agents/{agent_id}", response_model=AgentRead, tags=["agents"])
async def get_agent(agent_id: str, db: Session = Depends(get_db)):
    return await agents.get(db, agent_id)


@router.patch("/agents/{agent_id}", response_model=AgentRead, tags=["agents"])
async def update_agent(agent_id: str, payload: AgentUpdate, db: Session = Depends(get_db)):
    return await agents.update(db, agent_id, payload)


@router.post("/agents/{agent_id}/deactivate", response_model=AgentRead, tags=["agents"])
async def deactivate_agent(agent_id: str, db: Session = Depends(get_db)):
    return await agents.deactivate(db, agent_id)


@router.get("/agents/{agent_id}/ops-logs", response_model=list[OpsLogRead], tags=["agents"])
async def list_agent_ops_logs(agent_id: str, db: Session = Depends(get_db)):
    return await ops_logs.list_by_agent(db, agent_id)


# --- Agent contracts and performance ---


@router.get(
    "/agents/{agent_id}/contracts", response_model=list[AgentContractRead], tags=["agents"]
)
async def list_agent_contracts(
    agent_id: str,
    month: str | None = Query(default=None, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    return await agent_contracts.list_by_agent(db, agent_id, month)


@router.post(
    "/agents/{agent_id}/contracts",
    response_model=AgentContractRead,
    status_code=status.HTTP_201_CREATED,
    tags=["agents"],
)
async def create_agent_contract(
    agent_id: str, payload: AgentContractCreate, db: Session = Depends(get_db)
):
    return await agent_contracts.create(db, agent_id, payload)


@router.post(
    "/agent-contracts/{agent_contract_id}/cancel",
    response_model=AgentContractRead,
    tags=["agents"],
)
async def cancel_agent_contract(agent_contract_id: str, db: Session = Depends(get_db)):
    return await agent_contracts.cancel(db, agent_contract_id)


@router.post(
    "/agent-contracts/{agent_contract_id}/exclude",
    response_model=AgentContractRead,
    tags=["agents"],
)
async def exclude_agent_contract(agent_contract_id: str, db: Session = Depends(get_db)):
    return await agent_contracts.exclude(db, agent_contract_id)


@router.get(
    "/agents/{agent_id}/performance", response_model=list[PerformanceRead], tags=["agents"]
)
async def list_agent_performance(agent_id: str, db: Session = Depends(get_db)):
    return await agent_performance.list_by_agent(db, agent_id)


@router.put(
    "/agents/{agent_id}/performance/{month}", response_model=PerformanceRead, tags=["agents"]
)
async def upsert_agent_performance(
    agent_id: str, month: str, payload: PerformanceUpsert, db: Session = Depends(get_db)
):
    return await agent_performance.upsert(db, agent_id, month, payload.acquired_count)


# --- Entitlements and settlements ---


@router.post(
    "/agents/{agent_id}/entitlements/{month}",
    response_model=EntitlementRead,
    tags=["settlements"],
)
async def calculate_entitlement(agent_id: str, month: str, db: Session = Depends(get_db)):
    return await agent_settlements.calculate_entitlement(db, agent_id, month)


@router.get(
    "/agents/{agent_id}/entitlements", response_model=list[EntitlementRead], tags=["settlements"]
)
async def list_entitlements(agent_id: str, db: Session = Depends(get_db)):
    return await agent_settlements.list_entitlements(db, agent_id)


@router.get(
    "/agents/{agent_id}/settlements", response_model=list[SettlementRead], tags=["settlements"]
)
async def list_agent_settlements(agent_id: str, db: Session = Depends(get_db)):
    return await agent_settlements.list_by_agent(db, agent_id)


@router.post(
    "/agents/{agent_id}/settlements",
    response_model=SettlementRead,
    status_code=status.HTTP_201_CREATED,
    tags=["settlements"],
)
async def create_settlement(
    agent_id: str, payload: SettlementCreate, db: Session = Depends(get_db)
):
    return await agent_settlements.create_settlement(db, agent_id, payload.billing_month)


@router.get("/settlements", response_model=ListResponse[SettlementRead], tags=["settlements"])
async def list_settlements(
    org_id: str | None = None,
    status: str | None = None,
    payout_status: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return await agent_settlements.list_response(
        db, org_id, status, payout_status, limit, offset
    )


@router.get("/settlements/{settlement_id}", response_model=SettlementRead, tags=["settlements"])
async def get_settlement(settlement_id: str, db: Session = Depends(get_db)):
    return await agent_settlements.get(db, settlement_id)


@router.post(
    "/settlements/{settlement_id}/recalculate",
    response_model=SettlementRead,
    tags=["settlements"],
)
async def recalculate_settlement(settlement_id: str, db: Session = Depends(get_db)):
    return await agent_settlements.recalculate_settlement(db, settlement_id)


@router.post(
    "/settlements/{settlement_id}/invoice", response_model=SettlementRead, tags=["settlements"]
)
async def invoice_settlement(
    settlement_id: str, payload: SettlementAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or SettlementAction()
    return await agent_settlements.mark_invoiced(db, settlement_id, payload.actor_user_id)


@router.post(
    "/settlements/{settlement_id}/paid", response_model=SettlementRead, tags=["settlements"]
)
async def mark_settlement_paid(
    settlement_id: str, payload: SettlementAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or SettlementAction()
    return await agent_settlements.mark_paid(db, settlement_id, payload.actor_user_id)


# --- Payouts ---


@router.post(
    "/settlements/{settlement_id}/payout/request",
    response_model=SettlementRead,
    tags=["payouts"],
)
async def request_payout(
    settlement_id: str, payload: PayoutRequest, db: Session = Depends(get_db)
):
    return await agent_settlements.request_payout(
        db, settlement_id, payload.method, payload.provider_id, payload.actor_user_id
    )


@router.post(
    "/settlements/{settlement_id}/payout/processing",
    response_model=SettlementRead,
    tags=["payouts"],
)
async def start_payout_processing(
    settlement_id: str, payload: SettlementAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or SettlementAction()
    return await agent_settlements.start_processing(db, settlement_id, payload.actor_user_id)


@router.post(
    "/settlements/{settlement_id}/payout/complete",
    response_model=SettlementRead,
    tags=["payouts"],
)
async def complete_payout(
    settlement_id: str, payload: SettlementAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or SettlementAction()
    return await agent_settlements.complete_payout(db, settlement_id, payload.actor_user_id)


@router.post(
    "/settlements/{settlement_id}/payout/fail",
    response_model=SettlementRead,
    tags=["payouts"],
)
async def fail_payout(settlement_id: str, payload: PayoutFailure, db: Session = Depends(get_db)):
    return await agent_settlements.fail_payout(
        db, settlement_id, payload.reason, payload.actor_user_id
    )


@router.post(
    "/settlements/{settlement_id}/payout/cancel",
    response_model=SettlementRead,
    tags=["payouts"],
)
async def cancel_payout(
    settlement_id: str, payload: SettlementAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or SettlementAction()
    return await agent_settlements.cancel_payout(db, settlement_id, payload.actor_user_id)
