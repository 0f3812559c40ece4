import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.agents import AgentContractStatus
from backoffice.schemas.agents import AgentContractCreate, AgentCreate, AgentUpdate
from backoffice.services.common import billing_today, parse_month, round_money
from backoffice.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

AGENT_CONTRACT_TRANSITIONS = {
    AgentContractStatus.active: {AgentContractStatus.cancelled, AgentContractStatus.excluded},
    AgentContractStatus.cancelled: {AgentContractStatus.excluded},
    AgentContractStatus.excluded: set(),
}


class Agents(ListResponseMixin):
    @staticmethod
    async def create(db: Session, payload: AgentCreate):
        data = payload.model_dump(exclude={"org_id"})
        data["stock_unit_price"] = round_money(data["stock_unit_price"])
        agent = await repo.agents.create(db, org_id=payload.org_id or settings.default_org_id, **data)
        db.commit()
        db.refresh(agent)
        logger.info("Created agent %s (%s)", agent.id, agent.name)
        return agent

    @staticmethod
    async def get(db: Session, agent_id: str):
        return await repo.agents.get(db, agent_id)

    @staticmethod
    async def list(
        db: Session, org_id: str | None, active_only: bool, limit: int, offset: int
    ):
        org_id = org_id or settings.default_org_id
        if active_only:
            items = await repo.agents.list_active(db, org_id)
            return items[offset : offset + limit]
        return await repo.agents.list(db, org_id, limit, offset)

    @staticmethod
    async def update(db: Session, agent_id: str, payload: AgentUpdate):
        agent = await repo.agents.get(db, agent_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("stock_unit_price") is not None:
            data["stock_unit_price"] = round_money(data["stock_unit_price"])
        await repo.agents.update(db, agent, data)
        db.commit()
        db.refresh(agent)
        return agent

    @staticmethod
    async def deactivate(db: Session, agent_id: str):
        agent = await repo.agents.get(db, agent_id)
        if not agent.is_active:
            return agent
        await repo.agents.update(
            db, agent, {"is_active": False, "contract_end_date": billing_today()}
        )
        db.commit()
        db.refresh(agent)
        logger.info("Deactivated agent %s", agent.id)
        return agent


class AgentContracts:
    @staticmethod
    async def create(db: Session, agent_id: str, payload: AgentContractCreate):
        agent = await repo.agents.get(db, agent_id)
        contract = await repo.contracts.get(db, payload.contract_id)
        agent_contract = await repo.agent_contracts.create(
            db,
            agent_id=agent.id,
            contract_id=contract.id,
            billing_month=parse_month(payload.billing_month),
            status=payload.status,
        )
        db.commit()
        db.refresh(agent_contract)
        return agent_contract

    @staticmethod
    async def list_by_agent(db: Session, agent_id: str, billing_month: str | None = None):
        await repo.agents.get(db, agent_id)
        month = parse_month(billing_month) if billing_month else None
        return await repo.agent_contracts.list_by_agent(db, agent_id, month)

    @staticmethod
    async def list_by_contract(db: Session, contract_id: str):
        await repo.contracts.get(db, contract_id)
        return await repo.agent_contracts.list_by_contract(db, contract_id)

    @staticmethod
    async def _set_status(db: Session, agent_contract_id: str, target: AgentContractStatus):
        agent_contract = await repo.agent_contracts.get(db, agent_contract_id, fresh=True)
        if target not in AGENT_CONTRACT_TRANSITIONS[agent_contract.status]:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Agent contract cannot move from {agent_contract.status.value} "
                    f"to {target.value}"
                ),
            )
        await repo.agent_contracts.set_status(db, agent_contract, target)
        db.commit()
        db.refresh(agent_contract)
        return agent_contract

    async def cancel(self, db: Session, agent_contract_id: str):
        return await self._set_status(db, agent_contract_id, AgentContractStatus.cancelled)

    async def exclude(self, db: Session, agent_contract_id: str):
        return await self._set_status(db, agent_contract_id, AgentContractStatus.excluded)


class AgentPerformance:
    @staticmethod
    async def list_by_agent(db: Session, agent_id: str):
        await repo.agents.get(db, agent_id)
        return await repo.agent_performance.list_by_agent(db, agent_id)

    @staticmethod
    async def get_by_month(db: Session, agent_id: str, billing_month: str):
        record = await repo.agent_performance.get_by_month(db, agent_id, parse_month(billing_month))
        if not record:
            raise HTTPException(status_code=404, detail="Agent performance not found")
        return record

    @staticmethod
    async def upsert(db: Session, agent_id: str, billing_month: str, acquired_count: int):
        agent = await repo.agents.get(db, agent_id)
        record = await repo.agent_performance.upsert(
            db, agent.id, parse_month(billing_month), acquired_count
        )
        db.commit()
        db.refresh(record)
        return record


agents = Agents()
agent_contracts = AgentContracts()
agent_performance = AgentPerformance()
