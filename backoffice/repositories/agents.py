from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from backoffice.models.agents import (
    Agent,
    AgentContract,
    AgentContractStatus,
    AgentMonthlyEntitlement,
    AgentMonthlyPerformance,
    AgentSettlement,
    PayoutStatus,
    SettlementStatus,
)
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import coerce_uuid, now_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class AgentRepository(Repository):
    model = Agent

    @staticmethod
    async def list(db: Session, org_id: str, limit: int = 50, offset: int = 0) -> list[Agent]:
        await simulate_latency()
        stmt = (
            select(Agent)
            .where(Agent.org_id == org_id)
            .order_by(Agent.name, Agent.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_active(db: Session, org_id: str) -> list[Agent]:
        await simulate_latency()
        stmt = (
            select(Agent)
            .where(Agent.org_id == org_id, Agent.is_active.is_(True))
            .order_by(Agent.name, Agent.id)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> Agent:
        await simulate_latency()
        return cls._stage(db, **fields)


class AgentContractRepository(Repository):
    model = AgentContract
    label = "Agent contract"

    @staticmethod
    async def list_by_agent(
        db: Session, agent_id, billing_month: date | None = None
    ) -> list[AgentContract]:
        await simulate_latency()
        stmt = select(AgentContract).where(AgentContract.agent_id == coerce_uuid(agent_id))
        if billing_month is not None:
            stmt = stmt.where(AgentContract.billing_month == billing_month)
        stmt = stmt.order_by(AgentContract.billing_month.desc(), AgentContract.created_at)
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_contract(db: Session, contract_id) -> list[AgentContract]:
        await simulate_latency()
        stmt = (
            select(AgentContract)
            .where(AgentContract.contract_id == coerce_uuid(contract_id))
            .order_by(AgentContract.billing_month.desc(), AgentContract.created_at)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def count_by_status(
        db: Session, agent_id, billing_month: date, status: AgentContractStatus
    ) -> int:
        await simulate_latency()
        stmt = select(func.count(AgentContract.id)).where(
            AgentContract.agent_id == coerce_uuid(agent_id),
            AgentContract.billing_month == billing_month,
            AgentContract.status == status,
        )
        return int(db.scalar(stmt) or 0)

    @classmethod
    async def create(cls, db: Session, **fields) -> AgentContract:
        await simulate_latency()
        return cls._stage(db, **fields)

    @staticmethod
    async def set_status(
        db: Session, agent_contract: AgentContract, status: AgentContractStatus
    ) -> AgentContract:
        await simulate_latency()
        agent_contract.status = status
        return agent_contract


class AgentPerformanceRepository(Repository):
    model = AgentMonthlyPerformance
    label = "Agent performance"

    @staticmethod
    async def list_by_agent(db: Session, agent_id) -> list[AgentMonthlyPerformance]:
        await simulate_latency()
        stmt = (
            select(AgentMonthlyPerformance)
            .where(AgentMonthlyPerformance.agent_id == coerce_uuid(agent_id))
            .order_by(AgentMonthlyPerformance.billing_month.desc())
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def get_by_month(db: Session, agent_id, billing_month: date) -> AgentMonthlyPerformance | None:
        await simulate_latency()
        stmt = select(AgentMonthlyPerformance).where(
            AgentMonthlyPerformance.agent_id == coerce_uuid(agent_id),
            AgentMonthlyPerformance.billing_month == billing_month,
        )
        return db.scalars(stmt).first()

    @classmethod
    async def upsert(
        cls, db: Session, agent_id, billing_month: date, acquired_count: int
    ) -> AgentMonthlyPerformance:
        existing = await cls.get_by_month(db, agent_id, billing_month)
        if existing:
            existing.acquired_count = acquired_count
            return existing
        return cls._stage(
            db,
            agent_id=coerce_uuid(agent_id),
            billing_month=billing_month,
            acquired_count=acquired_count,
        )


class AgentEntitlementRepository(Repository):
    model = AgentMonthlyEntitlement
    label = "Agent entitlement"

    @staticmethod
    async def list_by_agent(db: Session, agent_id) -> list[AgentMonthlyEntitlement]:
        await simulate_latency()
        stmt = (
            select(AgentMonthlyEntitlement)
            .where(AgentMonthlyEntitlement.agent_id == coerce_uuid(agent_id))
            .order_by(AgentMonthlyEntitlement.billing_month.desc())
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def get_by_month(
        db: Session, agent_id, billing_month: date, fresh: bool = False
    ) -> AgentMonthlyEntitlement | None:
        await simulate_latency()
        stmt = select(AgentMonthlyEntitlement).where(
            AgentMonthlyEntitlement.agent_id == coerce_uuid(agent_id),
            AgentMonthlyEntitlement.billing_month == billing_month,
        )
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return db.scalars(stmt).first()

    @classmethod
    async def upsert(
        cls,
        db: Session,
        agent_id,
        billing_month: date,
        entitled_count: int,
        earned_count: int,
        deficit_count: int,
    ) -> AgentMonthlyEntitlement:
        """Overwrite the counts for (agent, month), keeping the row's id and created_at."""
        existing = await cls.get_by_month(db, agent_id, billing_month, fresh=True)
        counts = {
            "entitled_count": entitled_count,
            "earned_count": earned_count,
            "deficit_count": deficit_count,
        }
        if existing:
            for key, value in counts.items():
                setattr(existing, key, value)
            return existing
        return cls._stage(
            db, agent_id=coerce_uuid(agent_id), billing_month=billing_month, **counts
        )


class AgentSettlementRepository(Repository):
    model = AgentSettlement
    label = "Settlement"

    @staticmethod
    async def list(
        db: Session,
        org_id: str | None = None,
        status: SettlementStatus | None = None,
        payout_status: PayoutStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AgentSettlement]:
        await simulate_latency()
        stmt = select(AgentSettlement)
        if org_id:
            stmt = stmt.join(Agent, Agent.id == AgentSettlement.agent_id).where(
                Agent.org_id == org_id
            )
        if status:
            stmt = stmt.where(AgentSettlement.status == status)
        if payout_status:
            stmt = stmt.where(AgentSettlement.payout_status == payout_status)
        stmt = (
            stmt.order_by(AgentSettlement.billing_month.desc(), AgentSettlement.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_agent(db: Session, agent_id) -> list[AgentSettlement]:
        await simulate_latency()
        stmt = (
            select(AgentSettlement)
            .where(AgentSettlement.agent_id == coerce_uuid(agent_id))
            .order_by(AgentSettlement.billing_month.desc())
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def get_by_month(db: Session, agent_id, billing_month: date) -> AgentSettlement | None:
        await simulate_latency()
        stmt = select(AgentSettlement).where(
            AgentSettlement.agent_id == coerce_uuid(agent_id),
            AgentSettlement.billing_month == billing_month,
        )
        return db.scalars(stmt).first()

    @classmethod
    async def create(cls, db: Session, **fields) -> AgentSettlement:
        await simulate_latency()
        return cls._stage(db, **fields)

    @staticmethod
    async def mark_invoiced(db: Session, settlement: AgentSettlement, invoice_id: str) -> AgentSettlement:
        await simulate_latency()
        settlement.status = SettlementStatus.invoiced
        settlement.invoice_id = invoice_id
        settlement.updated_at = now_utc()
        return settlement

    @staticmethod
    async def mark_paid(db: Session, settlement: AgentSettlement) -> AgentSettlement:
        await simulate_latency()
        settlement.status = SettlementStatus.paid
        settlement.updated_at = now_utc()
        return settlement


agents = AgentRepository()
agent_contracts = AgentContractRepository()
agent_performance = AgentPerformanceRepository()
agent_entitlements = AgentEntitlementRepository()
settlements = AgentSettlementRepository()
