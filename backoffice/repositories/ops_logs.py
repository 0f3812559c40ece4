from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from backoffice.models.ops_log import OpsLog
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import coerce_uuid

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class OpsLogRepository(Repository):
    model = OpsLog
    label = "Ops log"

    @classmethod
    async def append(cls, db: Session, **fields) -> OpsLog:
        await simulate_latency()
        return cls._stage(db, **fields)

    @staticmethod
    async def list_by_contract(db: Session, contract_id) -> list[OpsLog]:
        await simulate_latency()
        stmt = (
            select(OpsLog)
            .where(OpsLog.contract_id == coerce_uuid(contract_id))
            .order_by(OpsLog.created_at.desc(), OpsLog.id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_agent(db: Session, agent_id) -> list[OpsLog]:
        await simulate_latency()
        stmt = (
            select(OpsLog)
            .where(OpsLog.agent_id == coerce_uuid(agent_id))
            .order_by(OpsLog.created_at.desc(), OpsLog.id)
        )
        return list(db.scalars(stmt))


ops_logs = OpsLogRepository()
