from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from backoffice.models.route import RouteIntegration
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import coerce_uuid

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class RouteIntegrationRepository(Repository):
    model = RouteIntegration
    label = "Route integration"

    @staticmethod
    async def get_by_contract(db: Session, contract_id, fresh: bool = False) -> RouteIntegration | None:
        await simulate_latency()
        stmt = select(RouteIntegration).where(
            RouteIntegration.contract_id == coerce_uuid(contract_id)
        )
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return db.scalars(stmt).first()

    @staticmethod
    async def list_by_org(db: Session, org_id: str) -> list[RouteIntegration]:
        await simulate_latency()
        stmt = (
            select(RouteIntegration)
            .where(RouteIntegration.org_id == org_id)
            .order_by(RouteIntegration.created_at, RouteIntegration.id)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> RouteIntegration:
        await simulate_latency()
        return cls._stage(db, **fields)


routes = RouteIntegrationRepository()
