from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import select

from backoffice.models.contracts import BillingMethod, Contract, ContractStatus
from backoffice.repositories.base import Repository, simulate_latency
from backoffice.services.common import coerce_uuid, now_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class ContractRepository(Repository):
    model = Contract

    @staticmethod
    async def list(db: Session, org_id: str, limit: int = 50, offset: int = 0) -> list[Contract]:
        await simulate_latency()
        stmt = (
            select(Contract)
            .where(Contract.org_id == org_id)
            .order_by(Contract.created_at.desc(), Contract.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def filter(
        db: Session,
        org_id: str,
        statuses: Iterable[ContractStatus] | None = None,
        plan_id=None,
        billing_method: BillingMethod | None = None,
        sales_owner_user_id: str | None = None,
        ops_owner_user_id: str | None = None,
        account_id=None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Contract]:
        await simulate_latency()
        stmt = select(Contract).where(Contract.org_id == org_id)
        statuses = list(statuses or [])
        if statuses:
            stmt = stmt.where(Contract.status.in_(statuses))
        if plan_id:
            stmt = stmt.where(Contract.plan_id == coerce_uuid(plan_id))
        if account_id:
            stmt = stmt.where(Contract.account_id == coerce_uuid(account_id))
        if billing_method:
            stmt = stmt.where(Contract.billing_method == billing_method)
        if sales_owner_user_id:
            stmt = stmt.where(Contract.sales_owner_user_id == sales_owner_user_id)
        if ops_owner_user_id:
            stmt = stmt.where(Contract.ops_owner_user_id == ops_owner_user_id)
        stmt = stmt.order_by(Contract.created_at.desc(), Contract.id).limit(limit).offset(offset)
        return list(db.scalars(stmt))

    @staticmethod
    async def list_by_status(db: Session, org_id: str, status: ContractStatus) -> list[Contract]:
        await simulate_latency()
        stmt = (
            select(Contract)
            .where(Contract.org_id == org_id, Contract.status == status)
            .order_by(Contract.created_at, Contract.id)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> Contract:
        await simulate_latency()
        fields.setdefault("status", ContractStatus.lead)
        return cls._stage(db, **fields)

    @classmethod
    async def change_status(cls, db: Session, contract: Contract, status: ContractStatus) -> Contract:
        """Stage the status write; guards are the lifecycle service's job."""
        await simulate_latency()
        contract.status = status
        contract.updated_at = now_utc()
        return contract


contracts = ContractRepository()
