from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from backoffice.models.account import Account, Plan
from backoffice.repositories.base import Repository, simulate_latency

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class AccountRepository(Repository):
    model = Account

    @staticmethod
    async def list(db: Session, org_id: str, limit: int = 50, offset: int = 0) -> list[Account]:
        await simulate_latency()
        stmt = (
            select(Account)
            .where(Account.org_id == org_id)
            .order_by(Account.created_at.desc(), Account.id)
            .limit(limit)
            .offset(offset)
        )
        return list(db.scalars(stmt))

    @staticmethod
    async def search(db: Session, org_id: str, query: str, limit: int = 50) -> list[Account]:
        await simulate_latency()
        term = f"%{query.strip()}%"
        stmt = (
            select(Account)
            .where(Account.org_id == org_id)
            .where(
                or_(
                    Account.account_name.ilike(term),
                    Account.admin_email.ilike(term),
                    Account.account_manager.ilike(term),
                )
            )
            .order_by(Account.account_name)
            .limit(limit)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> Account:
        await simulate_latency()
        return cls._stage(db, **fields)


class PlanRepository(Repository):
    model = Plan

    @staticmethod
    async def list(db: Session, org_id: str) -> list[Plan]:
        await simulate_latency()
        stmt = select(Plan).where(Plan.org_id == org_id).order_by(Plan.name)
        return list(db.scalars(stmt))

    @staticmethod
    async def list_active(db: Session, org_id: str) -> list[Plan]:
        await simulate_latency()
        stmt = (
            select(Plan)
            .where(Plan.org_id == org_id, Plan.is_active.is_(True))
            .order_by(Plan.name)
        )
        return list(db.scalars(stmt))

    @classmethod
    async def create(cls, db: Session, **fields) -> Plan:
        await simulate_latency()
        return cls._stage(db, **fields)


accounts = AccountRepository()
plans = PlanRepository()
