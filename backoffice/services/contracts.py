import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.contracts import BillingMethod, ContractStatus
from backoffice.schemas.accounts import AccountCreate, AccountUpdate, PlanCreate, PlanUpdate
from backoffice.schemas.contracts import ContractCreate, ContractUpdate
from backoffice.services.common import coerce_uuid, round_money, validate_enum
from backoffice.services.locks import aggregate_locks
from backoffice.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Accounts(ListResponseMixin):
    @staticmethod
    async def create(db: Session, payload: AccountCreate):
        data = payload.model_dump(exclude={"org_id"})
        account = await repo.accounts.create(
            db, org_id=payload.org_id or settings.default_org_id, **data
        )
        db.commit()
        db.refresh(account)
        logger.info("Created account %s (%s)", account.id, account.account_name)
        return account

    @staticmethod
    async def get(db: Session, account_id: str):
        return await repo.accounts.get(db, account_id)

    @staticmethod
    async def list(db: Session, org_id: str | None, limit: int, offset: int):
        return await repo.accounts.list(db, org_id or settings.default_org_id, limit, offset)

    @staticmethod
    async def search(db: Session, org_id: str | None, query: str):
        if not query.strip():
            return []
        return await repo.accounts.search(db, org_id or settings.default_org_id, query)

    @staticmethod
    async def update(db: Session, account_id: str, payload: AccountUpdate):
        account = await repo.accounts.get(db, account_id)
        await repo.accounts.update(db, account, payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(account)
        return account


class Plans(ListResponseMixin):
    @staticmethod
    async def create(db: Session, payload: PlanCreate):
        data = payload.model_dump(exclude={"org_id"})
        data["monthly_price"] = round_money(data["monthly_price"])
        plan = await repo.plans.create(db, org_id=payload.org_id or settings.default_org_id, **data)
        db.commit()
        db.refresh(plan)
        return plan

    @staticmethod
    async def get(db: Session, plan_id: str):
        return await repo.plans.get(db, plan_id)

    @staticmethod
    async def list(db: Session, org_id: str | None, active_only: bool = False):
        org_id = org_id or settings.default_org_id
        if active_only:
            return await repo.plans.list_active(db, org_id)
        return await repo.plans.list(db, org_id)

    @staticmethod
    async def update(db: Session, plan_id: str, payload: PlanUpdate):
        """Plan edits never touch existing contracts; they keep their price snapshot."""
        plan = await repo.plans.get(db, plan_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("monthly_price") is not None:
            data["monthly_price"] = round_money(data["monthly_price"])
        await repo.plans.update(db, plan, data)
        db.commit()
        db.refresh(plan)
        return plan


class Contracts(ListResponseMixin):
    @staticmethod
    async def create(db: Session, payload: ContractCreate):
        account = await repo.accounts.get(db, payload.account_id)
        plan = await repo.plans.get(db, payload.plan_id)
        if not plan.is_active:
            raise HTTPException(status_code=400, detail="Plan is not active")
        data = payload.model_dump(exclude={"org_id"})
        contract = await repo.contracts.create(
            db,
            org_id=payload.org_id or account.org_id,
            status=ContractStatus.lead,
            contract_monthly_price_snapshot=round_money(plan.monthly_price),
            **data,
        )
        db.commit()
        db.refresh(contract)
        logger.info(
            "Created contract %s for account %s at %s", contract.id, account.id, plan.monthly_price
        )
        return contract

    @staticmethod
    async def get(db: Session, contract_id: str):
        return await repo.contracts.get(db, contract_id)

    @staticmethod
    async def list(
        db: Session,
        org_id: str | None,
        statuses: list[str] | None,
        plan_id: str | None,
        billing_method: str | None,
        sales_owner_user_id: str | None,
        ops_owner_user_id: str | None,
        limit: int,
        offset: int,
    ):
        return await repo.contracts.filter(
            db,
            org_id or settings.default_org_id,
            statuses=[validate_enum(value, ContractStatus, "status") for value in statuses or []],
            plan_id=plan_id,
            billing_method=validate_enum(billing_method, BillingMethod, "billing_method"),
            sales_owner_user_id=sales_owner_user_id,
            ops_owner_user_id=ops_owner_user_id,
            limit=limit,
            offset=offset,
        )

    @staticmethod
    async def update(db: Session, contract_id: str, payload: ContractUpdate):
        async with aggregate_locks.hold("contract", coerce_uuid(contract_id)):
            contract = await repo.contracts.get(db, contract_id, fresh=True)
            if contract.status == ContractStatus.cancelled:
                raise HTTPException(status_code=400, detail="Cancelled contracts cannot be edited")
            data = payload.model_dump(exclude_unset=True)
            if "end_date" in data and data["end_date"] and data["end_date"] < contract.start_date:
                raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
            try:
                await repo.contracts.update(db, contract, data)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(contract)
            return contract


accounts = Accounts()
plans = Plans()
contracts = Contracts()
