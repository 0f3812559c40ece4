from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.accounts import (
    AccountCreate,
    AccountRead,
    AccountUpdate,
    PlanCreate,
    PlanRead,
    PlanUpdate,
)
from backoffice.schemas.common import ListResponse
from backoffice.services import contracts as contracts_service

router = APIRouter()


@router.get("/accounts", response_model=ListResponse[AccountRead], tags=["accounts"])
async def list_accounts(
    org_id: str | None = None,
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    if q:
        items = await contracts_service.accounts.search(db, org_id, q)
        return {"items": items, "count": len(items), "limit": limit, "offset": 0}
    return await contracts_service.accounts.list_response(db, org_id, limit, offset)


@router.post(
    "/accounts",
    response_model=AccountRead,
    status_code=status.HTTP_201_CREATED,
    tags=["accounts"],
)
async def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    return await contracts_service.accounts.create(db, payload)


@router.get("/accounts/{account_id}", response_model=AccountRead, tags=["accounts"])
async def get_account(account_id: str, db: Session = Depends(get_db)):
    return await contracts_service.accounts.get(db, account_id)


@router.patch("/accounts/{account_id}", response_model=AccountRead, tags=["accounts"])
async def update_account(account_id: str, payload: AccountUpdate, db: Session = Depends(get_db)):
    return await contracts_service.accounts.update(db, account_id, payload)


@router.get("/plans", response_model=list[PlanRead], tags=["plans"])
async def list_plans(
    org_id: str | None = None, active_only: bool = False, db: Session = Depends(get_db)
):
    return await contracts_service.plans.list(db, org_id, active_only)


@router.post(
    "/plans", response_model=PlanRead, status_code=status.HTTP_201_CREATED, tags=["plans"]
)
async def create_plan(payload: PlanCreate, db: Session = Depends(get_db)):
    return await contracts_service.plans.create(db, payload)


@router.patch("/plans/{plan_id}", response_model=PlanRead, tags=["plans"])
async def update_plan(plan_id: str, payload: PlanUpdate, db: Session = Depends(get_db)):
    return await contracts_service.plans.update(db, plan_id, payload)
