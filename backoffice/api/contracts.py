from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.api.deps import require_applied
from backoffice.db import get_db
from backoffice.schemas.cancellation import CancellationQueueItem
from backoffice.schemas.common import ListResponse
from backoffice.schemas.contracts import (
    CancellationRequest,
    ContractCreate,
    ContractRead,
    ContractStatusChange,
    ContractUpdate,
    NoteCreate,
    OpsLogRead,
    TransitionOptionRead,
)
from backoffice.services.cancellation import cancellations
from backoffice.services.contract_lifecycle import contract_lifecycle
from backoffice.services.contracts import contracts
from backoffice.services.ops_logs import ops_logs

router = APIRouter()


@router.get("/contracts", response_model=ListResponse[ContractRead], tags=["contracts"])
async def list_contracts(
    org_id: str | None = None,
    status: list[str] | None = Query(default=None),
    plan_id: str | None = None,
    billing_method: str | None = None,
    sales_owner_user_id: str | None = None,
    ops_owner_user_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return await contracts.list_response(
        db,
        org_id,
        status,
        plan_id,
        billing_method,
        sales_owner_user_id,
        ops_owner_user_id,
        limit,
        offset,
    )


@router.post(
    "/contracts",
    response_model=ContractRead,
    status_code=status.HTTP_201_CREATED,
    tags=["contracts"],
)
async def create_contract(payload: ContractCreate, db: Session = Depends(get_db)):
    return await contracts.create(db, payload)


@router.get("/contracts/{contract_id}", response_model=ContractRead, tags=["contracts"])
async def get_contract(contract_id: str, db: Session = Depends(get_db)):
    return await contracts.get(db, contract_id)


@router.patch("/contracts/{contract_id}", response_model=ContractRead, tags=["contracts"])
async def update_contract(
    contract_id: str, payload: ContractUpdate, db: Session = Depends(get_db)
):
    return await contracts.update(db, contract_id, payload)


@router.post(
    "/contracts/{contract_id}/status", response_model=ContractRead, tags=["contracts"]
)
async def change_contract_status(
    contract_id: str, payload: ContractStatusChange, db: Session = Depends(get_db)
):
    result = await contract_lifecycle.change_status(
        db, contract_id, payload.status, payload.reason, actor_user_id=payload.actor_user_id
    )
    return require_applied(result)


@router.get(
    "/contracts/{contract_id}/transitions",
    response_model=list[TransitionOptionRead],
    tags=["contracts"],
)
async def list_contract_transitions(contract_id: str, db: Session = Depends(get_db)):
    options = await contract_lifecycle.available_transitions(db, contract_id)
    return [
        {"status": option.status, "allowed": option.allowed, "blockers": list(option.blockers)}
        for option in options
    ]


@router.get(
    "/contracts/{contract_id}/ops-logs", response_model=list[OpsLogRead], tags=["ops-logs"]
)
async def list_contract_ops_logs(contract_id: str, db: Session = Depends(get_db)):
    return await ops_logs.list_by_contract(db, contract_id)


@router.post(
    "/contracts/{contract_id}/notes",
    response_model=OpsLogRead,
    status_code=status.HTTP_201_CREATED,
    tags=["ops-logs"],
)
async def add_contract_note(contract_id: str, payload: NoteCreate, db: Session = Depends(get_db)):
    return await ops_logs.add_note(db, contract_id, payload.note, payload.actor_user_id)


@router.post(
    "/contracts/{contract_id}/cancellation",
    response_model=ContractRead,
    tags=["cancellations"],
)
async def request_cancellation(
    contract_id: str, payload: CancellationRequest, db: Session = Depends(get_db)
):
    result = await cancellations.request(
        db, contract_id, payload.reason, payload.effective_date, payload.actor_user_id
    )
    return require_applied(result)


@router.get(
    "/cancellations", response_model=list[CancellationQueueItem], tags=["cancellations"]
)
async def cancellation_queue(org_id: str | None = None, db: Session = Depends(get_db)):
    return await cancellations.queue(db, org_id)
