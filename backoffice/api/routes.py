from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.routes import (
    RouteAction,
    RouteErrorReport,
    RouteIntegrationCreate,
    RouteIntegrationRead,
)
from backoffice.services.routes import route_integrations

router = APIRouter()


@router.get(
    "/contracts/{contract_id}/route", response_model=RouteIntegrationRead, tags=["routes"]
)
async def get_contract_route(contract_id: str, db: Session = Depends(get_db)):
    return await route_integrations.get_by_contract(db, contract_id)


@router.post(
    "/contracts/{contract_id}/route",
    response_model=RouteIntegrationRead,
    status_code=status.HTTP_201_CREATED,
    tags=["routes"],
)
async def create_contract_route(
    contract_id: str,
    payload: RouteIntegrationCreate | None = None,
    db: Session = Depends(get_db),
):
    return await route_integrations.create(db, contract_id, payload or RouteIntegrationCreate())


@router.post("/routes/{route_id}/pause", response_model=RouteIntegrationRead, tags=["routes"])
async def pause_route(
    route_id: str, payload: RouteAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or RouteAction()
    return await route_integrations.pause(db, route_id, payload.actor_user_id, payload.reason)


@router.post("/routes/{route_id}/resume", response_model=RouteIntegrationRead, tags=["routes"])
async def resume_route(
    route_id: str, payload: RouteAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or RouteAction()
    return await route_integrations.resume(db, route_id, payload.actor_user_id, payload.reason)


@router.post("/routes/{route_id}/delete", response_model=RouteIntegrationRead, tags=["routes"])
async def delete_route(
    route_id: str, payload: RouteAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or RouteAction()
    return await route_integrations.delete(db, route_id, payload.actor_user_id, payload.reason)


@router.post("/routes/{route_id}/error", response_model=RouteIntegrationRead, tags=["routes"])
async def report_route_error(
    route_id: str, payload: RouteErrorReport, db: Session = Depends(get_db)
):
    return await route_integrations.record_error(
        db, route_id, payload.message, payload.actor_user_id
    )
