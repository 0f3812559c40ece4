import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.contracts import ContractStatus
from backoffice.models.ops_log import OpsLogAction
from backoffice.models.route import PLATFORMS, IntegrationStatus, RouteStatus
from backoffice.schemas.routes import RouteIntegrationCreate
from backoffice.services.common import coerce_uuid, now_utc
from backoffice.services.locks import aggregate_locks

logger = logging.getLogger(__name__)

# action -> (allowed source states, target state, ops log action)
ROUTE_ACTIONS = {
    "pause": (frozenset({RouteStatus.running}), RouteStatus.paused, OpsLogAction.route_pause),
    "resume": (
        frozenset({RouteStatus.preparing, RouteStatus.paused, RouteStatus.error}),
        RouteStatus.running,
        OpsLogAction.route_resume,
    ),
    "delete": (frozenset({RouteStatus.paused}), RouteStatus.deleted, OpsLogAction.route_delete),
    "error": (
        frozenset(set(RouteStatus) - {RouteStatus.deleted}),
        RouteStatus.error,
        OpsLogAction.route_error,
    ),
}


def _ensure_contract_live(contract, what: str) -> None:
    # Routes of cancelled contracts stay stopped
    if contract.status == ContractStatus.cancelled:
        raise HTTPException(
            status_code=400, detail=f"Cannot {what} for a cancelled contract"
        )


def _stamps(target: RouteStatus, message: str | None) -> dict:
    now = now_utc()
    if target == RouteStatus.running:
        return {"running_started_at": now, "last_error": None}
    if target in (RouteStatus.paused, RouteStatus.deleted):
        return {"stopped_at": now}
    if target == RouteStatus.error:
        return {"last_error": message}
    return {}


class RouteIntegrations:
    @staticmethod
    async def get(db: Session, route_id: str):
        return await repo.routes.get(db, route_id)

    @staticmethod
    async def get_by_contract(db: Session, contract_id: str):
        await repo.contracts.get(db, contract_id)
        route = await repo.routes.get_by_contract(db, contract_id)
        if not route:
            raise HTTPException(status_code=404, detail="Route integration not found")
        return route

    @staticmethod
    async def create(
        db: Session, contract_id: str, payload: RouteIntegrationCreate
    ):
        contract_key = coerce_uuid(contract_id)
        async with aggregate_locks.hold("contract", contract_key), aggregate_locks.hold(
            "contract-route", contract_key
        ):
            contract = await repo.contracts.get(db, contract_id, fresh=True)
            _ensure_contract_live(contract, "create a route integration")
            if await repo.routes.get_by_contract(db, contract.id):
                raise HTTPException(
                    status_code=409, detail="Contract already has a route integration"
                )
            data = payload.model_dump(exclude={"actor_user_id"})
            platform_statuses = {
                f"{name}_status": IntegrationStatus.pending for name in PLATFORMS
            }
            try:
                route = await repo.routes.create(
                    db,
                    org_id=contract.org_id,
                    contract_id=contract.id,
                    account_id=contract.account_id,
                    status=RouteStatus.preparing,
                    **platform_statuses,
                    **data,
                )
                await repo.ops_logs.append(
                    db,
                    org_id=contract.org_id,
                    contract_id=contract.id,
                    actor_user_id=payload.actor_user_id or settings.default_actor_id,
                    action=OpsLogAction.route_created,
                    after={"route_id": str(route.id), "status": RouteStatus.preparing.value},
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(route)
            logger.info("Created route %s for contract %s", route.id, contract.id)
            return route

    @staticmethod
    async def apply_action(
        db: Session,
        route_id: str,
        action: str,
        actor_user_id: str | None = None,
        reason: str | None = None,
    ):
        """Run a route action, stamping timestamps and logging before/after status.

        Raises:
            HTTPException: 400 when the route's current status does not allow the action
        """
        if action not in ROUTE_ACTIONS:
            raise HTTPException(status_code=400, detail=f"Unknown route action: {action}")
        sources, target, log_action = ROUTE_ACTIONS[action]
        route = await repo.routes.get(db, route_id)
        # Route status feeds the cancellation guard: contract lock first, then the route's
        async with aggregate_locks.hold("contract", route.contract_id), aggregate_locks.hold(
            "route", route.id
        ):
            route = await repo.routes.get(db, route.id, fresh=True)
            if route.status not in sources:
                raise HTTPException(
                    status_code=400,
                    detail=f"Cannot {action} a route in {route.status.value} status",
                )
            if target == RouteStatus.running:
                contract = await repo.contracts.get(db, route.contract_id, fresh=True)
                _ensure_contract_live(contract, "resume a route")
            previous = route.status
            try:
                await repo.routes.update(db, route, {"status": target, **_stamps(target, reason)})
                await repo.ops_logs.append(
                    db,
                    org_id=route.org_id,
                    contract_id=route.contract_id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=log_action,
                    before={"status": previous.value},
                    after={"status": target.value},
                    reason=reason,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(route)
            logger.info("Route %s %s: %s -> %s", route.id, action, previous.value, target.value)
            return route

    async def pause(self, db: Session, route_id: str, actor_user_id=None, reason=None):
        return await self.apply_action(db, route_id, "pause", actor_user_id, reason)

    async def resume(self, db: Session, route_id: str, actor_user_id=None, reason=None):
        return await self.apply_action(db, route_id, "resume", actor_user_id, reason)

    async def delete(self, db: Session, route_id: str, actor_user_id=None, reason=None):
        return await self.apply_action(db, route_id, "delete", actor_user_id, reason)

    async def record_error(self, db: Session, route_id: str, message: str, actor_user_id=None):
        return await self.apply_action(db, route_id, "error", actor_user_id, message)


route_integrations = RouteIntegrations()
