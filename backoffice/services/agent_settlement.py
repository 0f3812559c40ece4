"""Agent entitlement, settlement and payout.

Entitlement for (agent, month):
    entitled = agent.monthly_target
    earned   = min(active agent contracts in that month, entitled)
    deficit  = entitled - earned

Settlement for (agent, month):
    cancelled_offset = cancelled agent contracts in that month
    payable          = max(earned - cancelled_offset, 0)
    total            = payable * unit_price   (unit price snapshotted at creation)

Settlement status runs draft -> invoiced -> paid. Payout status runs
unpaid -> requested -> [processing ->] paid | failed | cancelled, and a failed
payout may be requested again by hand.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.agents import (
    AgentContractStatus,
    PayoutMethod,
    PayoutStatus,
    SettlementStatus,
)
from backoffice.models.ops_log import OpsLogAction
from backoffice.services.common import (
    coerce_uuid,
    format_month,
    now_utc,
    parse_month,
    previous_billing_month,
    require_reason,
    round_money,
    validate_enum,
)
from backoffice.services.locks import aggregate_locks
from backoffice.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

SETTLEMENT_TRANSITIONS = {
    SettlementStatus.draft: {SettlementStatus.invoiced},
    SettlementStatus.invoiced: {SettlementStatus.paid},
    SettlementStatus.paid: set(),
}

PAYOUT_TRANSITIONS = {
    PayoutStatus.unpaid: {PayoutStatus.requested},
    PayoutStatus.requested: {
        PayoutStatus.processing,
        PayoutStatus.paid,
        PayoutStatus.failed,
        PayoutStatus.cancelled,
    },
    PayoutStatus.processing: {PayoutStatus.paid, PayoutStatus.failed, PayoutStatus.cancelled},
    PayoutStatus.failed: {PayoutStatus.requested},
    PayoutStatus.paid: set(),
    PayoutStatus.cancelled: set(),
}

PAYOUT_PROVIDERS = {
    PayoutMethod.gmo_bank_transfer: "gmo",
    PayoutMethod.gmo_pg_remittance: "gmo",
    PayoutMethod.manual: "manual",
}


@dataclass(frozen=True)
class EntitlementCounts:
    entitled: int
    earned: int
    deficit: int


@dataclass(frozen=True)
class SettlementFigures:
    entitled: int
    payable: int
    cancelled_offset: int
    unit_price: Decimal
    total: Decimal


def compute_entitlement(monthly_target: int, active_count: int) -> EntitlementCounts:
    entitled = max(int(monthly_target), 0)
    earned = min(max(int(active_count), 0), entitled)
    return EntitlementCounts(entitled=entitled, earned=earned, deficit=entitled - earned)


def compute_settlement(entitlement: EntitlementCounts, cancelled_offset: int, unit_price) -> SettlementFigures:
    payable = max(entitlement.earned - cancelled_offset, 0)
    unit_price = round_money(unit_price)
    return SettlementFigures(
        entitled=entitlement.entitled,
        payable=payable,
        cancelled_offset=cancelled_offset,
        unit_price=unit_price,
        total=round_money(unit_price * payable),
    )


def _ensure_settlement_transition(settlement, target: SettlementStatus) -> None:
    if target not in SETTLEMENT_TRANSITIONS[settlement.status]:
        raise HTTPException(
            status_code=400,
            detail=f"Settlement cannot move from {settlement.status.value} to {target.value}",
        )


def _ensure_payout_transition(settlement, target: PayoutStatus) -> None:
    if target not in PAYOUT_TRANSITIONS[settlement.payout_status]:
        raise HTTPException(
            status_code=400,
            detail=f"Payout cannot move from {settlement.payout_status.value} to {target.value}",
        )


async def _stage_entitlement(db: Session, agent, month):
    active = await repo.agent_contracts.count_by_status(
        db, agent.id, month, AgentContractStatus.active
    )
    counts = compute_entitlement(agent.monthly_target, active)
    entitlement = await repo.agent_entitlements.upsert(
        db,
        agent.id,
        month,
        entitled_count=counts.entitled,
        earned_count=counts.earned,
        deficit_count=counts.deficit,
    )
    return entitlement, counts


async def _stage_figures(db: Session, agent, month, unit_price):
    entitlement, counts = await _stage_entitlement(db, agent, month)
    offset = await repo.agent_contracts.count_by_status(
        db, agent.id, month, AgentContractStatus.cancelled
    )
    return entitlement, compute_settlement(counts, offset, unit_price)


class AgentSettlements(ListResponseMixin):
    @staticmethod
    async def calculate_entitlement(db: Session, agent_id: str, billing_month):
        """Recompute and upsert the entitlement row for (agent, month)."""
        month = parse_month(billing_month)
        async with aggregate_locks.hold("agent-month", (coerce_uuid(agent_id), month)):
            agent = await repo.agents.get(db, agent_id, fresh=True)
            try:
                entitlement, counts = await _stage_entitlement(db, agent, month)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(entitlement)
            logger.info(
                "Entitlement for agent %s %s: entitled=%d earned=%d deficit=%d",
                agent.id,
                format_month(month),
                counts.entitled,
                counts.earned,
                counts.deficit,
            )
            return entitlement

    @staticmethod
    async def list_entitlements(db: Session, agent_id: str):
        await repo.agents.get(db, agent_id)
        return await repo.agent_entitlements.list_by_agent(db, agent_id)

    @staticmethod
    async def create_settlement(db: Session, agent_id: str, billing_month):
        """Draft the settlement for (agent, month); a second one for the key is a 409."""
        month = parse_month(billing_month)
        async with aggregate_locks.hold("agent-month", (coerce_uuid(agent_id), month)):
            agent = await repo.agents.get(db, agent_id, fresh=True)
            if await repo.settlements.get_by_month(db, agent.id, month):
                raise HTTPException(
                    status_code=409,
                    detail=f"Settlement already exists for {format_month(month)}",
                )
            try:
                _, figures = await _stage_figures(db, agent, month, agent.stock_unit_price)
                settlement = await repo.settlements.create(
                    db,
                    agent_id=agent.id,
                    billing_month=month,
                    entitled_count=figures.entitled,
                    payable_count=figures.payable,
                    cancelled_offset=figures.cancelled_offset,
                    unit_price=figures.unit_price,
                    total_amount=figures.total,
                    status=SettlementStatus.draft,
                    payout_status=PayoutStatus.unpaid,
                )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise HTTPException(
                    status_code=409,
                    detail=f"Settlement already exists for {format_month(month)}",
                ) from exc
            except Exception:
                db.rollback()
                raise
            db.refresh(settlement)
            logger.info(
                "Drafted settlement %s for agent %s %s: payable=%d total=%s",
                settlement.id,
                agent.id,
                format_month(month),
                figures.payable,
                figures.total,
            )
            return settlement

    @staticmethod
    async def recalculate_settlement(db: Session, settlement_id: str):
        """Refresh a draft settlement's counts and amount at its snapshotted unit price."""
        async with aggregate_locks.hold("settlement", coerce_uuid(settlement_id)):
            settlement = await repo.settlements.get(db, settlement_id, fresh=True)
            if settlement.status != SettlementStatus.draft:
                raise HTTPException(
                    status_code=400, detail="Only draft settlements can be recalculated"
                )
            agent = await repo.agents.get(db, settlement.agent_id, fresh=True)
            try:
                _, figures = await _stage_figures(
                    db, agent, settlement.billing_month, settlement.unit_price
                )
                await repo.settlements.update(
                    db,
                    settlement,
                    {
                        "entitled_count": figures.entitled,
                        "payable_count": figures.payable,
                        "cancelled_offset": figures.cancelled_offset,
                        "total_amount": figures.total,
                    },
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(settlement)
            return settlement

    @staticmethod
    async def get(db: Session, settlement_id: str):
        return await repo.settlements.get(db, settlement_id)

    @staticmethod
    async def get_by_month(db: Session, agent_id: str, billing_month):
        settlement = await repo.settlements.get_by_month(db, agent_id, parse_month(billing_month))
        if not settlement:
            raise HTTPException(status_code=404, detail="Settlement not found")
        return settlement

    @staticmethod
    async def list(
        db: Session,
        org_id: str | None,
        status: str | None,
        payout_status: str | None,
        limit: int,
        offset: int,
    ):
        return await repo.settlements.list(
            db,
            org_id=org_id or settings.default_org_id,
            status=validate_enum(status, SettlementStatus, "status"),
            payout_status=validate_enum(payout_status, PayoutStatus, "payout_status"),
            limit=limit,
            offset=offset,
        )

    @staticmethod
    async def list_by_agent(db: Session, agent_id: str):
        await repo.agents.get(db, agent_id)
        return await repo.settlements.list_by_agent(db, agent_id)

    @staticmethod
    async def _mutate(
        db: Session,
        settlement_id: str,
        apply,
        action: OpsLogAction,
        actor_user_id: str | None,
        reason: str | None = None,
    ):
        """Apply a settlement/payout change under the settlement lock with an ops log row."""
        async with aggregate_locks.hold("settlement", coerce_uuid(settlement_id)):
            settlement = await repo.settlements.get(db, settlement_id, fresh=True)
            before = {
                "settlement_id": str(settlement.id),
                "status": settlement.status.value,
                "payout_status": settlement.payout_status.value,
            }
            try:
                await apply(settlement)
                agent = await repo.agents.get(db, settlement.agent_id)
                await repo.ops_logs.append(
                    db,
                    org_id=agent.org_id,
                    agent_id=agent.id,
                    actor_user_id=actor_user_id or settings.default_actor_id,
                    action=action,
                    before=before,
                    after={
                        "settlement_id": str(settlement.id),
                        "status": settlement.status.value,
                        "payout_status": settlement.payout_status.value,
                    },
                    reason=reason,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(settlement)
            logger.info(
                "Settlement %s %s: status %s -> %s, payout %s -> %s",
                settlement.id,
                action.value,
                before["status"],
                settlement.status.value,
                before["payout_status"],
                settlement.payout_status.value,
            )
            return settlement

    async def mark_invoiced(self, db: Session, settlement_id: str, actor_user_id: str | None = None):
        async def apply(settlement):
            _ensure_settlement_transition(settlement, SettlementStatus.invoiced)
            await repo.settlements.mark_invoiced(
                db, settlement, f"agent-inv-{uuid.uuid4().hex[:12]}"
            )

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_settlement_invoiced, actor_user_id
        )

    async def mark_paid(self, db: Session, settlement_id: str, actor_user_id: str | None = None):
        async def apply(settlement):
            _ensure_settlement_transition(settlement, SettlementStatus.paid)
            await repo.settlements.mark_paid(db, settlement)

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_settlement_paid, actor_user_id
        )

    async def request_payout(
        self,
        db: Session,
        settlement_id: str,
        method,
        provider_id: str | None = None,
        actor_user_id: str | None = None,
    ):
        method = validate_enum(method, PayoutMethod, "payout method")
        if method is None:
            raise HTTPException(status_code=400, detail="Payout method is required")

        async def apply(settlement):
            if settlement.status != SettlementStatus.invoiced:
                raise HTTPException(
                    status_code=400,
                    detail="Payout can only be requested for an invoiced settlement",
                )
            _ensure_payout_transition(settlement, PayoutStatus.requested)
            await repo.settlements.update(
                db,
                settlement,
                {
                    "payout_status": PayoutStatus.requested,
                    "payout_method": method,
                    "payout_provider": PAYOUT_PROVIDERS[method],
                    "payout_provider_id": provider_id or f"payout-{uuid.uuid4().hex[:12]}",
                    "payout_requested_at": now_utc(),
                    "payout_completed_at": None,
                    "payout_error_reason": None,
                },
            )

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_payout_requested, actor_user_id
        )

    async def start_processing(self, db: Session, settlement_id: str, actor_user_id: str | None = None):
        async def apply(settlement):
            _ensure_payout_transition(settlement, PayoutStatus.processing)
            await repo.settlements.update(db, settlement, {"payout_status": PayoutStatus.processing})

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_payout_processing, actor_user_id
        )

    async def complete_payout(self, db: Session, settlement_id: str, actor_user_id: str | None = None):
        """Mark the payout paid and the settlement paid in the same commit."""

        async def apply(settlement):
            _ensure_payout_transition(settlement, PayoutStatus.paid)
            await repo.settlements.update(
                db,
                settlement,
                {"payout_status": PayoutStatus.paid, "payout_completed_at": now_utc()},
            )
            if settlement.status != SettlementStatus.paid:
                _ensure_settlement_transition(settlement, SettlementStatus.paid)
                await repo.settlements.mark_paid(db, settlement)

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_payout_completed, actor_user_id
        )

    async def fail_payout(
        self, db: Session, settlement_id: str, reason: str, actor_user_id: str | None = None
    ):
        reason = require_reason(reason)

        async def apply(settlement):
            _ensure_payout_transition(settlement, PayoutStatus.failed)
            await repo.settlements.update(
                db,
                settlement,
                {"payout_status": PayoutStatus.failed, "payout_error_reason": reason},
            )

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_payout_failed, actor_user_id, reason
        )

    async def cancel_payout(
        self, db: Session, settlement_id: str, actor_user_id: str | None = None
    ):
        async def apply(settlement):
            _ensure_payout_transition(settlement, PayoutStatus.cancelled)
            await repo.settlements.update(db, settlement, {"payout_status": PayoutStatus.cancelled})

        return await self._mutate(
            db, settlement_id, apply, OpsLogAction.agent_payout_cancelled, actor_user_id
        )

    async def run_monthly(self, db: Session, org_id: str | None = None, billing_month=None) -> dict:
        """Refresh every active agent's entitlement and draft missing settlements.

        Agents already settled for the month still get their entitlement
        recomputed; only the settlement draft is skipped.
        """
        month = parse_month(billing_month) if billing_month else previous_billing_month()
        created, skipped = [], []
        for agent in await repo.agents.list_active(db, org_id or settings.default_org_id):
            if await repo.settlements.get_by_month(db, agent.id, month):
                await self.calculate_entitlement(db, agent.id, month)
                skipped.append(agent.id)
                continue
            settlement = await self.create_settlement(db, agent.id, month)
            created.append(settlement.id)
        logger.info(
            "Monthly settlement run %s: %d created, %d skipped",
            format_month(month),
            len(created),
            len(skipped),
        )
        return {"billing_month": format_month(month), "created": created, "skipped": skipped}


agent_settlements = AgentSettlements()
