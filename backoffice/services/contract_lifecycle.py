"""Contract status machine and the cross-entity guards that gate it.

``change_status`` never raises for a blocked transition. It returns a
``TransitionResult`` listing every unmet condition so the caller can show all
of them at once. Applied transitions write the contract status and an ops log
row in one commit.
"""

import logging
from dataclasses import dataclass, field

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.billing import UNSETTLED_INVOICE_STATUSES
from backoffice.models.contracts import Contract, ContractStatus
from backoffice.models.ops_log import OpsLogAction
from backoffice.services.common import coerce_uuid, require_reason, validate_enum
from backoffice.services.locks import aggregate_locks

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ContractStatus.lead: {ContractStatus.closed_won},
    ContractStatus.closed_won: {ContractStatus.active},
    ContractStatus.active: {ContractStatus.cancel_pending},
    ContractStatus.cancel_pending: {ContractStatus.active, ContractStatus.cancelled},
    ContractStatus.cancelled: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

MISSING_PAYMENT_MESSAGE = (
    "Cannot activate: missing initial payment (no succeeded payment for this contract)"
)


@dataclass(frozen=True)
class TransitionResult:
    applied: bool
    contract: Contract
    blockers: tuple[str, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        return "; ".join(self.blockers)


@dataclass(frozen=True)
class TransitionOption:
    status: ContractStatus
    blockers: tuple[str, ...]

    @property
    def allowed(self) -> bool:
        return not self.blockers


def is_adjacent(from_status: ContractStatus, to_status: ContractStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def adjacency_blocker(from_status: ContractStatus, to_status: ContractStatus) -> str | None:
    if is_adjacent(from_status, to_status):
        return None
    if from_status in TERMINAL_STATUSES:
        return f"Contract is {from_status.value}; no further status changes are allowed"
    return f"Transition from {from_status.value} to {to_status.value} is not allowed"


async def activation_blockers(db: Session, contract: Contract) -> list[str]:
    if await repo.payments.has_succeeded(db, contract.id):
        return []
    return [MISSING_PAYMENT_MESSAGE]


async def cancellation_blockers(db: Session, contract: Contract) -> list[str]:
    """Unpaid invoices and a live route each block cancellation; report both."""
    blockers = []
    invoices = await repo.invoices.list_by_contract(db, contract.id)
    unpaid = [invoice for invoice in invoices if invoice.status in UNSETTLED_INVOICE_STATUSES]
    if unpaid:
        states = ", ".join(sorted({invoice.status.value for invoice in unpaid}))
        blockers.append(
            f"Cannot cancel: {len(unpaid)} unpaid invoice(s) remain ({states})"
        )
    route = await repo.routes.get_by_contract(db, contract.id)
    if route is not None and not route.is_stopped:
        blockers.append(
            f"Cannot cancel: route not stopped (route integration is {route.status.value})"
        )
    return blockers


_GUARDS = {
    (ContractStatus.closed_won, ContractStatus.active): activation_blockers,
    (ContractStatus.cancel_pending, ContractStatus.cancelled): cancellation_blockers,
}


async def evaluate(db: Session, contract: Contract, target: ContractStatus) -> tuple[str, ...]:
    """Every reason ``contract`` cannot move to ``target`` right now."""
    blockers = []
    adjacency = adjacency_blocker(contract.status, target)
    if adjacency:
        blockers.append(adjacency)
    guard = _GUARDS.get((contract.status, target))
    if guard is not None:
        blockers.extend(await guard(db, contract))
    return tuple(blockers)


class ContractLifecycle:
    @staticmethod
    async def change_status(
        db: Session,
        contract_id,
        target,
        reason: str | None,
        actor_user_id: str | None = None,
        extra_changes: dict | None = None,
    ) -> TransitionResult:
        """Move a contract to ``target`` if the edge exists and its guards pass.

        Args:
            db: Database session
            contract_id: Contract to transition
            target: Target status (enum member or value)
            reason: Human-entered reason, required
            actor_user_id: Actor recorded on the ops log row
            extra_changes: Further contract fields written with the status

        Returns:
            TransitionResult; ``applied`` is False when blocked, with nothing written

        Raises:
            HTTPException: 400 for a blank reason or unknown status, 404 for a missing contract
        """
        target = validate_enum(target, ContractStatus, "status")
        if target is None:
            raise HTTPException(status_code=400, detail="Target status is required")
        reason = require_reason(reason)
        actor = actor_user_id or settings.default_actor_id

        async with aggregate_locks.hold("contract", coerce_uuid(contract_id)):
            # Re-read inside the lock so guards see what the previous holder committed
            db.expire_all()
            contract = await repo.contracts.get(db, contract_id, fresh=True)
            blockers = await evaluate(db, contract, target)
            if blockers:
                logger.warning(
                    "Rejected contract %s transition %s -> %s: %s",
                    contract.id,
                    contract.status.value,
                    target.value,
                    "; ".join(blockers),
                )
                return TransitionResult(applied=False, contract=contract, blockers=blockers)

            previous = contract.status
            try:
                if extra_changes:
                    await repo.contracts.update(db, contract, extra_changes)
                await repo.contracts.change_status(db, contract, target)
                await repo.ops_logs.append(
                    db,
                    org_id=contract.org_id,
                    contract_id=contract.id,
                    actor_user_id=actor,
                    action=OpsLogAction.status_changed,
                    before={"status": previous.value},
                    after={"status": target.value},
                    reason=reason,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(contract)
            logger.info(
                "Contract %s status %s -> %s by %s", contract.id, previous.value, target.value, actor
            )
            return TransitionResult(applied=True, contract=contract)

    @staticmethod
    async def available_transitions(db: Session, contract_id) -> list[TransitionOption]:
        contract = await repo.contracts.get(db, contract_id)
        options = []
        for target in sorted(ALLOWED_TRANSITIONS[contract.status], key=lambda s: s.value):
            blockers = await evaluate(db, contract, target)
            options.append(TransitionOption(status=target, blockers=blockers))
        return options


contract_lifecycle = ContractLifecycle()
