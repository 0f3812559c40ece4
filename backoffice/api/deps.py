from fastapi import HTTPException

from backoffice.services.contract_lifecycle import TransitionResult


def require_applied(result: TransitionResult):
    """Return the contract of an applied transition, or raise 409 listing the blockers."""
    if result.applied:
        return result.contract
    raise HTTPException(
        status_code=409,
        detail={
            "code": "transition_rejected",
            "message": result.message,
            "details": {"blockers": list(result.blockers)},
        },
    )
