import asyncio
import logging

from backoffice.celery_app import celery_app
from backoffice.db import SessionLocal
from backoffice.services.agent_settlement import agent_settlements

logger = logging.getLogger(__name__)


@celery_app.task(name="backoffice.tasks.agents.run_monthly_settlements")
def run_monthly_settlements(billing_month: str | None = None, org_id: str | None = None):
    session = SessionLocal()
    try:
        result = asyncio.run(agent_settlements.run_monthly(session, org_id, billing_month))
        return {
            "billing_month": result["billing_month"],
            "created": [str(item) for item in result["created"]],
            "skipped": [str(item) for item in result["skipped"]],
        }
    except Exception:
        session.rollback()
        logger.exception("Monthly settlement run failed")
        raise
    finally:
        session.close()
