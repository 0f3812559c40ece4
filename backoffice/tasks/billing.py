import asyncio
import logging

from backoffice.celery_app import celery_app
from backoffice.db import SessionLocal
from backoffice.services.billing import invoices

logger = logging.getLogger(__name__)


@celery_app.task(name="backoffice.tasks.billing.run_invoice_generation")
def run_invoice_generation(billing_month: str | None = None, org_id: str | None = None):
    session = SessionLocal()
    try:
        result = asyncio.run(invoices.generate_for_month(session, org_id, billing_month))
        return {
            "billing_month": result["billing_month"],
            "generated": [str(item) for item in result["generated"]],
        }
    except Exception:
        session.rollback()
        logger.exception("Invoice generation run failed")
        raise
    finally:
        session.close()
