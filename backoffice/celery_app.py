from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from backoffice.config import settings
from backoffice.logging import configure_logging


def get_celery_config() -> dict:
    return {
        "broker_url": settings.celery_broker_url,
        "result_backend": settings.celery_result_backend,
        "timezone": settings.billing_timezone,
        "enable_utc": True,
    }


def build_beat_schedule() -> dict:
    return {
        "monthly_agent_settlements": {
            "task": "backoffice.tasks.agents.run_monthly_settlements",
            "schedule": crontab(minute=0, hour=2, day_of_month=1),
        },
        "monthly_invoice_generation": {
            "task": "backoffice.tasks.billing.run_invoice_generation",
            "schedule": crontab(minute=0, hour=3, day_of_month=1),
        },
    }


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()


celery_app = Celery("backoffice")
celery_app.conf.update(get_celery_config())
celery_app.conf.beat_schedule = build_beat_schedule()
celery_app.autodiscover_tasks(["backoffice.tasks"])
