import logging

from fastapi import FastAPI

from backoffice.api.accounts import router as accounts_router
from backoffice.api.admin import router as admin_router
from backoffice.api.agents import router as agents_router
from backoffice.api.billing import router as billing_router
from backoffice.api.calls import router as calls_router
from backoffice.api.contracts import router as contracts_router
from backoffice.api.routes import router as routes_router
from backoffice.config import settings
from backoffice.db import SessionLocal, init_db
from backoffice.errors import register_error_handlers
from backoffice.logging import configure_logging
from backoffice.services.seed import is_empty, load_seed

app = FastAPI(title="MEO back-office API")
logger = logging.getLogger(__name__)
configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(accounts_router)
_include_api_router(contracts_router)
_include_api_router(billing_router)
_include_api_router(routes_router)
_include_api_router(agents_router)
_include_api_router(calls_router)
_include_api_router(admin_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def _prepare_store():
    init_db()
    if not settings.seed_on_startup:
        return
    db = SessionLocal()
    try:
        if is_empty(db):
            load_seed(db)
    except Exception:
        db.rollback()
        logger.exception("Failed to load seed data during startup")
    finally:
        db.close()
