"""Shared plumbing for the async repositories.

Repositories read and stage writes on the caller's session; they never flush
or commit. The calling service commits once so that multi-entity updates land
together or not at all.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from fastapi import HTTPException

from backoffice.config import settings
from backoffice.services.common import coerce_uuid, now_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


async def simulate_latency() -> None:
    """Await a random delay inside the configured store latency window."""
    low = settings.store_latency_min_ms
    high = settings.store_latency_max_ms
    if high <= 0:
        await asyncio.sleep(0)
        return
    await asyncio.sleep(random.uniform(low, high) / 1000)


class Repository:
    model: type = None
    label: str | None = None

    @classmethod
    def _label(cls) -> str:
        return cls.label or cls.model.__name__

    @classmethod
    def _find(cls, db: Session, entity_id, fresh: bool = False):
        return db.get(cls.model, coerce_uuid(entity_id), populate_existing=fresh)

    @classmethod
    async def find(cls, db: Session, entity_id, fresh: bool = False):
        await simulate_latency()
        logger.debug(f"Fetching {cls._label()} {entity_id}")
        return cls._find(db, entity_id, fresh=fresh)

    @classmethod
    async def get(cls, db: Session, entity_id, fresh: bool = False):
        await simulate_latency()
        logger.debug(f"Fetching {cls._label()} {entity_id}")
        entity = cls._find(db, entity_id, fresh=fresh)
        if not entity:
            raise HTTPException(status_code=404, detail=f"{cls._label()} not found")
        return entity

    @classmethod
    def _stage(cls, db: Session, **fields):
        # Column defaults normally fire at flush; resolve them now so staged
        # rows are complete before the caller commits
        for column in cls.model.__table__.columns:
            default = column.default
            if column.key in fields or default is None:
                continue
            if default.is_scalar:
                fields[column.key] = default.arg
            elif default.is_callable:
                fields[column.key] = default.arg(None)
        entity = cls.model(**fields)
        db.add(entity)
        return entity

    @classmethod
    def _apply(cls, entity, changes: dict):
        for key, value in changes.items():
            setattr(entity, key, value)
        if hasattr(entity, "updated_at"):
            entity.updated_at = now_utc()
        return entity

    @classmethod
    async def update(cls, db: Session, entity, changes: dict):
        await simulate_latency()
        logger.debug(f"Staging update of {cls._label()} {entity.id}: {sorted(changes)}")
        return cls._apply(entity, changes)
