from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.services.seed import reset_to_seed

router = APIRouter()


@router.post("/admin/reset", tags=["admin"])
async def reset_data(org_id: str | None = None, db: Session = Depends(get_db)) -> dict:
    """Drop every row and reload the seed data set."""
    reset_to_seed(db, org_id)
    return {"status": "reset"}
