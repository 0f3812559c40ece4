import logging

from sqlalchemy.orm import Session

from backoffice import repositories as repo
from backoffice.config import settings
from backoffice.models.ops_log import OpsLogAction
from backoffice.services.common import require_reason

logger = logging.getLogger(__name__)


class OpsLogs:
    @staticmethod
    async def list_by_contract(db: Session, contract_id: str):
        await repo.contracts.get(db, contract_id)
        return await repo.ops_logs.list_by_contract(db, contract_id)

    @staticmethod
    async def list_by_agent(db: Session, agent_id: str):
        await repo.agents.get(db, agent_id)
        return await repo.ops_logs.list_by_agent(db, agent_id)

    @staticmethod
    async def add_note(db: Session, contract_id: str, note: str, actor_user_id: str | None = None):
        note = require_reason(note, "note")
        contract = await repo.contracts.get(db, contract_id)
        entry = await repo.ops_logs.append(
            db,
            org_id=contract.org_id,
            contract_id=contract.id,
            actor_user_id=actor_user_id or settings.default_actor_id,
            action=OpsLogAction.note_added,
            reason=note,
        )
        db.commit()
        db.refresh(entry)
        return entry


ops_logs = OpsLogs()
