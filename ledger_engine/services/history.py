import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.models import HistoryAction, HistoryModule

logger = logging.getLogger("ledger_engine")


def _json_safe(payload: Dict[str, Any]) -> Dict[str, Any]:
    def _default(value: Any):
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if hasattr(value, "value"):
            return value.value
        return str(value)

    return json.loads(json.dumps(payload or {}, default=_default))


def append_history(
    db: Session,
    *,
    module: HistoryModule,
    entity_id: int,
    actor_id: Optional[int],
    action: HistoryAction,
    details: Dict[str, Any] | None = None,
) -> models.History:
    """
    Append one history row inside the caller's transaction.

    Never commits: the entry is persisted or discarded together with the
    change it describes.
    """
    row = models.History(
        module=module,
        entity_id=int(entity_id),
        actor_id=actor_id,
        action=action,
        details=_json_safe(details or {}),
    )
    db.add(row)
    db.flush()
    logger.info(
        "history_appended",
        extra={"history_module": module.value, "entity_id": int(entity_id), "action": action.value},
    )
    return row


def list_history(db: Session, *, module: HistoryModule, entity_id: int) -> list[models.History]:
    return (
        db.query(models.History)
        .filter(models.History.module == module)
        .filter(models.History.entity_id == int(entity_id))
        .order_by(models.History.created_at.desc(), models.History.id.desc())
        .all()
    )
