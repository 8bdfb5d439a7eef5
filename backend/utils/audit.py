# backend/utils/audit.py
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.log import Log
from utils.permissions import Actor

logger = logging.getLogger(__name__)

# Append an audit row; the workflow result never depends on it
def write_log(db: Session, actor: Optional[Actor], *, action, resource, resource_id=None,
              status="SUCCESS", ip=None, meta=None):
    entry = Log(
        user_id=actor.id if actor else None,
        actor_email=actor.email if actor else None,
        action=action,
        resource=resource,
        resource_id=resource_id,
        status=status,
        ip=ip,
        meta=meta or {},
    )
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write audit log {action}/{resource}#{resource_id}: {e}")
