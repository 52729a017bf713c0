"""
Audit logging service.
Append-only entries in ``activity_log`` for every administrative mutation.

Entries are written after the mutation has been committed and in a separate
session, so a failed audit write is logged and never undoes the mutation.
"""
from typing import Any, Callable, Dict, Optional

import structlog
from fastapi.encoders import jsonable_encoder
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import ActivityLog, Profile

logger = structlog.get_logger(__name__)

ROW_INSERTED = "ROW_INSERTED"
ROW_UPDATED = "ROW_UPDATED"
ROW_DELETED = "ROW_DELETED"
COLUMN_ADDED = "COLUMN_ADDED"
COLUMN_DELETED = "COLUMN_DELETED"
ENUM_VALUE_ADDED = "ENUM_VALUE_ADDED"


def resolve_organization_id(db: Session, actor_id: Optional[str]) -> str:
    """Organization of the actor, or the sentinel system organization."""
    if actor_id:
        org_id = db.execute(
            select(Profile.organization_id).where(Profile.id == str(actor_id))
        ).scalar_one_or_none()
        if org_id:
            return org_id
    return settings.system_organization_id


class AuditRecorder:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(
        self,
        actor_id: Optional[str],
        action: str,
        entity_type: Optional[str],
        entity_id: Optional[Any] = None,
        details: Optional[Dict] = None,
    ) -> Optional[ActivityLog]:
        """
        Append one audit entry.

        Args:
            actor_id: Identity that performed the action
            action: Verb such as ROW_INSERTED or COLUMN_ADDED
            entity_type: Table name, or "enum" for enum changes
            entity_id: Affected row id, None for schema changes
            details: Structured payload (row snapshot, patch, column spec)

        Returns:
            The stored entry, or None if the write failed
        """
        db = self.session_factory()
        try:
            entry = ActivityLog(
                user_id=str(actor_id) if actor_id else None,
                organization_id=resolve_organization_id(db, actor_id),
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                details=jsonable_encoder(details) if details is not None else None,
            )
            db.add(entry)
            db.commit()
            db.refresh(entry)
            return entry
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "audit_write_failed",
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                error=str(e),
            )
            return None
        finally:
            db.close()


def get_audit_logs(
    db: Session,
    page: int = 1,
    page_size: int = 50,
    entity_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Page through the audit trail, newest first, optionally for one entity type."""
    query = select(ActivityLog)
    count_query = select(func.count()).select_from(ActivityLog)
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
        count_query = count_query.where(ActivityLog.entity_type == entity_type)

    query = query.order_by(ActivityLog.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    rows = db.execute(query).scalars().all()
    total = db.execute(count_query).scalar() or 0

    return {
        "data": [audit_entry_to_dict(r) for r in rows],
        "total": total,
        "page": page,
        "pageSize": page_size,
    }


def audit_entry_to_dict(entry: ActivityLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "organization_id": entry.organization_id,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "details": entry.details,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
