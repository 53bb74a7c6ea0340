"""
Audit Logging Service
Records who changed what, for every mutation
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, Dict
import json
import logging

from sitebooks.models import AuditLog
from sitebooks.services.helpers import page_bounds, iso

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditService:
    """Service for recording and retrieving audit logs"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        actor,
        action: str,
        module: str,
        entity_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[Dict] = None,
        new_values: Optional[Dict] = None,
    ) -> AuditLog:
        """
        Create an audit log entry inside the caller's transaction.

        Args:
            actor: The user performing the action
            action: One of the AuditAction constants
            module: Affected area (e.g. 'contractor', 'bank_transaction')
            entity_id: ID of the affected row
            description: Human-readable summary
            old_values: Values before the change
            new_values: Values after the change

        Returns:
            The created AuditLog row
        """
        audit_log = AuditLog(
            user_id=actor.id if actor else None,
            user_name=actor.name if actor else None,
            user_email=actor.email if actor else None,
            role=actor.role if actor else None,
            action=action,
            module=module,
            entity_id=entity_id,
            description=description,
            old_values=json.dumps(old_values, default=str) if old_values else None,
            new_values=json.dumps(new_values, default=str) if new_values else None,
        )
        self.db.add(audit_log)
        self.db.flush()

        logger.info(
            f"Audit: {action} {module}(id={entity_id}) by user={audit_log.user_email}"
        )
        return audit_log

    def list(
        self,
        module: Optional[str] = None,
        action: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Dict:
        query = self.db.query(AuditLog)
        if module:
            query = query.filter(AuditLog.module == module)
        if action:
            query = query.filter(AuditLog.action == action)

        total = query.count()
        page, page_size = page_bounds(page, page_size)
        logs = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)) \
            .offset((page - 1) * page_size).limit(page_size).all()

        return {
            "logs": [audit_log_to_dict(log) for log in logs],
            "total": total,
            "page": page,
            "page_size": page_size,
        }


def audit_log_to_dict(log: AuditLog) -> Dict:
    return {
        "id": log.id,
        "timestamp": iso(log.timestamp),
        "user_id": log.user_id,
        "user_name": log.user_name,
        "user_email": log.user_email,
        "role": log.role,
        "action": log.action,
        "module": log.module,
        "entity_id": log.entity_id,
        "description": log.description,
        "old_values": json.loads(log.old_values) if log.old_values else None,
        "new_values": json.loads(log.new_values) if log.new_values else None,
    }
