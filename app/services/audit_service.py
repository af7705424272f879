import json
import uuid

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


def log_audit(db: Session, actor: str, action: str, entity_type: str, entity_id: str,
              details: dict | None = None) -> AuditLog:
    """Stage an audit row on the session; it is committed together with the change it describes."""
    row = AuditLog(
        id=str(uuid.uuid4()),
        actor=(actor or "system").lower(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        # Decimal amounts and datetimes are written as strings
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str, sort_keys=True),
    )
    db.add(row)
    return row
