import uuid, json
from decimal import Decimal
from sqlalchemy.orm import Session
from hippobuck.models.audit_log import AuditLog

def _default(o):
    if isinstance(o, Decimal):
        return str(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)

def log_audit(db: Session, actor: str, action: str, entity_type: str, entity_id: str, details: dict | None = None):
    """Add an activity-log row to the current transaction; the caller commits."""
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor=actor or "public",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details_json=json.dumps(details or {}, ensure_ascii=False, default=_default),
    ))
