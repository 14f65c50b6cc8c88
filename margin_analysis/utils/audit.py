import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from margin_analysis.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _to_json(values: Any) -> Optional[str]:
    if values is None:
        return None
    if isinstance(values, str):
        return values
    return json.dumps(values, default=str)


def log_audit(
    db: Session,
    user_id: Optional[int],
    action: str,
    table_name: str,
    record_id: Optional[int] = None,
    old_values: Any = None,
    new_values: Any = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Add an audit row to the current transaction.

    Caller is responsible for committing, so the audit row lands together
    with the change it describes.
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_values=_to_json(old_values),
        new_values=_to_json(new_values),
        ip_address=ip_address,
    )
    db.add(entry)
    logger.debug("Audit %s %s #%s by user %s", action, table_name, record_id, user_id)
    return entry
