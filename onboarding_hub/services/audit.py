from typing import Any, Optional

from onboarding_hub.models.audit_log import AuditLog
from onboarding_hub.services.access_policy import Actor
from onboarding_hub.services.base import BaseService


def _sanitize(obj: Any) -> Any:
    # Ensure serialization of nested Pydantic models and enums in details
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "value"):
        return obj.value
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        actor: Optional[Actor],
        details: Optional[dict] = None,
    ) -> AuditLog:
        """
        Append an audit entry to the current session.
        Not committed here: the entry lands in the same transaction as the
        change it describes, and disappears with it on rollback.
        """
        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=actor.id if actor else None,
            user_role=actor.role.value if actor else "system",
            details=_sanitize(details or {}),
        )
        self.db.add(entry)
        return entry
