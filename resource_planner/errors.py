from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Rejected input. Raised before any state is touched."""

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or reason.replace("_", " "))
        self.reason = reason


class LockedProjectError(ValidationError):
    def __init__(self, project_id: str) -> None:
        super().__init__("project_locked", f"project {project_id} is locked or archived")
        self.project_id = project_id


class NotFoundError(KeyError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self) -> str:
        return str(self.args[0])


class PersistenceError(RuntimeError):
    """Remote commit rejected or the collaborator could not be reached."""
