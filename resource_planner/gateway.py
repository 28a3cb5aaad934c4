from __future__ import annotations

import copy
import threading
from typing import Callable, Dict, List, Optional, Protocol

from .errors import PersistenceError
from .io_utils import entity_to_dict
from .store import EntityChange, Mutation

_METHODS = {
    (True, False): "POST",
    (False, False): "PUT",
    (False, True): "DELETE",
}


class PersistenceGateway(Protocol):
    def commit(self, mutation: Mutation) -> None:
        """Persist ``mutation`` or raise PersistenceError."""


def change_to_request(change: EntityChange) -> Dict[str, object]:
    created = change.before is None
    deleted = change.after is None
    request: Dict[str, object] = {
        "method": _METHODS[(created, deleted)],
        "entity": change.kind.value,
        "id": change.entity_id,
    }
    if not deleted:
        request["body"] = entity_to_dict(change.after)
    return request


def mutation_to_payload(mutation: Mutation) -> Dict[str, object]:
    return {
        "mutationId": mutation.id,
        "operation": mutation.operation,
        "requests": [change_to_request(change) for change in mutation.changes],
    }


class InMemoryGateway:
    """Records committed payloads; ``fail_with`` makes the next commits fail."""

    def __init__(self, fail_with: Optional[str] = None) -> None:
        self._payloads: List[Dict[str, object]] = []
        self._lock = threading.Lock()
        self.fail_with = fail_with

    def commit(self, mutation: Mutation) -> None:
        if self.fail_with is not None:
            raise PersistenceError(self.fail_with)
        payload = mutation_to_payload(mutation)
        with self._lock:
            self._payloads.append(payload)

    @property
    def payloads(self) -> List[Dict[str, object]]:
        with self._lock:
            return copy.deepcopy(self._payloads)


class CallbackGateway:
    """Hands each payload to ``send``; any exception it raises fails the commit."""

    def __init__(self, send: Callable[[Dict[str, object]], None]) -> None:
        self._send = send

    def commit(self, mutation: Mutation) -> None:
        try:
            self._send(mutation_to_payload(mutation))
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc
