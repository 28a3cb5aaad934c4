"""
Batched timeline editing with undo/redo.

A session captures the store state when it begins and keeps an ordered log of
the mutations made since. Undo and redo never patch state in place: the
store is restored to the baseline and the first ``cursor`` mutations of the
log are replayed on top of it. Nothing reaches the persistence collaborator
until ``save``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .gateway import PersistenceGateway
from .store import AllocationStore, CommitResult, Mutation, StoreSnapshot

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class SessionChange:
    mutation: Mutation
    label: str


@dataclass(frozen=True)
class SaveResult:
    committed: Tuple[str, ...] = ()
    failure: Optional[CommitResult] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class _SessionState:
    baseline: StoreSnapshot
    log: List[SessionChange] = field(default_factory=list)
    cursor: int = 0


class EditSession:
    def __init__(self, store: AllocationStore) -> None:
        self.store = store
        self._state: Optional[_SessionState] = None

    @property
    def active(self) -> bool:
        return self._state is not None

    def _require_active(self) -> _SessionState:
        if self._state is None:
            raise SessionStateError("no edit session in progress")
        return self._state

    def begin(self) -> None:
        if self._state is not None:
            raise SessionStateError("edit session already in progress")
        self._state = _SessionState(baseline=self.store.snapshot())
        logger.debug("edit session started")

    def record(self, mutation: Mutation, label: Optional[str] = None) -> SessionChange:
        """Append an already-applied mutation; drops anything that was undone."""
        state = self._require_active()
        del state.log[state.cursor:]
        change = SessionChange(mutation=mutation, label=label or mutation.operation)
        state.log.append(change)
        state.cursor = len(state.log)
        return change

    @property
    def changes(self) -> Tuple[SessionChange, ...]:
        if self._state is None:
            return ()
        return tuple(self._state.log[: self._state.cursor])

    @property
    def can_undo(self) -> bool:
        return self._state is not None and self._state.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._state is not None and self._state.cursor < len(self._state.log)

    def _replay(self, state: _SessionState) -> None:
        self.store.restore(state.baseline)
        for change in state.log[: state.cursor]:
            self.store.reapply(change.mutation)

    def undo(self) -> Optional[SessionChange]:
        state = self._require_active()
        if state.cursor == 0:
            return None
        state.cursor -= 1
        self._replay(state)
        change = state.log[state.cursor]
        logger.debug("undo %s", change.label)
        return change

    def redo(self) -> Optional[SessionChange]:
        state = self._require_active()
        if state.cursor >= len(state.log):
            return None
        change = state.log[state.cursor]
        state.cursor += 1
        self._replay(state)
        logger.debug("redo %s", change.label)
        return change

    def discard(self) -> None:
        state = self._require_active()
        self.store.restore(state.baseline)
        self._state = None
        logger.info("discarded %d unsaved change(s)", state.cursor)

    def save(self, gateway: PersistenceGateway) -> SaveResult:
        """Commit the active changes in order, stopping at the first failure.

        Committed changes leave the session; the failed change and everything
        after it stay so the caller can retry or discard them.
        """
        state = self._require_active()
        pending = state.log[: state.cursor]
        committed: List[str] = []
        for idx, change in enumerate(pending):
            result = self.store.commit(change.mutation, gateway)
            if not result.ok:
                self._rebase(state, idx)
                logger.warning("session save stopped at %s: %s", change.label, result.error)
                return SaveResult(committed=tuple(committed), failure=result)
            committed.append(change.mutation.id)
        self._state = None
        logger.info("saved %d change(s)", len(committed))
        return SaveResult(committed=tuple(committed))

    def _rebase(self, state: _SessionState, committed_count: int) -> None:
        if committed_count == 0:
            return
        self.store.restore(state.baseline)
        for change in state.log[:committed_count]:
            self.store.reapply(change.mutation)
        state.baseline = self.store.snapshot()
        del state.log[:committed_count]
        state.cursor -= committed_count
        self._replay(state)
