"""Result reconciler.

Completions of the translate, detect and summarize pipelines arrive in any
order.  :class:`ResultReconciler` folds them into one :class:`DraftState`
under a single rule: a result is applied only when its snapshot is the
draft's current snapshot.  Anything older is dropped without an observable
effect on the draft.

Per kind and snapshot the reconciler tracks ``idle -> pending -> applied``
or ``pending -> discarded``.  A commit can *pin* a snapshot, which hands the
result for that snapshot to the commit by value even after the draft has
moved on to a newer edit.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Set, Tuple

from lib.config.chat_session_loader import DEFAULT_FAILURE_MESSAGES
from lib.contracts.capability import CapabilityKind, CapabilityResult, InputSnapshot
from lib.telemetry.logger import get_logger
from lib.utils.validation import ensure

_log = get_logger(__name__)


class KindState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    APPLIED = "applied"
    DISCARDED = "discarded"


@dataclass
class DraftState:
    """Capability outputs for the current input snapshot."""

    snapshot: InputSnapshot = field(default_factory=InputSnapshot)
    detected_language: Optional[str] = None
    summary: Optional[str] = None
    translated_text: Optional[str] = None
    pending: Set[CapabilityKind] = field(default_factory=set)

    def value_for(self, kind: CapabilityKind) -> Optional[str]:
        if kind is CapabilityKind.TRANSLATE:
            return self.translated_text
        if kind is CapabilityKind.DETECT:
            return self.detected_language
        return self.summary

    def _set(self, kind: CapabilityKind, value: Optional[str]) -> None:
        if kind is CapabilityKind.TRANSLATE:
            self.translated_text = value
        elif kind is CapabilityKind.DETECT:
            self.detected_language = value
        else:
            self.summary = value


_Key = Tuple[CapabilityKind, int]


class ResultReconciler:
    def __init__(self, failure_messages: Optional[Mapping[CapabilityKind, str]] = None):
        self.failure_messages = {**DEFAULT_FAILURE_MESSAGES, **dict(failure_messages or {})}
        self.draft = DraftState()
        self._states: Dict[_Key, KindState] = {}
        self._pins: Dict[_Key, List[asyncio.Future]] = {}

    # ------------------------------------------------------------------ state

    @property
    def snapshot(self) -> InputSnapshot:
        return self.draft.snapshot

    @property
    def loading(self) -> bool:
        return bool(self.draft.pending)

    def state_of(self, kind: CapabilityKind, sequence: Optional[int] = None) -> KindState:
        seq = self.draft.snapshot.sequence if sequence is None else sequence
        state = self._states.get((kind, seq))
        if state is not None:
            return state
        if seq < self.draft.snapshot.sequence:
            return KindState.DISCARDED
        return KindState.IDLE

    def outcome_text(self, result: CapabilityResult) -> str:
        """Success value, or the fixed failure placeholder for the kind."""

        text = result.text
        if text is None:
            return self.failure_messages[result.kind]
        return text

    # ------------------------------------------------------------ transitions

    def advance(self, snapshot: InputSnapshot) -> None:
        """Make ``snapshot`` current.

        Field values are kept: they stay visible until a result for the new
        snapshot replaces them.  State for older snapshots is dropped unless
        a commit pinned it; a late result for an unpinned older snapshot is
        recognised by its sequence alone.
        """

        current = self.draft.snapshot.sequence
        ensure(snapshot.sequence > current, f"snapshot {snapshot.sequence} is not newer than {current}")
        if self.draft.pending:
            _log.debug(
                "snapshot %d supersedes outstanding %s",
                snapshot.sequence,
                sorted(k.value for k in self.draft.pending),
            )
        self.draft.snapshot = snapshot
        self.draft.pending = set()
        self._states = {key: state for key, state in self._states.items() if key in self._pins}

    def mark_pending(self, kind: CapabilityKind, snapshot: InputSnapshot) -> None:
        ensure(
            snapshot.sequence == self.draft.snapshot.sequence,
            f"request for snapshot {snapshot.sequence} issued while {self.draft.snapshot.sequence} is current",
        )
        key = (kind, snapshot.sequence)
        ensure(key not in self._states, f"{kind.value} already issued for snapshot {snapshot.sequence}")
        self._states[key] = KindState.PENDING
        self.draft.pending.add(kind)

    def carry(self, kind: CapabilityKind, snapshot: InputSnapshot) -> None:
        """Accept the draft's existing value for ``kind`` as the result for ``snapshot``."""

        ensure(snapshot.sequence == self.draft.snapshot.sequence, "can only carry into the current snapshot")
        self._states[(kind, snapshot.sequence)] = KindState.APPLIED

    def apply(self, result: CapabilityResult) -> KindState:
        """Fold ``result`` into the draft if it is still current.

        Returns the terminal state reached: ``applied`` or ``discarded``.
        """

        kind = result.kind
        seq = result.snapshot.sequence
        key = (kind, seq)
        self._resolve_pins(key, self.outcome_text(result))

        if seq != self.draft.snapshot.sequence:
            _log.debug("discarding stale %s result for snapshot %d (current %d)", kind.value, seq, self.draft.snapshot.sequence)
            self._states.pop(key, None)
            return KindState.DISCARDED

        self.draft._set(kind, self.outcome_text(result))
        self.draft.pending.discard(kind)
        self._states[key] = KindState.APPLIED
        return KindState.APPLIED

    # ---------------------------------------------------------------- pinning

    def pin(self, kind: CapabilityKind, snapshot: InputSnapshot) -> "asyncio.Future[Optional[str]]":
        """Return a future resolving to ``kind``'s output for ``snapshot``.

        Resolves immediately when the output is already in the draft; waits
        for the outstanding request otherwise.  Must be called with a running
        event loop.
        """

        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        key = (kind, snapshot.sequence)
        state = self.state_of(kind, snapshot.sequence)
        if state is KindState.PENDING:
            self._pins.setdefault(key, []).append(fut)
        elif snapshot.sequence == self.draft.snapshot.sequence:
            fut.set_result(self.draft.value_for(kind))
        else:
            fut.set_result(None)
        return fut

    def _resolve_pins(self, key: _Key, text: str) -> None:
        for fut in self._pins.pop(key, []):
            if not fut.done():
                fut.set_result(text)

    def close(self) -> None:
        for futures in self._pins.values():
            for fut in futures:
                if not fut.done():
                    fut.cancel()
        self._pins.clear()


__all__ = ["DraftState", "KindState", "ResultReconciler"]
