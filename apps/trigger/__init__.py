"""Trigger controller.

Turns edit events into capability requests.  Every edit gets a new
:class:`InputSnapshot` with a higher sequence number; for that snapshot the
controller issues at most one request per capability kind and runs them as
independent asyncio tasks.  Older requests are left running: their results
are dropped by the reconciler when they arrive.

A kind is not re-requested when the text and parameters it depends on are
the ones that produced its last successful result.  Changing the target
language therefore re-issues only the translation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set, Tuple

from apps.capabilities import CapabilityClient
from apps.reconciler import KindState, ResultReconciler
from lib.contracts.capability import ALL_KINDS, CapabilityKind, CapabilityParams, InputSnapshot
from lib.telemetry.logger import get_logger
from lib.utils.validation import ensure_language

_log = get_logger(__name__)

_RequestKey = Tuple[str, CapabilityParams]


@dataclass(frozen=True)
class EditEvent:
    """A change to the input box or the language pickers.

    ``None`` leaves the corresponding value unchanged.
    """

    text: Optional[str] = None
    source_language: Optional[str] = None
    target_language: Optional[str] = None


class TriggerController:
    def __init__(
        self,
        client: CapabilityClient,
        reconciler: ResultReconciler,
        source_language: str = "en",
        target_language: str = "fr",
        supported_languages: Iterable[str] = ("en", "es", "pt", "ru", "tr", "fr"),
        debounce_seconds: float = 0.0,
    ):
        self.client = client
        self.reconciler = reconciler
        self.supported_languages = tuple(supported_languages)
        self.source_language = ensure_language(source_language, self.supported_languages)
        self.target_language = ensure_language(target_language, self.supported_languages)
        self.debounce_seconds = debounce_seconds
        self._sequence = reconciler.snapshot.sequence
        self._tasks: Set[asyncio.Task] = set()
        self._debounce: Optional[asyncio.Task] = None
        self._debounced_snapshot: Optional[InputSnapshot] = None
        self._succeeded: Dict[CapabilityKind, _RequestKey] = {}

    @property
    def snapshot(self) -> InputSnapshot:
        return self.reconciler.snapshot

    @property
    def text(self) -> str:
        return self.snapshot.text

    def params_for(self, kind: CapabilityKind) -> CapabilityParams:
        if kind is CapabilityKind.TRANSLATE:
            return CapabilityParams(source_language=self.source_language, target_language=self.target_language)
        return CapabilityParams()

    # ------------------------------------------------------------------ edits

    def submit(self, event: EditEvent) -> InputSnapshot:
        """Apply ``event`` and fan out the capability calls for the new snapshot."""

        source = self.source_language
        target = self.target_language
        if event.source_language is not None:
            source = ensure_language(event.source_language, self.supported_languages)
        if event.target_language is not None:
            target = ensure_language(event.target_language, self.supported_languages)
        self.source_language, self.target_language = source, target

        text = self.text if event.text is None else event.text
        self._sequence += 1
        snapshot = InputSnapshot(text=text, sequence=self._sequence)
        self.reconciler.advance(snapshot)
        self._cancel_debounce()

        if snapshot.is_blank():
            _log.debug("snapshot %d is blank; nothing issued", snapshot.sequence)
            return snapshot
        if self.debounce_seconds > 0:
            self._debounced_snapshot = snapshot
            self._debounce = asyncio.create_task(self._fan_out_later(snapshot))
        else:
            self._fan_out(snapshot)
        return snapshot

    def edit(self, text: str) -> InputSnapshot:
        return self.submit(EditEvent(text=text))

    def set_languages(self, source_language: Optional[str] = None, target_language: Optional[str] = None) -> InputSnapshot:
        return self.submit(EditEvent(source_language=source_language, target_language=target_language))

    async def run(self, events: "asyncio.Queue[Optional[EditEvent]]") -> None:
        """Consume edit events until a ``None`` sentinel arrives."""

        while True:
            event = await events.get()
            try:
                if event is None:
                    return
                self.submit(event)
            except ValueError as exc:
                _log.warning("rejected edit event %r: %s", event, exc)
            finally:
                events.task_done()

    # ----------------------------------------------------------------- fan-out

    def flush(self) -> None:
        """Issue a debounced fan-out right away, if one is waiting."""

        snapshot = self._debounced_snapshot
        if snapshot is None:
            return
        self._cancel_debounce()
        if snapshot.sequence == self.snapshot.sequence:
            self._fan_out(snapshot)

    def _cancel_debounce(self) -> None:
        if self._debounce is not None and not self._debounce.done():
            self._debounce.cancel()
        self._debounce = None
        self._debounced_snapshot = None

    async def _fan_out_later(self, snapshot: InputSnapshot) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if self._debounced_snapshot is snapshot:
            self._debounce = None
            self._debounced_snapshot = None
            self._fan_out(snapshot)

    def _fan_out(self, snapshot: InputSnapshot) -> None:
        for kind in ALL_KINDS:
            params = self.params_for(kind)
            key = (snapshot.text, params)
            if self._succeeded.get(kind) == key:
                self.reconciler.carry(kind, snapshot)
                continue
            self.reconciler.mark_pending(kind, snapshot)
            task = asyncio.create_task(
                self._run_request(kind, snapshot, params, key),
                name=f"{kind.value}-{snapshot.sequence}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_request(
        self,
        kind: CapabilityKind,
        snapshot: InputSnapshot,
        params: CapabilityParams,
        key: _RequestKey,
    ) -> None:
        result = await self.client.invoke(kind, snapshot, params)
        if result is None:
            return
        state = self.reconciler.apply(result)
        if state is KindState.APPLIED:
            if result.ok:
                self._succeeded[kind] = key
            else:
                self._succeeded.pop(kind, None)

    # -------------------------------------------------------------- lifecycle

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or capability task is outstanding."""

        while self._tasks or self._debounce is not None:
            pending = set(self._tasks)
            if self._debounce is not None:
                pending.add(self._debounce)
            await asyncio.gather(*pending, return_exceptions=True)
            if self._debounce is not None and self._debounce.done():
                self._debounce = None

    async def aclose(self) -> None:
        self._cancel_debounce()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.reconciler.close()


__all__ = ["EditEvent", "TriggerController"]
