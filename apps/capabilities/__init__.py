"""Capability client.

:class:`CapabilityClient` puts translate, detect and summarize behind one
``invoke(kind, snapshot, params)`` call.  It checks availability at call time,
creates (and caches) capability sessions and converts every error into a
:class:`~lib.contracts.capability.Failure` so nothing escapes to the caller
as an exception.  The returned result always carries the snapshot it was
given, which is what lets the reconciler match completions to edits.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional, Tuple

from lib.contracts.capability import (
    CapabilityKind,
    CapabilityParams,
    CapabilityRequest,
    CapabilityResult,
    DetectionCandidate,
    Failure,
    InputSnapshot,
    Success,
)
from lib.telemetry.logger import get_logger
from lib.utils.helpers import normalize_lang_code

from .environment import CapabilityEnvironment
from .errors import CapabilityError, CapabilityUnavailable, InvocationFailure

_log = get_logger(__name__)

_SessionKey = Tuple[CapabilityKind, CapabilityParams]


def best_candidate(candidates: Any, unknown: str = "Unknown") -> str:
    """Return the highest-confidence language code, or ``unknown``."""

    ranked = []
    for item in candidates or []:
        if isinstance(item, DetectionCandidate):
            ranked.append((item.confidence, item.detected_language))
        elif isinstance(item, Mapping):
            code = item.get("detected_language") or item.get("detectedLanguage")
            if code:
                ranked.append((float(item.get("confidence", 0.0)), code))
    if not ranked:
        return unknown
    # stable: ties keep the detector's order
    ranked.sort(key=lambda r: r[0], reverse=True)
    return normalize_lang_code(ranked[0][1]) or unknown


class CapabilityClient:
    def __init__(
        self,
        environment: CapabilityEnvironment,
        summarizer_options: Optional[Dict[str, Any]] = None,
        unknown_language: str = "Unknown",
        cache_sessions: bool = True,
    ):
        self.environment = environment
        self.summarizer_options = dict(summarizer_options or {})
        self.unknown_language = unknown_language
        self.cache_sessions = cache_sessions
        self._sessions: Dict[_SessionKey, Any] = {}

    def supports(self, kind: CapabilityKind) -> bool:
        return self.environment.supports(kind)

    @staticmethod
    def _session_params(kind: CapabilityKind, params: CapabilityParams) -> CapabilityParams:
        # only the translator is configured per language pair
        if kind is CapabilityKind.TRANSLATE:
            return params
        return CapabilityParams()

    async def _session_for(self, kind: CapabilityKind, params: CapabilityParams) -> Any:
        factory = self.environment.factory_for(kind)
        if factory is None:
            raise CapabilityUnavailable(kind)
        key = (kind, self._session_params(kind, params))
        if self.cache_sessions and key in self._sessions:
            return self._sessions[key]
        try:
            if kind is CapabilityKind.TRANSLATE:
                if not params.source_language or not params.target_language:
                    raise ValueError("translation needs a source and a target language")
                session = await factory(
                    source_language=params.source_language,
                    target_language=params.target_language,
                )
            elif kind is CapabilityKind.SUMMARIZE:
                session = await factory(**self.summarizer_options)
            else:
                session = await factory()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise InvocationFailure(kind, exc) from exc
        if self.cache_sessions:
            self._sessions[key] = session
        return session

    async def _call(self, kind: CapabilityKind, session: Any, text: str) -> str:
        if kind is CapabilityKind.TRANSLATE:
            value = await session.translate(text)
        elif kind is CapabilityKind.DETECT:
            value = best_candidate(await session.detect(text), self.unknown_language)
        else:
            value = await session.summarize(text)
        if not isinstance(value, str):
            raise TypeError(f"expected text, got {type(value).__name__}")
        return value

    def _evict(self, kind: CapabilityKind, params: CapabilityParams) -> None:
        self._sessions.pop((kind, self._session_params(kind, params)), None)

    async def invoke(
        self,
        kind: CapabilityKind,
        snapshot: InputSnapshot,
        params: Optional[CapabilityParams] = None,
    ) -> Optional[CapabilityResult]:
        """Run one capability call for ``snapshot``.

        Returns ``None`` without touching the capability when the snapshot
        text is blank.  Otherwise always returns a result: ``Success`` with the
        capability output or ``Failure`` with a reason string.
        """

        if snapshot.is_blank():
            return None
        params = params or CapabilityParams()
        try:
            session = await self._session_for(kind, params)
            try:
                value = await self._call(kind, session, snapshot.text)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._evict(kind, params)
                raise InvocationFailure(kind, exc) from exc
        except CapabilityError as err:
            if isinstance(err, CapabilityUnavailable):
                _log.warning("%s is not available in this environment", kind.value)
            else:
                _log.warning("%s failed for snapshot %d: %s", kind.value, snapshot.sequence, err, exc_info=err.__cause__)
            return CapabilityResult(kind=kind, snapshot=snapshot, outcome=Failure(reason=err.reason))
        return CapabilityResult(kind=kind, snapshot=snapshot, outcome=Success(value=value))

    async def submit(self, request: CapabilityRequest) -> Optional[CapabilityResult]:
        return await self.invoke(request.kind, request.snapshot, request.params)


__all__ = ["CapabilityClient", "best_candidate"]
