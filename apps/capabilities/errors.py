"""Errors raised inside the capability layer.

They never leave :class:`apps.capabilities.CapabilityClient`; the client turns
them into a :class:`lib.contracts.capability.Failure` outcome.
"""

from __future__ import annotations

from lib.contracts.capability import CapabilityKind

UNSUPPORTED_REASON = "capability unsupported"


class CapabilityError(Exception):
    def __init__(self, kind: CapabilityKind, message: str):
        super().__init__(message)
        self.kind = kind

    @property
    def reason(self) -> str:
        return str(self)


class CapabilityUnavailable(CapabilityError):
    """The environment does not provide the capability at all."""

    def __init__(self, kind: CapabilityKind):
        super().__init__(kind, UNSUPPORTED_REASON)


class InvocationFailure(CapabilityError):
    """The capability exists but creating a session or calling it failed."""

    def __init__(self, kind: CapabilityKind, cause: BaseException | str):
        detail = cause if isinstance(cause, str) else (str(cause) or type(cause).__name__)
        super().__init__(kind, f"{kind.value} failed: {detail}")
        self.cause = cause if isinstance(cause, BaseException) else None


__all__ = [
    "CapabilityError",
    "CapabilityUnavailable",
    "InvocationFailure",
    "UNSUPPORTED_REASON",
]
