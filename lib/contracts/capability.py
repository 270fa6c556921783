"""Request/response contract shared by the capability pipelines.

Every capability call (translate, detect, summarize) is tagged with the
:class:`InputSnapshot` that produced it.  The snapshot travels unchanged from
request to result so that completions can be matched to the edit that issued
them no matter in which order they arrive.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from lib.utils.helpers import is_blank


class CapabilityKind(str, Enum):
    """The three independent language capabilities."""

    TRANSLATE = "translate"
    DETECT = "detect"
    SUMMARIZE = "summarize"


ALL_KINDS = (CapabilityKind.TRANSLATE, CapabilityKind.DETECT, CapabilityKind.SUMMARIZE)


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class InputSnapshot(_FrozenModel):
    """Input text captured at one edit, numbered by edit order."""

    text: str = ""
    sequence: int = 0

    def is_blank(self) -> bool:
        return is_blank(self.text)


class CapabilityParams(_FrozenModel):
    source_language: str | None = None
    target_language: str | None = None


class CapabilityRequest(_FrozenModel):
    kind: CapabilityKind
    snapshot: InputSnapshot
    params: CapabilityParams = Field(default_factory=CapabilityParams)


class Success(_FrozenModel):
    status: Literal["success"] = "success"
    value: str


class Failure(_FrozenModel):
    status: Literal["failure"] = "failure"
    reason: str


Outcome = Union[Success, Failure]


class CapabilityResult(_FrozenModel):
    """Completion of a :class:`CapabilityRequest`."""

    kind: CapabilityKind
    snapshot: InputSnapshot
    outcome: Outcome = Field(discriminator="status")

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Success)

    @property
    def text(self) -> str | None:
        """Successful value, or ``None`` when the call failed."""

        if isinstance(self.outcome, Success):
            return self.outcome.value
        return None


class DetectionCandidate(_FrozenModel):
    """One entry of a detector's ranked candidate list."""

    detected_language: str
    confidence: float = 0.0


__all__ = [
    "ALL_KINDS",
    "CapabilityKind",
    "CapabilityParams",
    "CapabilityRequest",
    "CapabilityResult",
    "DetectionCandidate",
    "Failure",
    "InputSnapshot",
    "Outcome",
    "Success",
]
