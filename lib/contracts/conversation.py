"""Message model used by the conversation log and the transcript view."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from lib.contracts.capability import CapabilityKind
from lib.utils.helpers import _utcnow_iso


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class Message(BaseModel):
    """A committed chat message.

    Messages are frozen: the capability outputs attached at commit time are
    copied in by value and can not be changed by later results.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int
    text: str
    sender: Sender
    detected_language: str | None = None
    summary: str | None = None
    kind: CapabilityKind | None = None
    snapshot_sequence: int | None = None
    created_at: str = Field(default_factory=_utcnow_iso)


__all__ = ["Message", "Sender"]
