"""Transcript projection.

:func:`project_transcript` derives everything a chat view renders from the
conversation messages and the live draft.  It reads its inputs and builds a
new :class:`TranscriptView`; nothing is mutated.
"""

from __future__ import annotations

from typing import Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from apps.reconciler import DraftState
from lib.contracts.conversation import Message, Sender

EMPTY_PLACEHOLDER = "Start the conversation!"
LOADING_LABEL = "Translating..."


class TranscriptEntry(BaseModel):
    id: int
    sender: Sender
    text: str
    detected_language: Optional[str] = None
    summary: Optional[str] = None
    align: Literal["left", "right"] = "left"


class LanguageOption(BaseModel):
    code: str
    name: str


class DraftPreview(BaseModel):
    input_text: str = ""
    sequence: int = 0
    detected_language: Optional[str] = None
    summary: Optional[str] = None
    translated_text: Optional[str] = None
    pending: List[str] = Field(default_factory=list)


class TranscriptView(BaseModel):
    entries: List[TranscriptEntry] = Field(default_factory=list)
    placeholder: Optional[str] = None
    loading: bool = False
    loading_label: Optional[str] = None
    draft: DraftPreview = Field(default_factory=DraftPreview)
    source_language: str = "en"
    target_language: str = "fr"
    languages: List[LanguageOption] = Field(default_factory=list)


def _entry(message: Message) -> TranscriptEntry:
    return TranscriptEntry(
        id=message.id,
        sender=message.sender,
        text=message.text,
        detected_language=message.detected_language,
        summary=message.summary,
        align="left" if message.sender is Sender.USER else "right",
    )


def project_transcript(
    messages: Iterable[Message],
    draft: DraftState,
    source_language: str,
    target_language: str,
    languages: Mapping[str, str],
) -> TranscriptView:
    entries = [_entry(m) for m in messages]
    loading = bool(draft.pending)
    return TranscriptView(
        entries=entries,
        placeholder=None if entries else EMPTY_PLACEHOLDER,
        loading=loading,
        loading_label=LOADING_LABEL if loading else None,
        draft=DraftPreview(
            input_text=draft.snapshot.text,
            sequence=draft.snapshot.sequence,
            detected_language=draft.detected_language,
            summary=draft.summary,
            translated_text=draft.translated_text,
            pending=sorted(k.value for k in draft.pending),
        ),
        source_language=source_language,
        target_language=target_language,
        languages=[LanguageOption(code=code, name=name) for code, name in languages.items()],
    )


__all__ = [
    "DraftPreview",
    "LanguageOption",
    "TranscriptEntry",
    "TranscriptView",
    "project_transcript",
]
