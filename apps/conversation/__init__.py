"""Conversation log and commit actions.

The log is an append-only list of frozen :class:`~lib.contracts.conversation.Message`
objects.  :class:`CommitActions` implements the two user actions that write to
it: *send for translation* and *send for summary*.  Both append the user's
message right away, clear the input and then append the bot reply once the
capability output and the detected language for the committed snapshot are
known.  Both are obtained from the reconciler by value, pinned to the
committed snapshot, so edits made after the commit can never leak into the
reply.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from apps.reconciler import KindState, ResultReconciler
from apps.trigger import TriggerController
from lib.contracts.capability import CapabilityKind, InputSnapshot
from lib.contracts.conversation import Message, Sender
from lib.telemetry.logger import get_logger
from lib.utils.helpers import _dp_snip

_log = get_logger(__name__)


class ConversationLog:
    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._ids = itertools.count(1)

    def append(
        self,
        text: str,
        sender: Sender,
        detected_language: Optional[str] = None,
        summary: Optional[str] = None,
        kind: Optional[CapabilityKind] = None,
        snapshot_sequence: Optional[int] = None,
    ) -> Message:
        message = Message(
            id=next(self._ids),
            text=text,
            sender=sender,
            detected_language=detected_language,
            summary=summary,
            kind=kind,
            snapshot_sequence=snapshot_sequence,
        )
        self._messages.append(message)
        return message

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


@dataclass
class PendingCommit:
    """A commit whose user message is in the log and whose reply may still be outstanding."""

    kind: CapabilityKind
    snapshot: InputSnapshot
    user: Message
    reply: "asyncio.Task[Message]"

    async def wait(self) -> "Commit":
        bot = await self.reply
        return Commit(kind=self.kind, user=self.user, bot=bot)


@dataclass(frozen=True)
class Commit:
    kind: CapabilityKind
    user: Message
    bot: Message


class CommitActions:
    def __init__(
        self,
        log: ConversationLog,
        controller: TriggerController,
        reconciler: ResultReconciler,
        bot_reply_delay_seconds: float = 0.0,
    ):
        self.log = log
        self.controller = controller
        self.reconciler = reconciler
        self.bot_reply_delay_seconds = bot_reply_delay_seconds
        # one reply chain per kind
        self._last_reply: Dict[CapabilityKind, asyncio.Task] = {}
        self._replies: Set[asyncio.Task] = set()

    def _detected_language(self, snapshot: InputSnapshot) -> Optional[str]:
        """Detected language of ``snapshot``, or ``None`` while detection is outstanding."""

        if self.reconciler.state_of(CapabilityKind.DETECT, snapshot.sequence) is KindState.APPLIED:
            return self.reconciler.draft.detected_language
        return None

    def begin(self, kind: CapabilityKind) -> Optional[PendingCommit]:
        """Commit the current input for ``kind``.

        Returns ``None`` and does nothing when the input is blank.
        """

        self.controller.flush()
        snapshot = self.controller.snapshot
        if snapshot.is_blank():
            return None

        user = self.log.append(
            snapshot.text,
            Sender.USER,
            detected_language=self._detected_language(snapshot),
            snapshot_sequence=snapshot.sequence,
        )
        _log.info("committed message %d for %s (snapshot %d)", user.id, kind.value, snapshot.sequence)
        _log.debug("message %d text: %s", user.id, _dp_snip(user.text, 80))

        output = self.reconciler.pin(kind, snapshot)
        language = self.reconciler.pin(CapabilityKind.DETECT, snapshot)
        previous = self._last_reply.get(kind)
        reply = asyncio.create_task(
            self._reply(kind, snapshot, output, language, previous),
            name=f"reply-{user.id}",
        )
        self._last_reply[kind] = reply
        self._replies.add(reply)
        reply.add_done_callback(self._replies.discard)

        self.controller.edit("")
        return PendingCommit(kind=kind, snapshot=snapshot, user=user, reply=reply)

    async def _reply(
        self,
        kind: CapabilityKind,
        snapshot: InputSnapshot,
        output: "asyncio.Future",
        language: "asyncio.Future",
        previous: Optional[asyncio.Task],
    ) -> Message:
        text, detected = await asyncio.gather(output, language)
        if self.bot_reply_delay_seconds > 0:
            await asyncio.sleep(self.bot_reply_delay_seconds)
        if previous is not None and not previous.done():
            # same-kind replies keep the order of the user messages they answer
            await asyncio.gather(previous, return_exceptions=True)
        text = text or ""
        return self.log.append(
            text,
            Sender.BOT,
            detected_language=detected,
            summary=text if kind is CapabilityKind.SUMMARIZE else None,
            kind=kind,
            snapshot_sequence=snapshot.sequence,
        )

    async def send_for_translation(self) -> Optional[Commit]:
        pending = self.begin(CapabilityKind.TRANSLATE)
        return await pending.wait() if pending else None

    async def send_for_summary(self) -> Optional[Commit]:
        pending = self.begin(CapabilityKind.SUMMARIZE)
        return await pending.wait() if pending else None

    async def aclose(self) -> None:
        replies = list(self._replies)
        for task in replies:
            task.cancel()
        await asyncio.gather(*replies, return_exceptions=True)


__all__ = ["Commit", "CommitActions", "ConversationLog", "PendingCommit"]
