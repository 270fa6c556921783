"""Chat session service.

:class:`ChatSession` wires the capability client, trigger controller,
reconciler, conversation log and transcript projection together for one
conversation.  It is the object a front-end talks to: feed it edits and
language changes, call :meth:`send` or :meth:`summarize`, render
:meth:`view`.  All state lives in memory for the lifetime of the session.

Every method that issues capability calls must run inside an event loop.
"""

from __future__ import annotations

from typing import Optional

from apps.capabilities import CapabilityClient
from apps.capabilities.environment import CapabilityEnvironment, build_environment
from apps.conversation import Commit, CommitActions, ConversationLog, PendingCommit
from apps.reconciler import DraftState, ResultReconciler
from apps.transcript import TranscriptView, project_transcript
from apps.trigger import EditEvent, TriggerController
from lib.config.chat_session_loader import SessionConfig, load_chat_session_config
from lib.contracts.capability import CapabilityKind, InputSnapshot
from lib.utils.helpers import sanitize_user_text


class ChatSession:
    def __init__(self, client: CapabilityClient, cfg: Optional[SessionConfig] = None):
        self.cfg = cfg or SessionConfig()
        self.client = client
        self.reconciler = ResultReconciler(self.cfg.failure_messages)
        self.controller = TriggerController(
            client,
            self.reconciler,
            source_language=self.cfg.default_source_language,
            target_language=self.cfg.default_target_language,
            supported_languages=self.cfg.supported_languages,
            debounce_seconds=self.cfg.debounce_seconds,
        )
        self.log = ConversationLog()
        self.commits = CommitActions(
            self.log,
            self.controller,
            self.reconciler,
            bot_reply_delay_seconds=self.cfg.bot_reply_delay_seconds,
        )

    @classmethod
    def from_config(
        cls,
        cfg: Optional[SessionConfig] = None,
        environment: Optional[CapabilityEnvironment] = None,
    ) -> "ChatSession":
        cfg = cfg or load_chat_session_config()
        env = environment or build_environment(cfg)
        client = CapabilityClient(
            env,
            summarizer_options=cfg.summarizer,
            unknown_language=cfg.unknown_language,
        )
        return cls(client, cfg)

    # ----------------------------------------------------------------- inputs

    @property
    def input_text(self) -> str:
        return self.controller.text

    @property
    def draft(self) -> DraftState:
        return self.reconciler.draft

    @property
    def loading(self) -> bool:
        return self.reconciler.loading

    def edit(self, text: str) -> InputSnapshot:
        return self.controller.edit(sanitize_user_text(text))

    def set_languages(
        self,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> InputSnapshot:
        return self.controller.submit(
            EditEvent(source_language=source_language, target_language=target_language)
        )

    # ---------------------------------------------------------------- commits

    def begin_send(self) -> Optional[PendingCommit]:
        return self.commits.begin(CapabilityKind.TRANSLATE)

    def begin_summarize(self) -> Optional[PendingCommit]:
        return self.commits.begin(CapabilityKind.SUMMARIZE)

    async def send(self) -> Optional[Commit]:
        """Send the current input for translation and wait for the bot reply."""
        return await self.commits.send_for_translation()

    async def summarize(self) -> Optional[Commit]:
        return await self.commits.send_for_summary()

    # ----------------------------------------------------------------- output

    def view(self) -> TranscriptView:
        return project_transcript(
            self.log.messages,
            self.reconciler.draft,
            source_language=self.controller.source_language,
            target_language=self.controller.target_language,
            languages=self.cfg.languages,
        )

    async def wait_idle(self) -> None:
        await self.controller.wait_idle()

    async def aclose(self) -> None:
        await self.commits.aclose()
        await self.controller.aclose()


__all__ = ["ChatSession"]
