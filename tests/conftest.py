import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from apps.capabilities import CapabilityClient
from apps.capabilities.environment import CapabilityEnvironment
from apps.chat_session import ChatSession
from lib.config.chat_session_loader import SessionConfig
from lib.contracts.capability import DetectionCandidate


class FakeCapabilities:
    """In-memory capabilities whose calls can be held open by the test.

    ``hold(kind, text)`` makes the next calls for that pair wait until
    ``release(kind, text)``; everything else completes on the next loop turn.
    """

    def __init__(
        self,
        translations: Optional[Dict[Tuple[str, str], str]] = None,
        detections: Optional[Dict[str, List[DetectionCandidate]]] = None,
        summaries: Optional[Dict[str, str]] = None,
        missing: Tuple[str, ...] = (),
        failing: Tuple[str, ...] = (),
    ):
        self.translations = translations or {}
        self.detections = detections or {}
        self.summaries = summaries or {}
        self.missing = set(missing)
        self.failing = set(failing)
        self.calls: List[Tuple[str, str]] = []
        self.created: List[Tuple[str, dict]] = []
        self._gates: Dict[Tuple[str, str], asyncio.Event] = {}

    def hold(self, kind: str, text: str) -> None:
        self._gates[(kind, text)] = asyncio.Event()

    def release(self, kind: str, text: str) -> None:
        self._gates[(kind, text)].set()

    def calls_for(self, kind: str) -> List[str]:
        return [text for k, text in self.calls if k == kind]

    async def _run(self, kind: str, text: str, value):
        self.calls.append((kind, text))
        gate = self._gates.get((kind, text))
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if kind in self.failing:
            raise RuntimeError(f"{kind} backend exploded")
        return value

    def environment(self) -> CapabilityEnvironment:
        fake = self

        class Translator:
            def __init__(self, source: str, target: str):
                self.source = source
                self.target = target

            async def translate(self, text: str) -> str:
                value = fake.translations.get((text, self.target), f"{text} [{self.source}->{self.target}]")
                return await fake._run("translate", text, value)

        class Detector:
            async def detect(self, text: str):
                value = fake.detections.get(text, [DetectionCandidate(detected_language="en", confidence=0.5)])
                return await fake._run("detect", text, value)

        class Summarizer:
            async def summarize(self, text: str) -> str:
                return await fake._run("summarize", text, fake.summaries.get(text, f"summary of {text}"))

        async def create_translator(**options):
            fake.created.append(("translate", options))
            return Translator(options["source_language"], options["target_language"])

        async def create_detector(**options):
            fake.created.append(("detect", options))
            return Detector()

        async def create_summarizer(**options):
            fake.created.append(("summarize", options))
            return Summarizer()

        return CapabilityEnvironment(
            translator=None if "translate" in self.missing else create_translator,
            language_detector=None if "detect" in self.missing else create_detector,
            summarizer=None if "summarize" in self.missing else create_summarizer,
        )


async def _settle(turns: int = 10) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Coroutine function letting ready tasks run without waiting on held calls."""
    return _settle


@pytest.fixture
def fake():
    return FakeCapabilities()


@pytest.fixture
def make_session():
    def _make(fake: FakeCapabilities, cfg: Optional[SessionConfig] = None) -> ChatSession:
        cfg = cfg or SessionConfig()
        client = CapabilityClient(fake.environment(), summarizer_options=cfg.summarizer)
        return ChatSession(client, cfg)

    return _make
