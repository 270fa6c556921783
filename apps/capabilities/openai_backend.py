"""OpenAI-backed capability sessions.

All three capabilities are served by chat completions on one ``AsyncOpenAI``
client.  Language detection asks for a JSON candidate list so the result has
the same ranked shape as the on-device detector.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from openai import AsyncOpenAI

from lib.contracts.capability import DetectionCandidate
from lib.utils.helpers import normalize_lang_code

from .environment import CapabilityEnvironment

TRANSLATE_PROMPT = (
    "Translate the user's text from {source} to {target}. "
    "Reply with the translation only, without quotes or commentary."
)
DETECT_PROMPT = (
    "Identify the language of the user's text. Reply with a JSON object "
    '{"candidates": [{"language": "<ISO 639-1 code>", "confidence": <0..1>}]} '
    "ordered from most to least likely. Use an empty list if unsure."
)
SUMMARIZE_PROMPT = (
    "{context}\nSummarize the user's text as {type} in {format}, {length} length. "
    "Reply with the summary only."
)


class OpenAICapabilityBackend:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 20.0,
        client: Any = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=1)

    async def complete(self, system: str, text: str, json_mode: bool = False) -> str:
        kwargs: dict = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=0,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
            **kwargs,
        )
        content = resp.choices[0].message.content if resp.choices else None
        if content is None:
            raise RuntimeError("empty completion")
        return content.strip()

    async def create_translator(self, source_language: str, target_language: str, **_: Any) -> "OpenAITranslator":
        return OpenAITranslator(self, source_language, target_language)

    async def create_language_detector(self, **_: Any) -> "OpenAILanguageDetector":
        return OpenAILanguageDetector(self)

    async def create_summarizer(self, **options: Any) -> "OpenAISummarizer":
        return OpenAISummarizer(self, **options)

    def environment(self) -> CapabilityEnvironment:
        return CapabilityEnvironment(
            translator=self.create_translator,
            language_detector=self.create_language_detector,
            summarizer=self.create_summarizer,
        )


class OpenAITranslator:
    def __init__(self, backend: OpenAICapabilityBackend, source_language: str, target_language: str):
        self.backend = backend
        self.system = TRANSLATE_PROMPT.format(source=source_language, target=target_language)

    async def translate(self, text: str) -> str:
        return await self.backend.complete(self.system, text)


def parse_candidates(raw: str) -> List[DetectionCandidate]:
    """Parse the detector reply; malformed JSON raises ``ValueError``."""

    data = json.loads(raw)
    items = data.get("candidates", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ValueError("candidates must be a list")
    out: List[DetectionCandidate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        code = normalize_lang_code(item.get("language") or item.get("detectedLanguage"))
        if not code:
            continue
        out.append(DetectionCandidate(detected_language=code, confidence=float(item.get("confidence", 0.0))))
    return sorted(out, key=lambda c: c.confidence, reverse=True)


class OpenAILanguageDetector:
    def __init__(self, backend: OpenAICapabilityBackend):
        self.backend = backend

    async def detect(self, text: str) -> List[DetectionCandidate]:
        raw = await self.backend.complete(DETECT_PROMPT, text, json_mode=True)
        return parse_candidates(raw)


class OpenAISummarizer:
    def __init__(
        self,
        backend: OpenAICapabilityBackend,
        type: str = "key-points",
        format: str = "plain-text",
        length: str = "short",
        shared_context: str = "",
    ):
        self.backend = backend
        self.system = SUMMARIZE_PROMPT.format(
            context=shared_context, type=type, format=format, length=length
        ).strip()

    async def summarize(self, text: str) -> str:
        return await self.backend.complete(self.system, text)


__all__ = ["OpenAICapabilityBackend", "parse_candidates"]
