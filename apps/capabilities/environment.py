"""Capability environment.

A :class:`CapabilityEnvironment` lists which capabilities the runtime
provides.  Each capability is an async factory returning a session object:

* translator sessions expose ``async translate(text) -> str``
* language detector sessions expose ``async detect(text) -> [DetectionCandidate]``
* summarizer sessions expose ``async summarize(text) -> str``

A factory set to ``None`` means the capability is absent.  The module also
ships the on-device heuristics used when no model backend is configured: a
stop-word language detector and an extractive key-points summarizer.  There
is no heuristic translator, so translation is unavailable in that mode.
"""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from lib.config.chat_session_loader import SessionConfig
from lib.contracts.capability import CapabilityKind, DetectionCandidate
from lib.telemetry.logger import get_logger
from lib.utils.helpers import _tokenize_simple, split_sentences

_log = get_logger(__name__)

SessionFactory = Callable[..., Awaitable[Any]]

HEURISTIC_MODELS = ("none", "disabled", "heuristic")


@dataclass
class CapabilityEnvironment:
    translator: Optional[SessionFactory] = None
    language_detector: Optional[SessionFactory] = None
    summarizer: Optional[SessionFactory] = None

    def factory_for(self, kind: CapabilityKind) -> Optional[SessionFactory]:
        if kind is CapabilityKind.TRANSLATE:
            return self.translator
        if kind is CapabilityKind.DETECT:
            return self.language_detector
        return self.summarizer

    def supports(self, kind: CapabilityKind) -> bool:
        return self.factory_for(kind) is not None


# ---------------------------------------------------------------------------
# On-device heuristics
# ---------------------------------------------------------------------------

STOPWORDS: Dict[str, frozenset] = {
    "en": frozenset(
        "the and is are was were to of in that it you for on with this have be not"
        " what hello thanks please my your we they".split()
    ),
    "es": frozenset(
        "el la los las de que y en un una es por con para no se su al lo como más"
        " hola gracias pero muy está".split()
    ),
    "pt": frozenset(
        "o a os as de que e em um uma é para com não se do da dos das mais"
        " olá obrigado mas muito está você".split()
    ),
    "ru": frozenset(
        "и в не на я что он с как а то это по но она они мы вы привет спасибо"
        " быть был".split()
    ),
    "tr": frozenset(
        "ve bir bu da de için ile ne çok ama gibi daha ben sen merhaba teşekkürler"
        " var yok mi değil".split()
    ),
    "fr": frozenset(
        "le la les de des et est un une que qui pas pour dans en sur avec je vous"
        " bonjour merci mais très nous ce".split()
    ),
}


class HeuristicLanguageDetector:
    """Rank languages by stop-word hits; Cyrillic text counts toward Russian."""

    def __init__(self, languages: Iterable[str]):
        self.languages = [lang for lang in languages if lang in STOPWORDS]

    async def detect(self, text: str) -> List[DetectionCandidate]:
        tokens = _tokenize_simple(text)
        if not tokens:
            return []
        hits: Counter = Counter()
        for lang in self.languages:
            words = STOPWORDS[lang]
            hits[lang] = sum(1 for t in tokens if t in words)
        if "ru" in self.languages:
            cyrillic = sum(1 for ch in text if "а" <= ch.lower() <= "я" or ch.lower() == "ё")
            if cyrillic:
                hits["ru"] += max(1, cyrillic // 4)
        total = sum(hits.values())
        if not total:
            return []
        ranked = sorted(
            (DetectionCandidate(detected_language=lang, confidence=n / total) for lang, n in hits.items() if n),
            key=lambda c: c.confidence,
            reverse=True,
        )
        return ranked


KEY_POINT_COUNTS = {"short": 3, "medium": 5, "long": 7}
SUMMARY_TYPES = ("key-points", "tl;dr", "teaser", "headline")
SUMMARY_FORMATS = ("plain-text", "markdown")


class ExtractiveSummarizer:
    """Pick the highest scoring sentences by word frequency, in reading order."""

    def __init__(
        self,
        type: str = "key-points",
        format: str = "plain-text",
        length: str = "short",
        shared_context: str = "",
    ):
        if type not in SUMMARY_TYPES:
            raise ValueError(f"unsupported summary type: {type!r}")
        if format not in SUMMARY_FORMATS:
            raise ValueError(f"unsupported summary format: {format!r}")
        if length not in KEY_POINT_COUNTS:
            raise ValueError(f"unsupported summary length: {length!r}")
        self.type = type
        self.format = format
        self.length = length
        self.shared_context = shared_context

    def _limit(self) -> int:
        if self.type in ("headline", "teaser"):
            return 1
        if self.type == "tl;dr":
            return max(1, KEY_POINT_COUNTS[self.length] - 2)
        return KEY_POINT_COUNTS[self.length]

    async def summarize(self, text: str) -> str:
        sentences = split_sentences(text)
        if not sentences:
            return ""
        freq = Counter(t for t in _tokenize_simple(text) if len(t) > 3)
        scored = []
        for idx, sentence in enumerate(sentences):
            toks = _tokenize_simple(sentence)
            score = sum(freq[t] for t in toks) / max(1, len(toks))
            scored.append((score, idx, sentence))
        keep = sorted(scored, key=lambda s: (-s[0], s[1]))[: self._limit()]
        chosen = [s for _, _, s in sorted(keep, key=lambda s: s[1])]
        if self.type != "key-points":
            return " ".join(chosen)
        bullet = "* " if self.format == "markdown" else "- "
        return "\n".join(bullet + s for s in chosen)


def heuristic_environment(cfg: SessionConfig) -> CapabilityEnvironment:
    async def create_detector(**_: Any) -> HeuristicLanguageDetector:
        return HeuristicLanguageDetector(cfg.supported_languages)

    async def create_summarizer(**options: Any) -> ExtractiveSummarizer:
        return ExtractiveSummarizer(**options)

    return CapabilityEnvironment(language_detector=create_detector, summarizer=create_summarizer)


def build_environment(cfg: SessionConfig, api_key: Optional[str] = None) -> CapabilityEnvironment:
    """Return the environment for ``cfg``.

    The OpenAI backend provides all three capabilities when an API key is
    available and the configured model is not one of :data:`HEURISTIC_MODELS`;
    otherwise the on-device heuristics are used.
    """

    api_key = api_key or os.getenv("OPENAI_API_KEY")
    if api_key and cfg.backend_model.lower() not in HEURISTIC_MODELS:
        from .openai_backend import OpenAICapabilityBackend

        backend = OpenAICapabilityBackend(
            model=cfg.backend_model,
            api_key=api_key,
            timeout=cfg.backend_timeout,
        )
        _log.info("Capabilities backed by OpenAI model %s", cfg.backend_model)
        return backend.environment()
    _log.info("No model backend configured; using on-device heuristics (translation unavailable)")
    return heuristic_environment(cfg)


__all__ = [
    "CapabilityEnvironment",
    "ExtractiveSummarizer",
    "HeuristicLanguageDetector",
    "build_environment",
    "heuristic_environment",
]
