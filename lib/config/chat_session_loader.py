import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from lib.contracts.capability import CapabilityKind
from lib.utils.validation import ensure

from .yaml_loader import load_yaml

DEFAULT_CONFIG_PATH = "config/chat_session.yaml"

DEFAULT_LANGUAGES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "pt": "Portuguese",
    "ru": "Russian",
    "tr": "Turkish",
    "fr": "French",
}

DEFAULT_FAILURE_MESSAGES: Dict[CapabilityKind, str] = {
    CapabilityKind.TRANSLATE: "Translation failed. Please try again.",
    CapabilityKind.DETECT: "Detection failed. Please try again.",
    CapabilityKind.SUMMARIZE: "Summarization failed. Please try again.",
}

DEFAULT_SUMMARIZER_OPTIONS: Dict[str, Any] = {
    "shared_context": "This is a general context for summarization.",
    "type": "key-points",
    "format": "plain-text",
    "length": "short",
}


@dataclass
class SessionConfig:
    """Typed view over ``chat_session.yaml``.

    Every key has a built-in default so a session can be created without a
    configuration file.  The raw mapping is kept for lookups that have no
    dedicated attribute.
    """

    raw: Dict[str, Any] = field(default_factory=dict)
    languages: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LANGUAGES))
    default_source_language: str = "en"
    default_target_language: str = "fr"
    summarizer: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SUMMARIZER_OPTIONS))
    failure_messages: Dict[CapabilityKind, str] = field(
        default_factory=lambda: dict(DEFAULT_FAILURE_MESSAGES)
    )
    unknown_language: str = "Unknown"
    debounce_seconds: float = 0.0
    bot_reply_delay_seconds: float = 0.0
    backend_model: str = "gpt-4o-mini"
    backend_timeout: float = 20.0
    log_level: str = "INFO"

    @property
    def supported_languages(self) -> List[str]:
        return list(self.languages)


def config_from_mapping(raw: Dict[str, Any]) -> SessionConfig:
    """Build a :class:`SessionConfig` from an already parsed mapping."""

    raw = raw or {}
    session = raw.get("session", {}) or {}
    languages_cfg = session.get("languages", {}) or {}
    capabilities = raw.get("capabilities", {}) or {}
    backend = capabilities.get("backend", {}) or {}

    languages = dict(languages_cfg.get("supported") or DEFAULT_LANGUAGES)
    source = str(languages_cfg.get("default_source", "en")).lower()
    target = str(languages_cfg.get("default_target", "fr")).lower()
    ensure(source in languages, f"default source language {source!r} is not supported")
    ensure(target in languages, f"default target language {target!r} is not supported")

    failures = dict(DEFAULT_FAILURE_MESSAGES)
    for key, text in (capabilities.get("failure_messages", {}) or {}).items():
        try:
            failures[CapabilityKind(key)] = str(text)
        except ValueError as exc:
            raise ValueError(f"unknown capability in failure_messages: {key!r}") from exc

    summarizer = {**DEFAULT_SUMMARIZER_OPTIONS, **(capabilities.get("summarizer", {}) or {})}

    debounce = float(session.get("debounce_seconds", 0.0))
    ensure(debounce >= 0, "debounce_seconds must not be negative")
    delay = float(session.get("bot_reply_delay_seconds", 0.0))
    ensure(delay >= 0, "bot_reply_delay_seconds must not be negative")

    model = os.getenv("CHAT_CAPABILITY_MODEL") or backend.get("model", "gpt-4o-mini")

    return SessionConfig(
        raw=raw,
        languages=languages,
        default_source_language=source,
        default_target_language=target,
        summarizer=summarizer,
        failure_messages=failures,
        unknown_language=str(capabilities.get("unknown_language", "Unknown")),
        debounce_seconds=debounce,
        bot_reply_delay_seconds=delay,
        backend_model=str(model),
        backend_timeout=float(backend.get("timeout", 20.0)),
        log_level=str((raw.get("logging", {}) or {}).get("level", "INFO")),
    )


def load_chat_session_config(path: str = DEFAULT_CONFIG_PATH) -> SessionConfig:
    """Load ``chat_session.yaml`` and return a :class:`SessionConfig`.

    Parameters
    ----------
    path:
        File system path to the YAML configuration file.  A missing file
        yields the built-in defaults.
    """

    if not Path(path).exists():
        return SessionConfig()
    return config_from_mapping(load_yaml(path))
