import asyncio
from types import SimpleNamespace

import pytest

from apps.capabilities.environment import (
    ExtractiveSummarizer,
    HeuristicLanguageDetector,
    build_environment,
)
from apps.capabilities.openai_backend import OpenAICapabilityBackend, parse_candidates
from lib.config.chat_session_loader import SessionConfig
from lib.contracts.capability import CapabilityKind


def test_heuristic_detector_ranks_french_first():
    detector = HeuristicLanguageDetector(["en", "es", "fr"])

    candidates = asyncio.run(detector.detect("Bonjour, je suis très content de vous voir"))

    assert candidates[0].detected_language == "fr"
    assert candidates[0].confidence > 0.5


def test_heuristic_detector_counts_cyrillic_toward_russian():
    detector = HeuristicLanguageDetector(["en", "ru"])

    candidates = asyncio.run(detector.detect("Москва столица"))

    assert [c.detected_language for c in candidates] == ["ru"]


def test_heuristic_detector_returns_nothing_when_unsure():
    detector = HeuristicLanguageDetector(["en", "fr"])

    assert asyncio.run(detector.detect("xyzzy qwrt")) == []
    assert asyncio.run(detector.detect("   ")) == []


def test_key_points_summary_is_bulleted_in_reading_order():
    text = (
        "Cats sleep most of the day. Cats also hunt small animals at night. "
        "The weather was fine. Many cats hunt together near farms."
    )
    summarizer = ExtractiveSummarizer(length="short")

    summary = asyncio.run(summarizer.summarize(text))

    lines = summary.split("\n")
    assert len(lines) == 3
    assert all(line.startswith("- ") for line in lines)
    assert lines[0] == "- Cats sleep most of the day."


def test_markdown_headline_summary():
    markdown = asyncio.run(ExtractiveSummarizer(format="markdown").summarize("One point. Two points."))
    headline = asyncio.run(ExtractiveSummarizer(type="headline").summarize("One point. Two points."))

    assert markdown.startswith("* ")
    assert "\n" not in headline and not headline.startswith("- ")


def test_summarizer_rejects_unknown_options():
    with pytest.raises(ValueError):
        ExtractiveSummarizer(type="essay")
    with pytest.raises(ValueError):
        ExtractiveSummarizer(length="huge")


def test_build_environment_without_key_uses_heuristics(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    env = build_environment(SessionConfig())

    assert [k for k in CapabilityKind if env.supports(k)] == [CapabilityKind.DETECT, CapabilityKind.SUMMARIZE]
    assert not env.supports(CapabilityKind.TRANSLATE)


def test_build_environment_respects_heuristic_model():
    env = build_environment(SessionConfig(backend_model="heuristic"), api_key="sk-test")

    assert env.translator is None


def test_build_environment_with_key_uses_openai():
    env = build_environment(SessionConfig(), api_key="sk-test")

    assert all(env.supports(k) for k in CapabilityKind)


def test_parse_candidates_sorts_and_normalizes():
    raw = '{"candidates": [{"language": "EN", "confidence": 0.2}, {"language": "fr-FR", "confidence": 0.7}, {"confidence": 1}]}'

    candidates = parse_candidates(raw)

    assert [(c.detected_language, c.confidence) for c in candidates] == [("fr", 0.7), ("en", 0.2)]


def test_parse_candidates_rejects_malformed_reply():
    with pytest.raises(ValueError):
        parse_candidates("not json")


class FakeCompletions:
    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(reply):
    completions = FakeCompletions(reply)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_openai_translator_sends_language_pair_in_prompt():
    client, completions = fake_client("  Hola  ")
    backend = OpenAICapabilityBackend(model="gpt-4o-mini", client=client)

    async def scenario():
        translator = await backend.create_translator(source_language="en", target_language="es")
        return await translator.translate("Hello")

    assert asyncio.run(scenario()) == "Hola"
    request = completions.requests[0]
    assert request["model"] == "gpt-4o-mini"
    assert "from en to es" in request["messages"][0]["content"]
    assert request["messages"][1] == {"role": "user", "content": "Hello"}


def test_openai_detector_asks_for_json():
    client, completions = fake_client('{"candidates": [{"language": "tr", "confidence": 0.9}]}')
    backend = OpenAICapabilityBackend(model="gpt-4o-mini", client=client)

    async def scenario():
        detector = await backend.create_language_detector()
        return await detector.detect("Merhaba")

    candidates = asyncio.run(scenario())

    assert candidates[0].detected_language == "tr"
    assert completions.requests[0]["response_format"] == {"type": "json_object"}


def test_openai_empty_completion_raises():
    client, _ = fake_client(None)
    backend = OpenAICapabilityBackend(model="gpt-4o-mini", client=client)

    with pytest.raises(RuntimeError):
        asyncio.run(backend.complete("system", "text"))
