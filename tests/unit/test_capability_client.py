import asyncio

from apps.capabilities import CapabilityClient, best_candidate
from lib.contracts.capability import (
    CapabilityKind,
    CapabilityParams,
    CapabilityRequest,
    DetectionCandidate,
    Failure,
    InputSnapshot,
    Success,
)

EN_FR = CapabilityParams(source_language="en", target_language="fr")


def test_blank_snapshot_is_skipped_without_calling_capability(fake):
    client = CapabilityClient(fake.environment())

    result = asyncio.run(client.invoke(CapabilityKind.TRANSLATE, InputSnapshot(text="   ", sequence=1), EN_FR))

    assert result is None
    assert fake.calls == []
    assert fake.created == []


def test_success_carries_the_request_snapshot(fake):
    fake.translations[("hello", "fr")] = "bonjour"
    client = CapabilityClient(fake.environment())
    snap = InputSnapshot(text="hello", sequence=7)

    result = asyncio.run(client.invoke(CapabilityKind.TRANSLATE, snap, EN_FR))

    assert result.snapshot == snap
    assert result.outcome == Success(value="bonjour")
    assert result.ok and result.text == "bonjour"


def test_missing_capability_yields_unsupported_failure(fake):
    fake.missing.add("summarize")
    client = CapabilityClient(fake.environment())
    snap = InputSnapshot(text="some text", sequence=2)

    result = asyncio.run(client.invoke(CapabilityKind.SUMMARIZE, snap))

    assert client.supports(CapabilityKind.SUMMARIZE) is False
    assert result.outcome == Failure(reason="capability unsupported")
    assert result.snapshot == snap
    assert result.text is None


def test_runtime_error_is_converted_to_failure(fake):
    fake.failing.add("translate")
    client = CapabilityClient(fake.environment())

    result = asyncio.run(client.invoke(CapabilityKind.TRANSLATE, InputSnapshot(text="hi", sequence=1), EN_FR))

    assert isinstance(result.outcome, Failure)
    assert "translate failed" in result.outcome.reason
    assert "exploded" in result.outcome.reason


def test_factory_error_is_converted_to_failure():
    from apps.capabilities.environment import CapabilityEnvironment

    async def broken_factory(**_):
        raise OSError("model not downloaded")

    client = CapabilityClient(CapabilityEnvironment(language_detector=broken_factory))

    result = asyncio.run(client.invoke(CapabilityKind.DETECT, InputSnapshot(text="hola", sequence=1)))

    assert isinstance(result.outcome, Failure)
    assert "model not downloaded" in result.outcome.reason


def test_translation_without_language_pair_fails_closed(fake):
    client = CapabilityClient(fake.environment())

    result = asyncio.run(client.invoke(CapabilityKind.TRANSLATE, InputSnapshot(text="hi", sequence=1)))

    assert isinstance(result.outcome, Failure)
    assert fake.calls == []


def test_detect_returns_highest_confidence_candidate(fake):
    fake.detections["Bonjour"] = [
        DetectionCandidate(detected_language="en", confidence=0.2),
        DetectionCandidate(detected_language="fr", confidence=0.7),
    ]
    client = CapabilityClient(fake.environment())

    result = asyncio.run(client.invoke(CapabilityKind.DETECT, InputSnapshot(text="Bonjour", sequence=1)))

    assert result.text == "fr"


def test_detect_with_no_candidates_is_unknown(fake):
    fake.detections["???"] = []
    client = CapabilityClient(fake.environment(), unknown_language="Unknown")

    result = asyncio.run(client.invoke(CapabilityKind.DETECT, InputSnapshot(text="???", sequence=1)))

    assert result.outcome == Success(value="Unknown")


def test_best_candidate_accepts_mappings():
    ranked = [{"detectedLanguage": "pt-BR", "confidence": 0.9}, {"detected_language": "es", "confidence": 0.1}]

    assert best_candidate(ranked) == "pt"
    assert best_candidate([]) == "Unknown"
    assert best_candidate(None, unknown="??") == "??"


def test_sessions_are_cached_per_kind_and_params(fake):
    client = CapabilityClient(fake.environment(), summarizer_options={"type": "key-points"})

    async def scenario():
        for seq, text in enumerate(["one", "two"], start=1):
            snap = InputSnapshot(text=text, sequence=seq)
            await client.invoke(CapabilityKind.TRANSLATE, snap, EN_FR)
            await client.invoke(CapabilityKind.SUMMARIZE, snap)
        await client.invoke(
            CapabilityKind.TRANSLATE,
            InputSnapshot(text="three", sequence=3),
            CapabilityParams(source_language="en", target_language="es"),
        )

    asyncio.run(scenario())

    created = [kind for kind, _ in fake.created]
    assert created.count("translate") == 2
    assert created.count("summarize") == 1
    assert ("summarize", {"type": "key-points"}) in fake.created


def test_failed_call_evicts_cached_session(fake):
    client = CapabilityClient(fake.environment())

    async def scenario():
        fake.failing.add("detect")
        await client.invoke(CapabilityKind.DETECT, InputSnapshot(text="a", sequence=1))
        fake.failing.discard("detect")
        return await client.invoke(CapabilityKind.DETECT, InputSnapshot(text="b", sequence=2))

    result = asyncio.run(scenario())

    assert result.ok
    assert [kind for kind, _ in fake.created] == ["detect", "detect"]


def test_submit_accepts_request_objects(fake):
    client = CapabilityClient(fake.environment())
    request = CapabilityRequest(kind=CapabilityKind.SUMMARIZE, snapshot=InputSnapshot(text="long text", sequence=4))

    result = asyncio.run(client.submit(request))

    assert result.kind is CapabilityKind.SUMMARIZE
    assert result.text == "summary of long text"
