"""Shared fixtures: stub detectors and an engine wired with them."""

import asyncio

import pytest

from message_accuracy.assessment.engine import AccuracyEngine
from message_accuracy.config import Settings
from message_accuracy.detectors.base import DetectorResult
from message_accuracy.models.analysis import DetectorContribution


class StubDetector:
    """Detector double that returns a canned result, raises or sleeps."""

    def __init__(
        self,
        name: str,
        source: str,
        score: float | None = 90.0,
        errors=None,
        payload=None,
        exc: Exception | None = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.source = source
        self.score = score
        self.errors = errors or []
        self.payload = payload or {}
        self.exc = exc
        self.delay = delay
        self.calls = 0

    async def detect(self, text, hint=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=self.score,
                confidence=0.9,
                error_count=len(self.errors),
            ),
            errors=self.errors,
            payload=self.payload,
        )

    def fallback(self, text, hint=None):
        return DetectorResult(
            contribution=DetectorContribution(detector=self.name, source=self.source, score=None)
        )


def stub_detectors(**overrides) -> dict[str, StubDetector]:
    detectors = {
        "grammar_service": StubDetector(
            "grammar-service", "languagetool", score=100, payload={"authoritative": True}
        ),
        "speller": StubDetector("dictionary-checker", "dictionary", score=100),
        "vocabulary_model": StubDetector("cefr-vocabulary", "cefr-wordlists", score=90),
        "fluency_scorer": StubDetector("llm-fluency", "transformer-fluency", score=90),
    }
    detectors.update(overrides)
    return detectors


@pytest.fixture
def settings():
    return Settings(
        openai_api_key=None,
        dictionary_path=None,
        grammar_timeout_seconds=1.0,
        llm_timeout_seconds=1.0,
        total_timeout_seconds=5.0,
    )


@pytest.fixture
def make_engine(settings):
    def _make(settings_override: Settings | None = None, profiles=None, **overrides):
        return AccuracyEngine(
            settings=settings_override or settings,
            profiles=profiles,
            **stub_detectors(**overrides),
        )

    return _make
