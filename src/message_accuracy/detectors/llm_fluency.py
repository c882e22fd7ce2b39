"""LLM-based fluency scorer."""

import json
import re
from typing import Any

import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from message_accuracy.detectors.base import DetectorResult, DetectorUnavailable
from message_accuracy.detectors.cache import TTLCache, cache_key
from message_accuracy.models.analysis import DetectorContribution

logger = structlog.get_logger()

SOURCE = "transformer-fluency"
FALLBACK_BASE = 75
FALLBACK_CONFIDENCE = 0.5

FLUENCY_SYSTEM_PROMPT = """\
You are an expert English writing assessor. Rate the FLUENCY of the learner's \
message: how natural, smooth and idiomatic it reads to a native speaker. \
Ignore the topic; do not reward length for its own sake.

The learner's proficiency level is: {level}.

Respond ONLY with a JSON object:
{{
    "score": <0-100>,
    "reasoning": "<one or two sentences>",
    "improvements": ["<short suggestion>", ...],
    "strengths": ["<short strength>", ...],
    "confidence": <0.0-1.0>
}}
"""


class FluencyJudgement(BaseModel):
    """Parsed LLM response."""

    score: float = Field(ge=0, le=100)
    reasoning: str = ""
    improvements: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0, le=1)


def heuristic_fluency(text: str) -> int:
    """Length and punctuation based fluency estimate used without the LLM."""
    words = text.split()
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    score = FALLBACK_BASE
    if 5 <= len(words) <= 100:
        score += 5
    if len(sentences) >= 2:
        score += 5
    if words:
        average = sum(len(w) for w in words) / len(words)
        if 4 <= average <= 7:
            score += 5
    if re.search(r"[,;:]", text):
        score += 5
    return score


class LLMFluencyScorer:
    """Scores fluency with an OpenAI chat model in JSON mode.

    Args:
        api_key: OpenAI API key; None leaves the scorer unavailable.
        model: Chat model name.
        cache: Shared TTL cache.
        client: Optional pre-built ``AsyncOpenAI`` client.
    """

    name = "llm-fluency"
    source = SOURCE

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        cache: TTLCache | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.cache = cache
        if client is None and api_key:
            client = AsyncOpenAI(api_key=api_key)
        self.client = client

    async def judge(self, text: str, level: str = "Intermediate") -> FluencyJudgement:
        """Ask the model for a fluency judgement.

        Raises:
            DetectorUnavailable: When no client is configured.
            pydantic.ValidationError: When the model returns an out-of-range payload.
        """
        if self.client is None:
            raise DetectorUnavailable("no OpenAI API key configured")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": FLUENCY_SYSTEM_PROMPT.format(level=level)},
                {"role": "user", "content": f"Message:\n{text}"},
            ],
            temperature=0.2,
            response_format={"type": "json_object"},
        )
        result = json.loads(response.choices[0].message.content)
        logger.info("llm_fluency_complete", score=result.get("score"))
        return FluencyJudgement.model_validate(result)

    async def detect(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        level = str((hint or {}).get("level", "Intermediate"))
        key = cache_key(f"fluency:{self.model}:{level}", text)
        if self.cache is not None:
            cached = await self.cache.lookup(key)
            if cached is not None:
                return cached

        judgement = await self.judge(text, level)
        result = DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=judgement.score,
                confidence=judgement.confidence,
                note=judgement.reasoning or None,
            ),
            payload=judgement.model_dump(),
        )
        if self.cache is not None:
            self.cache.set_background(key, result)
        return result

    def fallback(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        score = heuristic_fluency(text)
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=score,
                confidence=FALLBACK_CONFIDENCE,
            ),
            payload={"score": score},
        )
