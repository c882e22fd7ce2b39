"""CEFR vocabulary model adapter backed by headword lists."""

from collections import Counter
from pathlib import Path
from typing import Any

import structlog
import yaml

from message_accuracy.assessment.text import FUNCTION_WORDS, get_nlp, tokenize_words
from message_accuracy.assessment.vocabulary import estimate_cefr, vocabulary_metrics, vocabulary_score
from message_accuracy.detectors.base import DetectorResult, DetectorUnavailable
from message_accuracy.detectors.cache import TTLCache, cache_key
from message_accuracy.models.analysis import DetectorContribution

logger = structlog.get_logger()

SOURCE = "cefr-wordlists"
CEFR_LEVELS = ["A1", "A2", "B1", "B2", "C1", "C2"]
LEVEL_WEIGHTS = {"A1": 0, "A2": 20, "B1": 40, "B2": 60, "C1": 80, "C2": 100}
UNLISTED_LEVEL = "B2"
# A level counts toward the text's CEFR once it covers this share of content words
LEVEL_COVERAGE = 0.1


def lemmatize(text: str) -> list[str]:
    """Lowercased lemmas of alphabetic tokens, or surface forms without spaCy."""
    nlp = get_nlp()
    if nlp is None:
        return tokenize_words(text)
    return [t.lemma_.lower() for t in nlp(text) if t.is_alpha]


def _strip_inflection(word: str, levels: dict[str, str]) -> str | None:
    for suffix, replacement in (("ies", "y"), ("es", ""), ("s", ""), ("ed", ""), ("ed", "e"), ("ing", ""), ("ing", "e")):
        if word.endswith(suffix):
            stem = word[: -len(suffix)] + replacement
            if stem in levels:
                return stem
    return None


class CEFRVocabularyModel:
    """Grades vocabulary sophistication against CEFR A1-C2 headword lists.

    Args:
        path: YAML file mapping each CEFR level to a list of lemmas.
        cache: Shared TTL cache.
    """

    name = "cefr-vocabulary"
    source = SOURCE

    def __init__(self, path: Path, cache: TTLCache | None = None):
        self.path = path
        self.cache = cache
        self._levels: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._levels is None:
            if not self.path.exists():
                raise DetectorUnavailable(f"word lists not found: {self.path}")
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            levels: dict[str, str] = {}
            # Lowest level wins when a word appears twice
            for level in reversed(CEFR_LEVELS):
                for word in data.get(level) or []:
                    levels[str(word).lower()] = level
            self._levels = levels
            logger.info("cefr_wordlists_loaded", words=len(levels))
        return self._levels

    def level_of(self, lemma: str) -> str:
        levels = self._load()
        if lemma in levels:
            return levels[lemma]
        stem = _strip_inflection(lemma, levels)
        return levels[stem] if stem else UNLISTED_LEVEL

    def grade(self, text: str) -> dict[str, Any]:
        """CEFR level, level distribution and 0-100 sophistication score for ``text``."""
        lemmas = [w for w in lemmatize(text) if w not in FUNCTION_WORDS]
        if not lemmas:
            return {"cefr_level": "A1", "distribution": {}, "sophistication": 0.0, "score": 0}

        counts = Counter(self.level_of(w) for w in lemmas)
        distribution = {level: round(counts.get(level, 0) / len(lemmas), 3) for level in CEFR_LEVELS}
        sophistication = sum(LEVEL_WEIGHTS[self.level_of(w)] for w in lemmas) / len(lemmas)
        level = "A1"
        for candidate in CEFR_LEVELS:
            if distribution[candidate] >= LEVEL_COVERAGE:
                level = candidate
        return {
            "cefr_level": level,
            "distribution": distribution,
            "sophistication": round(sophistication, 1),
            "score": round(min(100, 65 + sophistication * 0.35)),
        }

    async def detect(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        key = cache_key("cefr", text)
        if self.cache is not None:
            cached = await self.cache.lookup(key)
            if cached is not None:
                return cached

        graded = self.grade(text)
        result = DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=graded["score"],
                confidence=0.7,
                note=f"CEFR {graded['cefr_level']}",
            ),
            payload=graded,
        )
        if self.cache is not None:
            self.cache.set_background(key, result)
        return result

    def fallback(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        """Academic-word ratio estimate standing in for the word lists."""
        words = tokenize_words(text)
        metrics = vocabulary_metrics(words)
        level = estimate_cefr(metrics["academic_percent"], len(words))
        score = vocabulary_score(metrics)
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=score,
                confidence=0.4,
                note=f"CEFR {level}",
            ),
            payload={"cefr_level": level, "distribution": {}, "score": score},
        )
