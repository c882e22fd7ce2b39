"""Dictionary-based spell checker adapter."""

import asyncio
import re
from pathlib import Path
from typing import Any

import structlog
from spellchecker import SpellChecker

from message_accuracy.assessment.spelling import (
    COMMON_MISSPELLINGS,
    analyze_spelling,
    normalize_dialect,
    spelling_score,
)
from message_accuracy.assessment.text import FUNCTION_WORDS, normalize_typography
from message_accuracy.detectors.base import DetectorResult, DetectorUnavailable
from message_accuracy.detectors.cache import TTLCache, cache_key
from message_accuracy.models.analysis import DetectorContribution
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity

logger = structlog.get_logger()

SOURCE = "dictionary"
_TOKEN_RE = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")


class DictionarySpeller:
    """Flags tokens missing from a pyspellchecker word-frequency dictionary.

    Uses the bundled frequency list for ``language`` unless ``path`` points
    to a plain word list, which then replaces it. The dictionary is loaded on
    first use and kept for the life of the object.

    Args:
        path: Optional word list file, one word per line.
        cache: Shared TTL cache.
        language: pyspellchecker language code for the bundled dictionary.
    """

    name = "dictionary-checker"
    source = SOURCE

    def __init__(self, path: Path | None = None, cache: TTLCache | None = None, language: str = "en"):
        self.path = path
        self.cache = cache
        self.language = language
        self._spell: SpellChecker | None = None

    def _load(self) -> SpellChecker:
        if self._spell is None:
            if self.path is None:
                try:
                    spell = SpellChecker(language=self.language, distance=1)
                except ValueError as e:
                    raise DetectorUnavailable(str(e)) from e
            elif not self.path.exists():
                raise DetectorUnavailable(f"dictionary not found: {self.path}")
            else:
                spell = SpellChecker(language=None, distance=1)
                spell.word_frequency.load_text_file(str(self.path))
            self._spell = spell
            logger.info(
                "dictionary_loaded",
                path=str(self.path) if self.path else None,
                language=self.language,
                words=spell.word_frequency.unique_words,
            )
        return self._spell

    def is_known(self, word: str) -> bool:
        word = normalize_dialect(word.lower())
        if word in FUNCTION_WORDS:
            return True
        return not self._load().unknown([word])

    def suggest(self, word: str) -> str | None:
        lowered = word.lower()
        return COMMON_MISSPELLINGS.get(lowered) or self._load().correction(lowered)

    def check(self, text: str) -> tuple[list[ErrorRecord], dict[str, int]]:
        """Find unknown words in ``text``.

        Returns:
            Tuple of (errors, counts) where counts holds content/function token
            and error tallies plus the number of checked and known words.
        """
        text = normalize_typography(text)
        errors: list[ErrorRecord] = []
        counts = {
            "content_tokens": 0,
            "function_tokens": 0,
            "content_errors": 0,
            "function_errors": 0,
            "checked_words": 0,
            "known_words": 0,
        }
        for match in _TOKEN_RE.finditer(text):
            word = match.group()
            lowered = word.lower()
            prefix = "function" if lowered in FUNCTION_WORDS else "content"
            counts[f"{prefix}_tokens"] += 1
            if len(word) < 2:
                continue
            # Capitalized mid-sentence words are treated as names
            sentence_start = not text[:match.start()].strip() or text[:match.start()].rstrip()[-1] in ".!?"
            if word[0].isupper() and not sentence_start:
                continue
            counts["checked_words"] += 1
            if self.is_known(lowered) or self.is_known(lowered.split("'")[0]):
                counts["known_words"] += 1
                continue
            counts[f"{prefix}_errors"] += 1
            errors.append(ErrorRecord(
                kind=ErrorKind.SPELLING,
                severity=ErrorSeverity.MEDIUM,
                message=f"Unknown word: '{word}'.",
                start=match.start(),
                end=match.end(),
                text=word,
                suggestion=self.suggest(word),
                rule="dictionary-unknown-word",
                source=SOURCE,
            ))
        return errors, counts

    async def detect(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        # First load reads a large frequency list; keep it off the event loop
        await asyncio.to_thread(self._load)
        key = cache_key(f"dict:{self.path or self.language}", text)
        if self.cache is not None:
            cached = await self.cache.lookup(key)
            if cached is not None:
                return cached

        errors, counts = self.check(text)
        score, _, _ = spelling_score(
            counts["content_errors"],
            counts["content_tokens"],
            counts["function_errors"],
            counts["function_tokens"],
        )
        result = DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=score,
                confidence=0.8,
                error_count=len(errors),
            ),
            errors=errors,
            payload=counts,
        )
        if self.cache is not None:
            self.cache.set_background(key, result)
        return result

    def fallback(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        """Misspelling table standing in for the dictionary."""
        local = analyze_spelling(text)
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=local.score,
                confidence=0.5,
                error_count=len(local.errors),
            ),
            errors=local.errors,
        )
