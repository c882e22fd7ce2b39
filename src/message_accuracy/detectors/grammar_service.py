"""LanguageTool-compatible grammar checking service adapter."""

import re
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from message_accuracy.assessment.grammar import find_rule_errors
from message_accuracy.detectors.authority import score_error_count
from message_accuracy.detectors.base import DetectorResult, DetectorUnavailable
from message_accuracy.detectors.cache import TTLCache, cache_key
from message_accuracy.models.analysis import DetectorContribution
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity
from message_accuracy.models.request import Tier

logger = structlog.get_logger()

SOURCE = "languagetool"
SERVICE_CONFIDENCE = 0.9

CRITICAL_RULE_PATTERNS = [
    re.compile(r"\bsubject[-_\s]?verb\b"),
    re.compile(r"\bverb[-_\s]?agreement\b"),
    re.compile(r"\bsva\b"),
    re.compile(r"\bauxili(?:ary|aries)\b"),
    re.compile(r"\bmissing[-_\s]?aux\b"),
    re.compile(r"\bmodal\b.*\bbase\b"),
]
MAJOR_RULE_PATTERNS = [
    re.compile(r"\bverb[-_\s]?form\b"),
    re.compile(r"\bwrong[-_\s]?tense\b"),
    re.compile(r"\bverb\b.*\btense\b"),
    re.compile(r"\btense(?:s|d)?\b"),
    re.compile(r"\bmodal[-_\s]?verb\b"),
]
HIGH_RULE_PATTERNS = [
    re.compile(r"\bpronoun\b"),
    re.compile(r"\bpreposition\b"),
]
CRITICAL_CONTEXT_PATTERNS = [
    re.compile(r"\b(?:i|he|she|they|we)\s+goes\b"),
    re.compile(r"\bi\s+not\s+\w+"),
    re.compile(r"\bshould\s+went\b"),
    re.compile(r"\bwe\s+was\s+\w+"),
]

ISSUE_TYPE_SEVERITY: dict[str, ErrorSeverity] = {
    "misspelling": ErrorSeverity.HIGH,
    "punctuation": ErrorSeverity.MEDIUM,
    "inconsistency": ErrorSeverity.LOW,
    "wordchoice": ErrorSeverity.LOW,
    "confused": ErrorSeverity.LOW,
    "style": ErrorSeverity.SUGGESTION,
    "typographical": ErrorSeverity.SUGGESTION,
    "duplication": ErrorSeverity.SUGGESTION,
}

CATEGORY_KINDS: dict[str, ErrorKind] = {
    "GRAMMAR": ErrorKind.GRAMMAR,
    "TYPOS": ErrorKind.SPELLING,
    "CASING": ErrorKind.CAPITALIZATION,
    "PUNCTUATION": ErrorKind.PUNCTUATION,
    "STYLE": ErrorKind.STYLE,
    "SEMANTICS": ErrorKind.VOCABULARY,
}


class LanguageToolCategory(BaseModel):
    id: str = ""
    name: str = ""


class LanguageToolRule(BaseModel):
    id: str = ""
    description: str = ""
    issueType: str = ""
    category: LanguageToolCategory = Field(default_factory=LanguageToolCategory)


class LanguageToolContext(BaseModel):
    text: str = ""
    offset: int = 0
    length: int = 0


class LanguageToolMatch(BaseModel):
    """A single match returned by ``/check``."""

    message: str
    shortMessage: str = ""
    offset: int
    length: int
    replacements: list[dict[str, Any]] = Field(default_factory=list)
    context: LanguageToolContext = Field(default_factory=LanguageToolContext)
    sentence: str = ""
    rule: LanguageToolRule = Field(default_factory=LanguageToolRule)


class LanguageToolResponse(BaseModel):
    matches: list[LanguageToolMatch] = Field(default_factory=list)
    language: dict[str, Any] = Field(default_factory=dict)


def map_severity(
    issue_type: str,
    rule_id: str,
    category_id: str,
    message: str,
    context: str,
) -> ErrorSeverity:
    """Severity of a LanguageTool match from its rule, category, message and context."""
    targets = [
        re.sub(r"[_-]+", " ", value.lower()) for value in (rule_id, category_id, message)
    ]
    context = context.lower()

    def matches(patterns: list[re.Pattern], extra: str | None = None) -> bool:
        candidates = targets + ([extra] if extra else [])
        return any(t and p.search(t) for t in candidates for p in patterns)

    if matches(CRITICAL_RULE_PATTERNS, context):
        return ErrorSeverity.CRITICAL
    if matches(MAJOR_RULE_PATTERNS, context):
        return ErrorSeverity.MAJOR
    if matches(HIGH_RULE_PATTERNS):
        return ErrorSeverity.HIGH
    if context and any(p.search(context) for p in CRITICAL_CONTEXT_PATTERNS):
        return ErrorSeverity.CRITICAL

    issue = issue_type.lower()
    if issue == "grammar":
        return ErrorSeverity.HIGH if rule_id else ErrorSeverity.MEDIUM
    return ISSUE_TYPE_SEVERITY.get(issue, ErrorSeverity.MEDIUM)


def match_to_error(match: LanguageToolMatch) -> ErrorRecord:
    context = match.context
    replacements = [r.get("value", "") for r in match.replacements if r.get("value")]
    return ErrorRecord(
        kind=CATEGORY_KINDS.get(match.rule.category.id, ErrorKind.GRAMMAR),
        severity=map_severity(
            match.rule.issueType,
            match.rule.id,
            match.rule.category.id,
            match.message,
            context.text,
        ),
        message=match.shortMessage or match.message,
        start=match.offset,
        end=match.offset + match.length,
        text=context.text[context.offset:context.offset + context.length] or None,
        suggestion=replacements[0] if replacements else None,
        rule=match.rule.id or None,
        explanation=match.message,
        alternatives=replacements[1:4],
        source=SOURCE,
    )


class GrammarServiceDetector:
    """Checks text against a LanguageTool ``/v2/check`` endpoint.

    Args:
        base_url: Service base URL; a trailing ``/check`` is stripped.
        language: LanguageTool language code.
        cache: Shared TTL cache.
        client: Optional pre-built ``httpx.AsyncClient``.
        timeout: Request timeout in seconds.
    """

    name = "grammar-service"
    source = SOURCE

    def __init__(
        self,
        base_url: str,
        language: str = "en-US",
        cache: TTLCache | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ):
        self.base_url = re.sub(r"/check/?$", "", base_url).rstrip("/")
        self.language = language
        self.cache = cache
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check(self, text: str) -> list[ErrorRecord]:
        """POST ``text`` to the service and normalize its matches.

        Raises:
            DetectorUnavailable: When the service is unreachable or returns an error status.
        """
        key = cache_key(f"lt:{self.language}", text)
        if self.cache is not None:
            cached = await self.cache.lookup(key)
            if cached is not None:
                logger.debug("grammar_service_cache_hit")
                return cached

        try:
            response = await self._client.post(
                f"{self.base_url}/check",
                data={"text": text, "language": self.language, "enabledOnly": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DetectorUnavailable(f"grammar service returned {e.response.status_code}") from e
        except httpx.TransportError as e:
            raise DetectorUnavailable(f"grammar service unreachable ({type(e).__name__})") from e
        parsed = LanguageToolResponse.model_validate(response.json())
        errors = [match_to_error(m) for m in parsed.matches]
        logger.info("grammar_service_complete", error_count=len(errors))

        if self.cache is not None:
            self.cache.set_background(key, errors)
        return errors

    async def detect(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        errors = await self.check(text)
        counted = sum(1 for e in errors if e.kind is not ErrorKind.STYLE)
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=score_error_count(counted),
                confidence=SERVICE_CONFIDENCE,
                error_count=len(errors),
            ),
            errors=errors,
            payload={"authoritative": True},
        )

    def fallback(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        """Local rule table standing in for the service."""
        tier = Tier((hint or {}).get("tier", Tier.FREE))
        errors = find_rule_errors(text, tier)
        serious = [e for e in errors if e.severity.at_least(ErrorSeverity.HIGH)]
        return DetectorResult(
            contribution=DetectorContribution(
                detector=self.name,
                source=self.source,
                score=score_error_count(len(serious)),
                confidence=0.5,
                error_count=len(errors),
            ),
            errors=errors,
            payload={"authoritative": False},
        )
