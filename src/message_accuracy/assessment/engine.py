"""Accuracy engine: runs analyzers and detectors, fuses and smooths the result."""

import asyncio
import time

import structlog

from message_accuracy.analysis.advanced import run_advanced_analyses
from message_accuracy.analysis.evidence import analyze_tutor_response
from message_accuracy.analysis.language import detect_language, non_english_deduction
from message_accuracy.assessment.coverage import apply_coverage_penalty, lexical_penalty
from message_accuracy.assessment.fluency import analyze_fluency
from message_accuracy.assessment.fusion import fuse
from message_accuracy.assessment.grammar import analyze_grammar
from message_accuracy.assessment.mechanics import analyze_capitalization, analyze_punctuation
from message_accuracy.assessment.profiles import CachedProfileLookup, InMemoryProfileLookup, ProfileLookup
from message_accuracy.assessment.smoothing import category_trends, smooth
from message_accuracy.assessment.spelling import analyze_spelling, rescore_spelling
from message_accuracy.assessment.text import split_sentences, tokenize_words
from message_accuracy.assessment.tiers import TierFeatures, get_features
from message_accuracy.assessment.vocabulary import analyze_vocabulary
from message_accuracy.config import Settings, get_settings
from message_accuracy.detectors.authority import GRAMMAR_KINDS, merge_grammar, score_error_count
from message_accuracy.detectors.base import (
    Detector,
    DetectorResult,
    fallback_result,
    run_detector,
    skipped_result,
)
from message_accuracy.detectors.cache import TTLCache
from message_accuracy.detectors.cefr import CEFRVocabularyModel
from message_accuracy.detectors.dictionary import DictionarySpeller
from message_accuracy.detectors.grammar_service import GrammarServiceDetector
from message_accuracy.detectors.llm_fluency import LLMFluencyScorer
from message_accuracy.models.analysis import (
    AccuracySnapshotPair,
    CategoryMetrics,
    CategoryResult,
    LanguageContext,
    WeightingInfo,
)
from message_accuracy.models.errors import (
    ErrorKind,
    ErrorRecord,
    ErrorSeverity,
    dedupe_errors,
    kind_histogram,
)
from message_accuracy.models.request import AnalysisRequest, LanguageSummary
from message_accuracy.models.snapshot import (
    ALL_CATEGORIES,
    AccuracySnapshot,
    CategoryScores,
    clamp_score,
)

logger = structlog.get_logger()

NO_CONTENT_NOTE = "No content to evaluate"
CANNOT_EVALUATE_NOTE = (
    "Cannot evaluate English accuracy: the message is mostly non-English. "
    "Scores are neutral."
)
NEUTRAL_SCORE = 50.0
CEFR_RULE_WEIGHT = 0.7
LLM_RULE_WEIGHT = 0.7
SYNTAX_PENALTY = 10


class AccuracyEngine:
    """Scores learner messages and blends them into the user's history.

    Detectors are injected so they can be shared across engines and replaced
    in tests; any left as None are built from settings.

    Args:
        settings: Engine settings; defaults to ``get_settings()``.
        grammar_service: Grammar-checking service detector.
        speller: Dictionary speller detector.
        vocabulary_model: CEFR vocabulary detector.
        fluency_scorer: LLM fluency detector.
        cache: Shared TTL cache for detector results.
        profiles: User tier/proficiency lookup, wrapped in a TTL cache.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        grammar_service: Detector | None = None,
        speller: Detector | None = None,
        vocabulary_model: Detector | None = None,
        fluency_scorer: Detector | None = None,
        cache: TTLCache | None = None,
        profiles: ProfileLookup | None = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or TTLCache(ttl_seconds=self.settings.nlp_cache_ttl_seconds)
        self.grammar_service = grammar_service or GrammarServiceDetector(
            self.settings.grammar_service_url,
            language=self.settings.grammar_language,
            cache=self.cache,
            timeout=self.settings.grammar_timeout_seconds,
        )
        self.speller = speller or DictionarySpeller(
            self.settings.dictionary_path,
            cache=self.cache,
            language=self.settings.dictionary_language,
        )
        self.vocabulary_model = vocabulary_model or CEFRVocabularyModel(
            self.settings.wordlists_dir / "cefr.yaml", cache=self.cache
        )
        self.fluency_scorer = fluency_scorer or LLMFluencyScorer(
            self.settings.openai_api_key, model=self.settings.fluency_model, cache=self.cache
        )
        self.profiles = CachedProfileLookup(
            profiles or InMemoryProfileLookup(),
            ttl_seconds=self.settings.profile_cache_ttl_seconds,
        )

    @property
    def detectors(self) -> list[Detector]:
        return [self.grammar_service, self.speller, self.vocabulary_model, self.fluency_scorer]

    async def aclose(self) -> None:
        """Close detector clients and wait for pending cache writes."""
        for detector in self.detectors:
            close = getattr(detector, "aclose", None)
            if close is not None:
                await close()
        await self.cache.drain()

    def _timeout_for(self, detector: Detector) -> float:
        if detector is self.fluency_scorer:
            return self.settings.llm_timeout_seconds
        return self.settings.grammar_timeout_seconds

    async def analyze_for_user(
        self,
        user_id: str,
        message: str,
        tutor_response: str | None = None,
        previous: AccuracySnapshot | None = None,
        language: LanguageSummary | None = None,
    ) -> AccuracySnapshotPair:
        """Resolve the user's tier and level, then analyze ``message``."""
        profile = await self.profiles.get_profile(user_id)
        request = AnalysisRequest(
            message=message,
            tutor_response=tutor_response,
            tier=profile.tier,
            level=profile.level,
            language=language,
            previous=previous,
        )
        return await self.analyze(request)

    async def analyze(self, request: AnalysisRequest) -> AccuracySnapshotPair:
        """Score one message.

        Args:
            request: Message, tier, level, optional tutor response and the
                user's previous snapshot.

        Returns:
            AccuracySnapshotPair with the current and history-weighted snapshots.
        """
        started = time.perf_counter()
        message = request.message
        features = get_features(request.tier)

        if not message.strip():
            return self._no_content_result(request, LanguageContext())

        language = detect_language(message, request.language)
        if language.skip_english_checks:
            result = self._uncounted_result(
                request, NEUTRAL_SCORE, [CANNOT_EVALUATE_NOTE, *language.notes], language
            )
            logger.info(
                "accuracy_analysis_skipped",
                english_ratio=round(language.english_ratio, 2),
                tier=request.tier.value,
            )
            return result

        # Punctuation, digits or symbols only
        if not tokenize_words(message):
            return self._no_content_result(request, language)

        # Local analyzers
        grammar = analyze_grammar(message, request.tier, request.level, language)
        spelling = analyze_spelling(message, request.tier)
        vocabulary = analyze_vocabulary(message, request.tier, request.level)
        fluency = analyze_fluency(message, request.tier, request.level)
        punctuation = analyze_punctuation(message)
        capitalization = analyze_capitalization(message)

        # External detectors
        hint = {"tier": request.tier.value, "level": request.level.value}
        service, dictionary, cefr, llm = await self._run_detectors(message, hint)

        local_errors = grammar.errors + spelling.errors + fluency.errors
        ai_analysis, evidence_errors = analyze_tutor_response(
            message, request.tutor_response, local_errors
        )

        feedback: list[str] = list(language.notes)
        scores: dict[str, float] = {}

        # Grammar: an available service is authoritative
        service_errors = None
        if not service.contribution.is_fallback and service.payload.get("authoritative", True):
            service_errors = service.errors
            if language.relax_grammar:
                service_errors = [e for e in service_errors if e.severity.at_least(ErrorSeverity.HIGH)]
        service_spelling = [e for e in service_errors or [] if e.kind is ErrorKind.SPELLING]
        dictionary_errors = [] if dictionary.contribution.is_fallback else dictionary.errors
        spelling_errors = dedupe_errors(spelling.errors + dictionary_errors + service_spelling)

        merge = merge_grammar(
            grammar.score,
            [e for e in grammar.errors if e.kind in GRAMMAR_KINDS],
            service_errors,
            spelling_errors,
            evidence_errors,
            word_count=len(tokenize_words(message)),
            sentence_count=len(split_sentences(message)),
            strict_zero=self.settings.strict_zero_grammar,
        )
        grammar_score = merge.score
        if evidence_errors:
            grammar_score = min(grammar_score, score_error_count(len(evidence_errors)))
        if merge.note:
            feedback.append(merge.note)
        scores["grammar"] = grammar_score

        # Spelling: rescore the merged table, dictionary and service findings
        if len(spelling_errors) > len(spelling.errors):
            scores["spelling"], _ = rescore_spelling(message, spelling_errors)
        else:
            scores["spelling"] = spelling.score

        scores["vocabulary"] = vocabulary.score
        if not cefr.contribution.is_fallback and cefr.contribution.score is not None:
            scores["vocabulary"] = self._blend(vocabulary.score, cefr.contribution.score, CEFR_RULE_WEIGHT)

        scores["fluency"] = fluency.score
        if not llm.contribution.is_fallback and llm.contribution.score is not None:
            scores["fluency"] = self._blend(fluency.score, llm.contribution.score, LLM_RULE_WEIGHT)
        if ai_analysis.fluency_penalty:
            scores["fluency"] = max(0, scores["fluency"] - ai_analysis.fluency_penalty)
            feedback.append(f"Fluency adjusted for grammar issues (-{ai_analysis.fluency_penalty} points)")

        scores["punctuation"] = punctuation.score
        scores["capitalization"] = capitalization.score

        errors = dedupe_errors(
            grammar.errors
            + merge.errors
            + spelling_errors
            + vocabulary.errors
            + fluency.errors
            + punctuation.errors
            + capitalization.errors
            + evidence_errors
            + [e for e in service_errors or [] if e.kind not in GRAMMAR_KINDS | {ErrorKind.SPELLING}]
        )

        advanced = run_advanced_analyses(message, request.tier, errors)
        syntax_errors = sum(1 for e in errors if e.kind is ErrorKind.SYNTAX)
        scores["syntax"] = clamp_score(scores["grammar"] - syntax_errors * SYNTAX_PENALTY)
        if "coherence" in advanced:
            scores["coherence"] = advanced["coherence"].score
        else:
            scores["coherence"] = fluency.metrics.details.get("cohesion", NEUTRAL_SCORE)

        if language.relax_grammar:
            deduction = non_english_deduction(language.english_ratio)
            if deduction:
                scores = {name: clamp_score(score - deduction) for name, score in scores.items()}
                feedback.append(f"Mixed-language content: -{deduction} points per category.")

        # Dictionary coverage; only a live dictionary can vouch for the vocabulary
        if not dictionary.contribution.is_fallback and "checked_words" in dictionary.payload:
            coverage = lexical_penalty(
                message,
                dictionary.payload["checked_words"],
                dictionary.payload["known_words"],
                language.english_ratio,
            )
            if coverage.points:
                scores = apply_coverage_penalty(scores, coverage)
                feedback.append(coverage.note)
                logger.info(
                    "lexical_coverage_penalty",
                    known_ratio=coverage.known_ratio,
                    checked_words=coverage.checked_words,
                    points=coverage.points,
                )

        categories = CategoryScores(**{name: scores[name] for name in ALL_CATEGORIES})
        critical = sum(1 for e in errors if e.severity is ErrorSeverity.CRITICAL)
        fusion = fuse(categories.base_scores(), critical, self.settings.critical_error_threshold)

        current = AccuracySnapshot(
            overall=fusion.overall,
            adjusted_overall=fusion.overall,
            categories=categories,
            total_errors=len(errors),
            critical_errors=critical,
            errors_by_kind=kind_histogram(errors),
            readability=advanced["readability"].flesch_reading_ease if "readability" in advanced else None,
            tone=advanced["tone"].overall if "tone" in advanced else None,
            style=advanced["style"].engagement if "style" in advanced else None,
        )
        smoothed = smooth(
            current,
            request.previous,
            request.tier,
            len(errors),
            request.overrides,
            minimum_message_count=self.settings.minimum_message_count_for_history,
            minimum_historical_weight=self.settings.minimum_historical_weight,
            category_baselines=self.settings.category_baselines,
        )

        results = {
            "grammar": grammar,
            "spelling": spelling,
            "vocabulary": vocabulary,
            "fluency": fluency,
            "punctuation": punctuation,
            "capitalization": capitalization,
        }
        for result in results.values():
            feedback.extend(result.feedback)
        gated_errors = [self._gate_error(e, features) for e in errors]

        pair = AccuracySnapshotPair(
            current=smoothed.current,
            weighted=smoothed.weighted,
            errors=gated_errors,
            feedback=_unique(feedback)[: features.max_feedback],
            suggestions=self._suggestions(gated_errors, features),
            categories=self._category_metrics(results, scores),
            contributions=[r.contribution for r in (service, dictionary, cefr, llm)],
            ai_response_analysis=ai_analysis if request.tutor_response else None,
            language=language,
            advanced={name: model.model_dump() for name, model in advanced.items()},
            trends=category_trends(request.previous, smoothed.current),
            weighting=smoothed.weighting,
            fusion_weights=fusion.weights,
            weights_redistributed=fusion.redistributed,
        )
        logger.info(
            "accuracy_analysis_complete",
            tier=request.tier.value,
            overall=current.overall,
            weighted_overall=smoothed.weighted.overall,
            total_errors=len(errors),
            critical_errors=critical,
            redistributed=fusion.redistributed,
            fallbacks=[c.detector for c in pair.contributions if c.is_fallback],
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return pair

    async def _run_detectors(self, message: str, hint: dict) -> list[DetectorResult]:
        """Run all detectors concurrently within the total timeout."""
        detectors = self.detectors
        try:
            return list(await asyncio.wait_for(
                asyncio.gather(*(
                    run_detector(d, message, self._timeout_for(d), hint) for d in detectors
                )),
                timeout=self.settings.total_timeout_seconds,
            ))
        except asyncio.TimeoutError:
            logger.warning("detector_phase_timeout", timeout=self.settings.total_timeout_seconds)
            note = f"detector phase exceeded {self.settings.total_timeout_seconds}s"
            return [fallback_result(d, message, note, hint) for d in detectors]

    def _no_content_result(self, request: AnalysisRequest, language: LanguageContext) -> AccuracySnapshotPair:
        logger.info("accuracy_analysis_empty", tier=request.tier.value)
        return self._uncounted_result(request, 0.0, [NO_CONTENT_NOTE], language)

    def _uncounted_result(
        self,
        request: AnalysisRequest,
        score: float,
        feedback: list[str],
        language: LanguageContext,
    ) -> AccuracySnapshotPair:
        """Result for a message that says nothing about the learner's English.

        Every category gets ``score``; history is carried forward unchanged
        except for the calculation count.
        """
        categories = CategoryScores(**{name: score for name in ALL_CATEGORIES})
        fusion = fuse(categories.base_scores(), 0, self.settings.critical_error_threshold)
        current = AccuracySnapshot(
            overall=fusion.overall,
            adjusted_overall=fusion.overall,
            categories=categories,
        )
        smoothed = smooth(
            current,
            request.previous,
            request.tier,
            0,
            request.overrides.model_copy(update={"disable_historical": True}),
        )
        weighted = smoothed.weighted
        weighting = WeightingInfo(reason="no_evidence")
        if request.previous is not None:
            weighted = request.previous.model_copy(update={
                "calculation_count": smoothed.current.calculation_count,
                "timestamp": smoothed.current.timestamp,
            })
            weighting = WeightingInfo(
                current_weight=0.0,
                historical_weight=1.0,
                history_count=request.previous.calculation_count,
                reason="no_evidence",
            )
        reason = feedback[0]
        return AccuracySnapshotPair(
            current=smoothed.current,
            weighted=weighted,
            feedback=feedback,
            categories={
                name: CategoryMetrics(score=score, details={"evaluated": False})
                for name in ALL_CATEGORIES
            },
            contributions=[skipped_result(d, reason).contribution for d in self.detectors],
            language=language,
            weighting=weighting,
            fusion_weights=fusion.weights,
        )

    @staticmethod
    def _blend(rule: float, detector: float, rule_weight: float = 0.7) -> float:
        """Blend a local analyzer score with a detector score.

        Args:
            rule: Local analyzer score.
            detector: Detector score.
            rule_weight: Weight for the local score (0-1).

        Returns:
            Blended score.
        """
        return round(rule * rule_weight + detector * (1 - rule_weight), 1)

    @staticmethod
    def _gate_error(error: ErrorRecord, features: TierFeatures) -> ErrorRecord:
        update: dict = {}
        if not features.detailed_explanations and (error.explanation or error.examples):
            update.update(explanation=None, examples=[])
        if not features.alternative_phrasing and error.alternatives:
            update["alternatives"] = []
        return error.model_copy(update=update) if update else error

    @staticmethod
    def _suggestions(errors: list[ErrorRecord], features: TierFeatures) -> list[str]:
        suggestions = []
        for error in errors:
            if not error.suggestion:
                continue
            if error.text and error.text != error.suggestion and len(error.suggestion) < 40:
                suggestions.append(f"'{error.text}' -> '{error.suggestion}'")
            else:
                suggestions.append(error.suggestion)
        return _unique(suggestions)[: features.max_suggestions]

    @staticmethod
    def _category_metrics(
        results: dict[str, CategoryResult],
        scores: dict[str, float],
    ) -> dict[str, CategoryMetrics]:
        return {
            name: result.metrics.model_copy(update={"score": scores[name]})
            for name, result in results.items()
        }


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))
