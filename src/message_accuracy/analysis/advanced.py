"""Tier-gated advanced analyses: tone, readability, style, coherence and premium insights."""

import math
import re
from collections import Counter
from typing import Any

import textstat
from pydantic import BaseModel, Field

from message_accuracy.assessment.text import (
    ACADEMIC_WORDS,
    count_syllables,
    split_sentences,
    tokenize_words,
)
from message_accuracy.assessment.tiers import get_features
from message_accuracy.models.errors import ErrorKind, ErrorRecord
from message_accuracy.models.request import Tier

FORMAL_WORDS = {"furthermore", "however", "therefore", "consequently", "nevertheless"}
INFORMAL_WORDS = {"hey", "yeah", "cool", "awesome", "gonna", "wanna", "kinda"}
CASUAL_WORDS = {"hi", "hello", "thanks", "please", "sorry"}

COHERENCE_TRANSITIONS = {
    "however", "therefore", "furthermore", "moreover", "consequently",
    "nevertheless", "nonetheless", "meanwhile", "additionally", "finally",
}

_PASSIVE_RE = re.compile(r"\b(?:is|was|were|are|been|being)\s+\w+ed\b", re.IGNORECASE)

IDIOMS: list[tuple[str, str, str]] = [
    ("break the ice", "To initiate conversation in a social setting", "B2"),
    ("piece of cake", "Something very easy to do", "B1"),
    ("hit the nail on the head", "To describe exactly what is causing a situation or problem", "C1"),
    ("let the cat out of the bag", "To reveal a secret accidentally", "B2"),
    ("once in a blue moon", "Very rarely", "B2"),
    ("spill the beans", "To reveal secret information", "B1"),
    ("cost an arm and a leg", "To be very expensive", "B2"),
    ("under the weather", "Feeling ill or sick", "B1"),
    ("beat around the bush", "To avoid talking about what is important", "C1"),
    ("call it a day", "To stop working for the day", "B1"),
]

COLLOCATIONS: dict[str, list[str]] = {
    "make": ["a decision", "an effort", "a mistake", "progress", "money", "a difference"],
    "take": ["a break", "a chance", "responsibility", "time", "place"],
    "do": ["homework", "business", "your best", "damage", "the dishes"],
    "have": ["a look", "a chat", "fun", "difficulty", "an impact"],
}
# Nouns that commonly pair with the wrong light verb
_MISCOLLOCATED: dict[str, set[str]] = {
    "make": {"homework", "business", "damage", "photo", "party"},
    "do": {"decision", "mistake", "effort", "progress", "money", "difference", "noise"},
    "take": {"fun", "look", "chat"},
    "have": {"decision", "mistake"},
}

ADVANCED_VOCABULARY: dict[str, list[str]] = {
    "good": ["excellent", "outstanding", "remarkable", "exceptional", "superb"],
    "bad": ["poor", "inadequate", "unsatisfactory", "substandard", "inferior"],
    "big": ["large", "substantial", "considerable", "significant", "extensive"],
    "small": ["minor", "minimal", "modest", "limited", "negligible"],
    "very": ["extremely", "highly", "remarkably", "exceptionally", "particularly"],
    "a lot": ["numerous", "substantial", "considerable", "significant", "abundant"],
    "get": ["obtain", "acquire", "receive", "attain", "secure"],
    "make": ["create", "produce", "generate", "construct", "form"],
    "think": ["believe", "consider", "assume", "suppose", "reckon"],
}


class ToneAnalysis(BaseModel):
    overall: str = "neutral"
    confidence: int = 50
    recommendations: list[str] = Field(default_factory=list)


class ReadabilityMetrics(BaseModel):
    flesch_reading_ease: float
    flesch_kincaid_grade: float
    smog_index: float
    average_level: str
    recommendation: str


class StyleAnalysis(BaseModel):
    passive_voice_usage: int
    sentence_variety: int
    engagement: int
    recommendations: list[str] = Field(default_factory=list)


class CoherenceAnalysis(BaseModel):
    score: int
    transitions_used: int
    suggested_transitions: list[str] = Field(default_factory=list)
    logical_flow: int
    issues: list[str] = Field(default_factory=list)


class PremiumInsights(BaseModel):
    idioms: list[dict[str, str]] = Field(default_factory=list)
    collocation_issues: list[dict[str, Any]] = Field(default_factory=list)
    sentence_rewrites: list[dict[str, str]] = Field(default_factory=list)
    advanced_vocabulary: list[dict[str, Any]] = Field(default_factory=list)
    professional_tips: list[str] = Field(default_factory=list)
    contextual_suggestions: list[str] = Field(default_factory=list)
    advanced_patterns: list[str] = Field(default_factory=list)
    pattern_recommendations: list[str] = Field(default_factory=list)


def analyze_tone(message: str) -> ToneAnalysis:
    words = message.lower().split()
    formal = sum(1 for w in words if w.strip(".,!?;:") in FORMAL_WORDS)
    informal = sum(1 for w in words if w.strip(".,!?;:") in INFORMAL_WORDS)
    casual = sum(1 for w in words if w.strip(".,!?;:") in CASUAL_WORDS)

    if formal > 2:
        return ToneAnalysis(
            overall="formal",
            confidence=min(90, 50 + formal * 10),
            recommendations=["Maintain professional tone"],
        )
    if informal > 2:
        return ToneAnalysis(
            overall="informal",
            confidence=min(90, 50 + informal * 10),
            recommendations=["Tone is appropriate for most contexts"],
        )
    if casual > 3:
        return ToneAnalysis(
            overall="casual",
            confidence=min(90, 50 + casual * 8),
            recommendations=["Consider more formal language for professional contexts"],
        )
    return ToneAnalysis(recommendations=["Tone is appropriate for most contexts"])


def reading_level(grade: float) -> str:
    if grade >= 16:
        return "Graduate"
    if grade >= 13:
        return "College"
    if grade >= 10:
        return "High School"
    if grade >= 7:
        return "Middle School"
    return "Elementary"


def analyze_readability(message: str) -> ReadabilityMetrics:
    """Flesch ease and Flesch-Kincaid grade via textstat, plus a short-text SMOG."""
    sentences = max(1, len(split_sentences(message)))
    complex_words = sum(1 for w in message.split() if count_syllables(w) >= 3)
    ease = max(0.0, min(100.0, float(textstat.flesch_reading_ease(message))))
    grade = max(0.0, float(textstat.flesch_kincaid_grade(message)))
    # textstat's SMOG needs 30 sentences; use the scaled formula directly
    smog = 1.043 * math.sqrt(complex_words * (30 / sentences)) + 3.1291

    if ease < 30:
        recommendation = "Consider simplifying your language"
    elif ease > 90:
        recommendation = "Consider using more complex sentences"
    else:
        recommendation = "Readability is appropriate for most audiences"
    return ReadabilityMetrics(
        flesch_reading_ease=round(ease),
        flesch_kincaid_grade=round(grade, 1),
        smog_index=round(smog, 1),
        average_level=reading_level(grade),
        recommendation=recommendation,
    )


def analyze_style(message: str) -> StyleAnalysis:
    sentences = split_sentences(message)
    passive = len(_PASSIVE_RE.findall(message))
    passive_usage = round(passive / max(len(sentences), 1) * 100)

    lengths = [len(s.split()) for s in sentences]
    mean = sum(lengths) / max(len(lengths), 1)
    variance = sum((n - mean) ** 2 for n in lengths) / max(len(lengths), 1)
    variety = min(100, round(50 + variance * 2))

    if passive_usage > 30:
        recommendations = ["Consider using more active voice"]
    elif variety < 40:
        recommendations = ["Vary sentence length for better flow"]
    else:
        recommendations = ["Writing style is effective"]
    return StyleAnalysis(
        passive_voice_usage=passive_usage,
        sentence_variety=variety,
        engagement=round(70 + variety * 0.3),
        recommendations=recommendations,
    )


def analyze_coherence(message: str) -> CoherenceAnalysis:
    used = sum(1 for w in tokenize_words(message) if w in COHERENCE_TRANSITIONS)
    return CoherenceAnalysis(
        score=min(100, 60 + used * 8),
        transitions_used=used,
        suggested_transitions=["however", "therefore", "furthermore"] if used < 2 else [],
        logical_flow=min(100, 70 + used * 5),
        issues=["Consider adding transition words to improve flow"] if not used else [],
    )


def _collocation_issues(message: str) -> list[dict[str, Any]]:
    issues = []
    for verb, nouns in _MISCOLLOCATED.items():
        pattern = re.compile(rf"\b{verb}\s+(?:an?\s+|the\s+)?(\w+)", re.IGNORECASE)
        for match in pattern.finditer(message):
            if match.group(1).lower() in nouns:
                issues.append({
                    "phrase": match.group(),
                    "correct_alternatives": COLLOCATIONS[verb][:3],
                    "explanation": f'"{verb}" typically collocates with: {", ".join(COLLOCATIONS[verb][:3])}',
                })
    return issues


def analyze_premium_insights(message: str, tier: Tier, errors: list[ErrorRecord]) -> PremiumInsights:
    """Idioms, collocations, rewrites, vocabulary upgrades and writing tips.

    Args:
        message: Learner message.
        tier: Subscription tier; only Premium receives pattern analysis.
        errors: Errors found so far, used for contextual suggestions.

    Returns:
        PremiumInsights bundle.
    """
    lowered = message.lower()
    sentences = split_sentences(message)
    words = tokenize_words(message)
    insights = PremiumInsights()

    insights.idioms = [
        {"phrase": phrase, "meaning": meaning, "level": level}
        for phrase, meaning, level in IDIOMS
        if phrase in lowered
    ]
    insights.collocation_issues = _collocation_issues(message)

    for sentence in sentences:
        if len(sentence.split()) > 25:
            insights.sentence_rewrites.append({
                "original": sentence,
                "suggestion": "Consider breaking into 2 sentences at a logical point",
                "reason": "Long sentences can reduce readability",
            })
        if _PASSIVE_RE.search(sentence):
            insights.sentence_rewrites.append({
                "original": sentence,
                "suggestion": "Rewrite with the doer of the action as the subject",
                "reason": "Active voice is more direct and engaging",
            })

    for basic, alternatives in ADVANCED_VOCABULARY.items():
        if re.search(rf"\b{basic}\b", lowered):
            insights.advanced_vocabulary.append({
                "basic_word": basic,
                "alternatives": alternatives,
                "usage_example": f'Instead of "{basic}", try: "{alternatives[0]}" or "{alternatives[1]}"',
            })

    if len(sentences) < 3:
        insights.professional_tips.append("Aim for 3-5 sentences to fully develop your ideas")
    if len(words) < 30:
        insights.professional_tips.append("Elaborate more on your points for better clarity and impact")
    academic = sum(1 for w in words if w in ACADEMIC_WORDS) / max(len(words), 1) * 100
    if academic < 5:
        insights.professional_tips.append(
            "Use more academic vocabulary to sound more professional (target: 5-15%)"
        )
    if not re.search(r"\b(?:however|therefore|furthermore|moreover|consequently)\b", lowered):
        insights.professional_tips.append(
            "Add transition words (however, therefore, furthermore) for better flow"
        )
    contractions = re.findall(r"\b(?:don't|can't|won't|didn't|isn't|aren't)\b", lowered)
    if contractions:
        insights.professional_tips.append(
            f"Avoid contractions in formal writing (found {len(contractions)})"
        )

    kinds = {e.kind for e in errors}
    if ErrorKind.GRAMMAR in kinds:
        insights.contextual_suggestions.append("Focus on subject-verb agreement and sentence structure")
    if ErrorKind.SPELLING in kinds:
        insights.contextual_suggestions.append("Review common spelling patterns")
    if len(words) < 20:
        insights.contextual_suggestions.append("Expand your response with more details and examples")
    if len(sentences) < 2:
        insights.contextual_suggestions.append("Use multiple sentences to organize your thoughts better")

    if tier is Tier.PREMIUM:
        if re.search(r"\bI (?:think|believe|feel)\b", message, re.IGNORECASE):
            insights.advanced_patterns.append("Personal opinion expressions")
            insights.pattern_recommendations.append(
                'Consider using "It appears that" or "Research suggests" for formal writing'
            )
        if re.search(r"\b(?:thing|stuff|something)\b", lowered):
            insights.advanced_patterns.append("Vague language detected")
            insights.pattern_recommendations.append(
                "Replace vague words with specific terms for clarity"
            )
        if message.count("?") > 2:
            insights.advanced_patterns.append("Multiple questions")
            insights.pattern_recommendations.append(
                "Consider breaking into separate messages for better organization"
            )
        starters = Counter(s.split()[0].lower() for s in sentences if s.split())
        repeated = [w for w, n in starters.items() if n > 1]
        if repeated:
            insights.advanced_patterns.append("Repetitive sentence starters")
            insights.pattern_recommendations.append(
                f"Vary sentence beginnings - you started {len(repeated)} sentences the same way"
            )
    return insights


def run_advanced_analyses(
    message: str,
    tier: Tier,
    errors: list[ErrorRecord] | None = None,
) -> dict[str, BaseModel]:
    """Run every advanced analysis the tier unlocks.

    Returns:
        Mapping of analysis name ("tone", "readability", "style",
        "coherence", "premium_insights") to its result model. Analyses the
        tier does not unlock are absent.
    """
    features = get_features(tier)
    results: dict[str, BaseModel] = {}
    if features.tone_analysis:
        results["tone"] = analyze_tone(message)
    if features.readability_metrics:
        results["readability"] = analyze_readability(message)
    if features.style_analysis:
        results["style"] = analyze_style(message)
    if features.coherence_analysis:
        results["coherence"] = analyze_coherence(message)
    if features.premium_insights:
        results["premium_insights"] = analyze_premium_insights(message, tier, errors or [])
    return results
