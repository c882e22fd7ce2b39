"""Grammar pattern rules and heuristic checks.

Patterns run case-insensitively against typography-normalized text, so match
offsets line up with the learner's original message.
"""

import re
from typing import NamedTuple

from message_accuracy.models.errors import ErrorKind, ErrorSeverity
from message_accuracy.models.request import Tier


def _not_after(*words: str) -> str:
    """Build negative lookbehinds rejecting a match right after any of ``words``."""
    return "".join(rf"(?<!\b{w}\s)" for w in words)


# Pronoun + bare verb is fine after auxiliaries and causative verbs
_AFTER_AUX = _not_after(
    "do", "does", "did", "can", "could", "will", "would", "shall", "should",
    "may", "might", "must", "let", "make", "made", "help", "helped", "see", "saw",
    "watch", "hear", "heard", "to",
)
# Object pronoun in prepositional position
_AFTER_PREP = _not_after(
    "to", "for", "with", "about", "like", "than", "of", "at", "from", "on",
    "behind", "let", "make", "made", "help", "helped", "saw", "watch", "heard",
    "and", "but",
)
# Pronoun + adjective is a small clause after these verbs ("find it difficult")
_AFTER_OBJECT_VERB = _not_after(
    "make", "made", "get", "got", "keep", "kept", "find", "found", "consider",
    "let", "call", "leave", "left", "think", "thought", "want", "see", "like",
    "prove", "hold", "have", "has", "had", "set", "serves", "served",
)
_SENTENCE_START = r"(?:^|(?<=[.!?])|(?<=[.!?]\s))"

_PRESENT_VERBS = (
    r"(?:go|goes|come|comes|eat|eats|buy|buys|see|sees|make|makes|take|takes|"
    r"have|has|visit|visits|watch|watches|get|gets|play|plays|meet|meets|write|"
    r"writes|find|finds|give|gives|tell|tells|leave|leaves)"
)
_PAST_MARKERS = (
    r"(?:yesterday|last\s+(?:night|week|month|year|weekend|summer|winter|time)|"
    r"\w+\s+(?:days?|weeks?|months?|years?)\s+ago)"
)
_SUBJECTS = r"(?:i|you|we|they|he|she|me)"


class GrammarRule(NamedTuple):
    """A severity-tagged grammar pattern."""

    id: str
    pattern: re.Pattern
    severity: ErrorSeverity
    kind: ErrorKind
    tier: Tier
    message: str
    suggestion: str
    explanation: str
    examples: tuple[str, ...] = ()


def _rule(
    rule_id: str,
    pattern: str,
    severity: ErrorSeverity,
    message: str,
    suggestion: str,
    explanation: str,
    examples: tuple[str, ...] = (),
    kind: ErrorKind = ErrorKind.GRAMMAR,
    tier: Tier = Tier.FREE,
) -> GrammarRule:
    return GrammarRule(
        id=rule_id,
        pattern=re.compile(pattern, re.IGNORECASE),
        severity=severity,
        kind=kind,
        tier=tier,
        message=message,
        suggestion=suggestion,
        explanation=explanation,
        examples=examples,
    )


GRAMMAR_RULES: list[GrammarRule] = [
    _rule(
        "pronoun-verb-mismatch",
        _AFTER_PREP + r"\b(?:me|him|them|us)\s+(?:go|goes|went|want|wants|have|has|am|is|are|"
        r"was|were|come|came|need|needs|think|know|eat|do|does|did|can|will)\b",
        ErrorSeverity.CRITICAL,
        "Object pronoun used as the subject of a verb.",
        "Use a subject pronoun (I, he, they, we) before the verb.",
        "Subjects take subject pronouns; 'me', 'him', 'them' and 'us' are objects.",
        ("Me go home. -> I go home.", "Him is tall. -> He is tall."),
    ),
    _rule(
        "negation-without-auxiliary",
        r"\b(?:i|you|we|they|he|she|it|me|him)\s+(?:no|not)\s+(?:like|want|know|have|go|"
        r"understand|need|think|see|eat|play|work|come|make|care|believe|agree|remember)\b",
        ErrorSeverity.CRITICAL,
        "Negative formed without an auxiliary verb.",
        "Add do/does/did before 'not' (e.g. 'I don't like it').",
        "Present and past simple negatives need the auxiliary 'do': subject + do not + verb.",
        ("I not like it. -> I don't like it.", "She no want tea. -> She doesn't want tea."),
    ),
    _rule(
        "third-person-missing-s",
        _AFTER_AUX + r"\b(?:he|she)\s+(?:go|like|want|need|make|know|think|come|eat|play|work|"
        r"say|see|take|live|love|get|give|tell|watch|feel|look)\b",
        ErrorSeverity.CRITICAL,
        "Third-person singular verb is missing its -s ending.",
        "Add -s/-es to the verb after he/she (e.g. 'she goes').",
        "In the present simple, verbs after he, she or it take an -s ending.",
        ("He go to school. -> He goes to school.",),
    ),
    _rule(
        "subject-verb-agreement",
        _AFTER_AUX + r"\b(?:(?:he|she|it)\s+(?:am|are|do|have)|(?:you|we|they)\s+(?:is|was|has|"
        r"does|am)|i\s+(?:is|are|has|does))\b",
        ErrorSeverity.CRITICAL,
        "Subject and verb do not agree.",
        "Match the verb form to the subject (I am, he is, they are).",
        "The verb must agree with its subject in person and number.",
        ("They was late. -> They were late.", "He have a car. -> He has a car."),
    ),
    _rule(
        "multiple-auxiliaries",
        r"\b(?:(?:is|are|am|was|were)\s+(?:can|will|should|must|does|did)|"
        r"(?:can|will|should|must|could|would|may|might)\s+(?:can|will|must|should))\b",
        ErrorSeverity.CRITICAL,
        "Two auxiliary verbs used together.",
        "Keep one auxiliary (e.g. 'I can swim', not 'I am can swim').",
        "Modal verbs are not combined with 'be' or with another modal.",
        ("I am can swim. -> I can swim.", "She will can come. -> She will be able to come."),
    ),
    _rule(
        "wrong-verb-tense-past",
        _AFTER_AUX + rf"\b{_SUBJECTS}\s+{_PRESENT_VERBS}\b[^.!?]{{0,40}}?\b{_PAST_MARKERS}\b|"
        rf"\b{_PAST_MARKERS}\b,?\s+[^.!?]{{0,20}}?" + _AFTER_AUX
        + rf"\b{_SUBJECTS}\s+{_PRESENT_VERBS}\b",
        ErrorSeverity.CRITICAL,
        "Present-tense verb used with a past time marker.",
        "Use the past tense with words like 'yesterday' or 'last week'.",
        "Finished past events take the past simple (went, ate, saw).",
        ("I go there yesterday. -> I went there yesterday.",),
    ),
    _rule(
        "missing-be-verb",
        _AFTER_OBJECT_VERB + r"\b(?:i|you|he|she|it|we|they)\s+(?:wrong|right|happy|sad|good|bad|"
        r"tired|hungry|ready|sure|busy|late|sick|correct|angry|beautiful|hot|cold|fine|"
        r"afraid|boring|interesting|difficult|easy|important)\b",
        ErrorSeverity.CRITICAL,
        "Missing form of 'be' before an adjective.",
        "Add am/is/are (e.g. 'it is wrong').",
        "English needs a linking verb between a subject and an adjective.",
        ("She happy. -> She is happy.", "It wrong. -> It is wrong."),
    ),
    _rule(
        "missing-aux-verb-question",
        _SENTENCE_START + r"(?:why|what|where|when|how|who)\s+(?:i|you|he|she|it|we|they)\s+"
        r"(?!(?:am|are|is|was|were|do|does|did|can|could|will|would|should|shall|may|might|"
        r"must|have|has|had)\b)[a-z]+",
        ErrorSeverity.CRITICAL,
        "Question is missing an auxiliary verb.",
        "Add an auxiliary after the question word (e.g. 'Why is it wrong?').",
        "Wh-questions need an auxiliary (do, be, have or a modal) before the subject.",
        ("Why you go? -> Why do you go?",),
    ),
    _rule(
        "question-word-order",
        _SENTENCE_START + r"(?:what|where|when|why|how)\s+(?:you|he|she|they|we|it)\s+"
        r"(?:is|are|was|were|can|will)\b[^.!?]*\?",
        ErrorSeverity.CRITICAL,
        "Subject and auxiliary are in statement order inside a question.",
        "Put the auxiliary before the subject (e.g. 'Where are you going?').",
        "Questions invert the subject and the auxiliary verb.",
        ("Where you are going? -> Where are you going?",),
        kind=ErrorKind.SYNTAX,
    ),
    _rule(
        "double-negative",
        r"\b(?:don't|doesn't|didn't|can't|won't|isn't|aren't|wasn't|never|not)\s+(?:\w+\s+)?"
        r"(?:nothing|nobody|none|nowhere|no\s+one)\b",
        ErrorSeverity.HIGH,
        "Double negative.",
        "Use one negative (e.g. 'I don't know anything').",
        "Standard English uses a single negative per clause.",
        ("I don't want nothing. -> I don't want anything.",),
    ),
    _rule(
        "irregular-verb-form",
        r"\b(?:goed|eated|buyed|catched|teached|thinked|childs|mans|womans|peoples|"
        r"did\s+(?:went|came|saw|ate|bought|wanted|liked|needed|played|worked|said|told|made|"
        r"took)|does\s+goes)\b",
        ErrorSeverity.MAJOR,
        "Incorrect irregular form.",
        "Use the correct irregular form (went, ate, children, did go).",
        "Irregular verbs and nouns do not follow the -ed / -s pattern.",
        ("I goed home. -> I went home.", "Did you went? -> Did you go?"),
    ),
    _rule(
        "plural-noun-agreement",
        r"\b(?:many|several|few|two|three|four|five|these|those)\s+(?:problem|thing|book|friend|"
        r"person|idea|student|question|car|place)\b",
        ErrorSeverity.MEDIUM,
        "Singular noun after a plural quantifier.",
        "Use the plural noun (e.g. 'many problems').",
        "Quantifiers like 'many' and numbers above one take plural nouns.",
        ("many problem -> many problems",),
    ),
    _rule(
        "missing-article",
        r"\b(?:i\s+am|he\s+is|she\s+is|it\s+is|this\s+is|that\s+is)\s+(?:student|teacher|doctor|"
        r"engineer|nurse|lawyer|good\s+idea|big\s+problem|problem|book|car)\b",
        ErrorSeverity.MEDIUM,
        "Missing article before a singular noun.",
        "Add 'a' or 'the' (e.g. 'I am a student').",
        "Singular countable nouns need an article or determiner.",
        ("I am student. -> I am a student.",),
        tier=Tier.PRO,
    ),
    _rule(
        "wrong-preposition",
        r"\b(?:married\s+with|depends?\s+of|interested\s+about|arrived?\s+to|good\s+in|"
        r"listen\s+music|afraid\s+from)\b",
        ErrorSeverity.MEDIUM,
        "Unusual preposition for this word.",
        "Use the standard preposition (married to, depend on, interested in).",
        "Many verbs and adjectives take a fixed preposition.",
        ("married with -> married to", "depend of -> depend on"),
        tier=Tier.PRO,
    ),
    _rule(
        "double-comparative",
        r"\b(?:more\s+(?:better|worse|bigger|smaller|easier|harder|faster)|most\s+(?:best|worst|"
        r"biggest)|very\s+more)\b",
        ErrorSeverity.MEDIUM,
        "Comparative or superlative marked twice.",
        "Use either 'more' or the -er form, not both.",
        "Adjectives take one comparative marker.",
        ("more better -> better",),
        tier=Tier.PRO,
    ),
    _rule(
        "passive-voice-overuse",
        r"\b(?:is|are|was|were|been|being)\s+\w+ed\s+by\b",
        ErrorSeverity.SUGGESTION,
        "Passive construction.",
        "Consider the active voice for a more direct sentence.",
        "Active sentences name the actor first and read more directly.",
        ("The cake was eaten by Tom. -> Tom ate the cake.",),
        kind=ErrorKind.STYLE,
        tier=Tier.PREMIUM,
    ),
]


def rules_for_tier(tier: Tier) -> list[GrammarRule]:
    """Rules unlocked by ``tier``, in table order."""
    return [rule for rule in GRAMMAR_RULES if tier.includes(rule.tier)]


class HeuristicCheck(NamedTuple):
    """A phrase-level check that carries a fixed score penalty."""

    id: str
    pattern: re.Pattern
    penalty: int
    severity: ErrorSeverity
    kind: ErrorKind
    message: str
    suggestion: str


HEURISTIC_CHECKS: list[HeuristicCheck] = [
    HeuristicCheck(
        "subjunctive-was",
        re.compile(r"\bif\s+i\s+was\b", re.IGNORECASE),
        20,
        ErrorSeverity.HIGH,
        ErrorKind.GRAMMAR,
        "Use the subjunctive in hypothetical conditions.",
        "if I were",
    ),
    HeuristicCheck(
        "reported-speech-tense",
        re.compile(r"\b(?:told|said)\b[^.!?]{0,40}?\bwill\b", re.IGNORECASE),
        15,
        ErrorSeverity.HIGH,
        ErrorKind.GRAMMAR,
        "Reported speech after a past verb usually shifts 'will' to 'would'.",
        "would",
    ),
    HeuristicCheck(
        "tense-sequence-perfect",
        re.compile(r"\b(?:started|began)\b[^.!?]{0,40}?\bhasn't\b", re.IGNORECASE),
        12,
        ErrorSeverity.MEDIUM,
        ErrorKind.GRAMMAR,
        "Past narrative mixed with present perfect.",
        "hadn't",
    ),
    HeuristicCheck(
        "collocation-due-of",
        re.compile(r"\bdue\s+of\b", re.IGNORECASE),
        8,
        ErrorSeverity.MEDIUM,
        ErrorKind.VOCABULARY,
        "'due' takes 'to', not 'of'.",
        "due to",
    ),
    HeuristicCheck(
        "collocation-despite-of",
        re.compile(r"\bdespite\s+of\b", re.IGNORECASE),
        8,
        ErrorSeverity.MEDIUM,
        ErrorKind.VOCABULARY,
        "'despite' is used without 'of'.",
        "despite",
    ),
    HeuristicCheck(
        "collocation-discuss-about",
        re.compile(r"\bdiscuss(?:ing|ed|es)?\s+about\b", re.IGNORECASE),
        8,
        ErrorSeverity.MEDIUM,
        ErrorKind.VOCABULARY,
        "'discuss' takes a direct object without 'about'.",
        "discuss",
    ),
    HeuristicCheck(
        "collocation-emphasize-on",
        re.compile(r"\bemphasi[sz](?:e|es|ed|ing)\s+on\b", re.IGNORECASE),
        8,
        ErrorSeverity.MEDIUM,
        ErrorKind.VOCABULARY,
        "'emphasize' takes a direct object without 'on'.",
        "emphasize",
    ),
]
