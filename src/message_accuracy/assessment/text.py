"""Text normalization and tokenization shared by the category analyzers."""

import re

import textstat

WORD_RE = re.compile(r"[A-Za-z']+")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

_QUOTE_TABLE = str.maketrans({
    "‘": "'", "’": "'", "‛": "'", "‹": "'", "›": "'",
    "`": "'", "´": "'",
    "“": '"', "”": '"', "«": '"', "»": '"', "„": '"', "‟": '"',
    "–": "-", "—": "-", "−": "-",
})


def normalize_typography(text: str) -> str:
    """Replace smart quotes and dashes with their ASCII forms."""
    return text.translate(_QUOTE_TABLE)


def tokenize_words(text: str) -> list[str]:
    """Lowercased word tokens (letters and apostrophes)."""
    return [w.strip("'") for w in WORD_RE.findall(text.lower()) if w.strip("'")]


def split_sentences(text: str) -> list[str]:
    """Non-empty sentences split on terminal punctuation."""
    return [s.strip() for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


# spaCy lazy loader with graceful fallback
_nlp = None


def get_nlp():
    global _nlp
    if _nlp is None:
        try:
            import spacy  # noqa: PLC0415
            _nlp = spacy.load("en_core_web_sm", disable=["ner"])
        except Exception:
            _nlp = None  # Model not installed; callers use regex and surface forms
    return _nlp


def count_syllables(word: str) -> int:
    word = re.sub(r"[^A-Za-z]", "", word)
    if not word:
        return 0
    return max(1, int(textstat.syllable_count(word)))


FUNCTION_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "nor", "so", "yet", "for",
    "i", "me", "my", "mine", "you", "your", "yours", "he", "him", "his",
    "she", "her", "hers", "it", "its", "we", "us", "our", "ours", "they",
    "them", "their", "theirs", "this", "that", "these", "those",
    "am", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did",
    "will", "would", "shall", "should", "can", "could", "may", "might", "must",
    "in", "on", "at", "to", "of", "by", "with", "from", "about", "into",
    "over", "under", "after", "before", "between", "through", "during",
    "not", "no", "if", "then", "than", "because", "while", "when", "where",
    "which", "who", "whom", "whose", "what", "how", "why", "there", "here",
    # Unapostrophized and misspelled forms still count as function tokens
    "dont", "cant", "wont", "didnt", "doesnt", "isnt", "arent", "wasnt",
    "werent", "havent", "hasnt", "im", "ive", "youre", "theyre", "thats",
    "whats", "thier", "wich", "becuase", "untill",
})

# Academic word list (AWL-style headwords and common inflections)
ACADEMIC_WORDS: frozenset[str] = frozenset({
    "achieve", "analyze", "analyse", "analysis", "approach", "aspect", "assume",
    "authority", "available", "benefit", "concept", "consistent", "context",
    "contract", "contribute", "culture", "define", "develop", "distribute",
    "economy", "environment", "establish", "evaluate", "evidence", "factor",
    "financial", "focus", "function", "identify", "impact", "indicate",
    "individual", "initial", "involved", "major", "method", "occur",
    "percent", "period", "policy", "positive", "potential", "previous",
    "primary", "process", "professional", "project", "research",
    "resource", "response", "role", "section", "significant",
    "similar", "specific", "structure", "technology", "theory", "tradition",
    "unique", "various", "require", "maintain", "demonstrate", "obtain",
    "participate", "alternative", "comprehensive", "efficient",
    "fundamental", "generation", "global", "implement", "integration",
    "mechanism", "objective", "perspective", "phenomenon", "principle",
    "procedure", "represent", "sector", "strategy", "sufficient", "survey",
    "acquire", "adapt", "adequate", "adjacent", "adjust", "administration",
    "advocate", "allocate", "ambiguous", "anticipate", "appropriate",
    "approximate", "assist", "associate", "attribute", "capacity", "category",
    "circumstance", "clarify", "colleague", "communicate", "community",
    "component", "conduct", "consequence", "constitute", "constraint",
    "construct", "consume", "contemporary", "contrast", "controversy",
    "coordinate", "correspond", "criteria", "debate", "decline", "deduce",
    "derive", "despite", "determine", "dimension", "diverse", "document",
    "domain", "emerge", "enable", "enhance", "ensure", "equivalent", "examine",
    "feature", "flexible", "generate", "hypothesis", "illustrate", "imply",
    "incorporate", "inevitable", "innovation", "investigate", "justify",
    "minimum", "modify", "monitor", "motivation", "network", "neutral",
    "notion", "outcome", "parameter", "participant", "perception", "priority",
    "proportion", "pursue", "qualify", "quantity", "ratio", "region",
    "regulate", "relevant", "resolve", "retain", "simulate", "stability",
    "status", "substitute", "summarize", "technique", "transformation",
    "transition", "trend", "underlying", "utilize", "valid", "variable",
    "verify", "accurate", "acknowledge", "aggregate", "apparent", "arbitrary",
    "assess", "assessment", "attitude", "characteristic", "classify",
    "coherent", "collaborate", "comparable", "compatible", "compile",
    "complement", "concentrate", "conclusion", "confirm", "correlate",
    "crucial", "dynamic", "elaborate", "eliminate", "emphasize", "empirical",
    "entity", "estimate", "explicit", "facilitate", "framework", "hierarchy",
    "implicit", "inherent", "insight", "interpret", "maximize", "minimize",
    "mutual", "optimal", "paradigm", "precise", "preliminary", "prioritize",
    "subsequent", "substantial", "furthermore", "moreover", "consequently",
    "nevertheless", "therefore", "however", "significantly", "analytical",
    "implementation", "sustainable", "methodology",
})

TRANSITION_WORDS: frozenset[str] = frozenset({
    "however", "therefore", "furthermore", "moreover", "consequently",
    "nevertheless", "nonetheless", "meanwhile", "additionally", "finally",
    "also", "then", "first", "second", "third", "overall", "instead",
})
