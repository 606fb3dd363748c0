"""Text normalization for event matching.

Produces the lowercase, accent-folded, punctuation-free strings that
fingerprints are built from, plus the token and keyword helpers the
scorers use.
"""

import re
import unicodedata

# Generic venue words that say nothing about which venue is meant
VENUE_STOPWORDS = frozenset(
    {
        "the",
        "at",
        "venue",
        "hall",
        "center",
        "centre",
        "theatre",
        "theater",
        "club",
        "bar",
        "pub",
        "restaurant",
    }
)

# Filler words dropped from description keywords
KEYWORD_STOPWORDS = frozenset(
    {
        "about",
        "after",
        "again",
        "also",
        "and",
        "are",
        "been",
        "before",
        "but",
        "can",
        "come",
        "each",
        "event",
        "for",
        "from",
        "have",
        "into",
        "join",
        "just",
        "more",
        "night",
        "our",
        "over",
        "the",
        "their",
        "there",
        "this",
        "that",
        "was",
        "will",
        "with",
        "you",
        "your",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Normalize text for matching purposes.

    Steps:
        1. Return empty string for None/empty input
        2. Lowercase and fold accents (``"Café"`` -> ``"cafe"``)
        3. Replace punctuation with spaces (hyphens are kept)
        4. Collapse whitespace and strip

    Args:
        text: Input text to normalize.

    Returns:
        Normalized text string.
    """
    if not text:
        return ""

    result = text.lower().replace("ß", "ss")

    # Decompose, then drop the combining marks left behind
    result = unicodedata.normalize("NFKD", result)
    result = "".join(ch for ch in result if not unicodedata.combining(ch))

    result = _PUNCTUATION.sub(" ", result).replace("_", " ")
    return _WHITESPACE.sub(" ", result).strip()


def tokenize(text: str | None, min_length: int = 3) -> list[str]:
    """Split normalized *text* into tokens of at least *min_length* characters."""
    return [token for token in normalize_text(text).split() if len(token) >= min_length]


def normalize_venue(name: str | None) -> str:
    """Normalize a venue name and drop generic venue words.

    ``"The Blue Note Jazz Club"`` becomes ``"blue note jazz"``.  A name made
    only of generic words is kept as normalized rather than emptied.
    """
    normalized = normalize_text(name)
    if not normalized:
        return ""
    kept = [word for word in normalized.split() if word not in VENUE_STOPWORDS]
    return " ".join(kept) if kept else normalized


def extract_keywords(text: str | None, min_length: int = 4) -> frozenset[str]:
    """Distinctive words of a description, used for semantic overlap."""
    return frozenset(
        token for token in tokenize(text, min_length) if token not in KEYWORD_STOPWORDS
    )
