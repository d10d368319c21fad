"""
String similarity and keyword extraction for account names.

Pure functions shared by the account classifier.
"""
import re
from typing import List, Optional

# Common words dropped from keyword extraction
STOPWORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
    "was", "one", "our", "out", "day", "get", "has", "him", "his", "how",
    "its", "may", "new", "now", "old", "see", "two", "way", "who", "boy",
    "did", "man", "men", "put", "say", "she", "too", "use",
})

_LEADING_CODE = re.compile(r"^\d+[\s-]*")
_TRAILING_CODE = re.compile(r"\s*-\s*\d+$")
_NON_WORD = re.compile(r"[^\w\s]")


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def similarity(s1: str, s2: str) -> float:
    """
    Case-insensitive similarity in [0, 1].

    Args:
        s1: First string.
        s2: Second string.

    Returns:
        1.0 for identical strings, 0.0 when exactly one is empty, otherwise
        ``1 - distance / max_length``.
    """
    a = s1.lower()
    b = s2.lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    distance = levenshtein_distance(a, b)
    return 1.0 - (distance / max(len(a), len(b)))


def extract_keywords(name: str) -> List[str]:
    """
    Extract meaningful keywords from an account name.

    Strips leading/trailing account codes, punctuation, short tokens and
    stopwords. Keywords keep their first-seen order and are de-duplicated.
    """
    cleaned = _LEADING_CODE.sub("", name)
    cleaned = _TRAILING_CODE.sub("", cleaned)
    cleaned = _NON_WORD.sub(" ", cleaned).lower()

    keywords = [
        word for word in cleaned.split()
        if len(word) > 2 and word not in STOPWORDS
    ]
    return list(dict.fromkeys(keywords))


def leading_account_code(name: str) -> Optional[int]:
    """Return the numeric code an account name starts with, if any."""
    match = re.match(r"^(\d+)", name.strip())
    return int(match.group(1)) if match else None
