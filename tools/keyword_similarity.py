"""Keyword overlap heuristic for comparing free-text line-item details.

Used when the Judgment Oracle is unavailable. Deterministic and never raises.
"""

from typing import NamedTuple


MIN_KEYWORD_LENGTH = 4


class KeywordSimilarity(NamedTuple):
    score: float
    matched: int
    total: int

    def describe(self) -> str:
        return (
            f"Keyword-based similarity: {self.matched}/{self.total} keywords match "
            "(AI analysis unavailable)"
        )


def extract_keywords(text: str) -> list[str]:
    """Lowercase and split on whitespace, keeping tokens longer than 3 characters."""
    return [token for token in text.lower().split() if len(token) >= MIN_KEYWORD_LENGTH]


def keyword_similarity(new_text: str, existing_text: str) -> KeywordSimilarity:
    """Fraction of the new text's keywords found as substrings of the existing text.

    Args:
        new_text: Details of the proposed line item
        existing_text: Details of the previously awarded line item

    Returns:
        KeywordSimilarity with score in [0, 1]; 0 when the new text has no keywords
    """
    keywords = extract_keywords(new_text or "")
    haystack = (existing_text or "").lower()
    matched = sum(1 for keyword in keywords if keyword in haystack)
    score = matched / len(keywords) if keywords else 0.0
    return KeywordSimilarity(score=score, matched=matched, total=len(keywords))


def is_keyword_duplicate(similarity: KeywordSimilarity, threshold: float = 0.5) -> bool:
    """A keyword overlap counts as a duplicate when it strictly exceeds the threshold."""
    return similarity.score > threshold
