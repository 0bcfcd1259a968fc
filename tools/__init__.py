"""Tools package for record lookup and text comparison utilities."""

from tools.record_store import RecordStore
from tools.keyword_similarity import (
    KeywordSimilarity,
    extract_keywords,
    is_keyword_duplicate,
    keyword_similarity,
)

__all__ = [
    "RecordStore",
    "KeywordSimilarity",
    "extract_keywords",
    "is_keyword_duplicate",
    "keyword_similarity",
]
