"""Agents package for duplicate evaluation."""

from dupcheck.agents.match_classifier import MatchClassifier, Overlap, validate_proposal
from dupcheck.agents.judgment_oracle import (
    GeminiJudgmentOracle,
    JudgmentOracle,
    SemanticDuplicateAssessor,
)

__all__ = [
    "MatchClassifier",
    "Overlap",
    "validate_proposal",
    "GeminiJudgmentOracle",
    "JudgmentOracle",
    "SemanticDuplicateAssessor",
]
