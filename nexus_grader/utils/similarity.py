"""
String similarity and fill-in-the-blank grading policy
"""
import math
from dataclasses import dataclass
from typing import Optional

import Levenshtein


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Normalized similarity in [0, 1], case-insensitive and trimmed.

    1 - distance / len(longer). Two empty strings are identical.
    """
    s1 = (a or "").strip().lower()
    s2 = (b or "").strip().lower()

    if s1 == s2:
        return 1.0

    longer = max(len(s1), len(s2))
    return (longer - Levenshtein.distance(s1, s2)) / longer


@dataclass(frozen=True)
class SimilarityScore:
    """Outcome of applying a similarity policy to one answer"""
    similarity: float
    marks: int
    is_correct: bool
    partial: bool


@dataclass(frozen=True)
class SimilarityPolicy:
    """
    Thresholds for awarding marks from string similarity.

    At or above ``full_credit_threshold`` the answer earns full marks. When
    ``partial_credit_threshold`` is set, answers at or above it earn
    ``floor(marks * partial_credit_fraction)``. Everything else earns zero.
    """
    full_credit_threshold: float = 0.85
    partial_credit_threshold: Optional[float] = 0.60
    partial_credit_fraction: float = 0.5

    def __post_init__(self):
        if not 0 <= self.full_credit_threshold <= 1:
            raise ValueError("full_credit_threshold must be between 0 and 1")
        if self.partial_credit_threshold is not None and not (
            0 <= self.partial_credit_threshold <= self.full_credit_threshold
        ):
            raise ValueError("partial_credit_threshold must be between 0 and full_credit_threshold")
        if not 0 <= self.partial_credit_fraction <= 1:
            raise ValueError("partial_credit_fraction must be between 0 and 1")

    def score(self, submitted: Optional[str], reference: Optional[str], marks: int) -> SimilarityScore:
        value = similarity(submitted, reference)

        if value >= self.full_credit_threshold:
            return SimilarityScore(value, marks, True, False)

        if self.partial_credit_threshold is not None and value >= self.partial_credit_threshold:
            return SimilarityScore(value, math.floor(marks * self.partial_credit_fraction), False, True)

        return SimilarityScore(value, 0, False, False)


# Practice grading: partial-credit band
PRACTICE_POLICY = SimilarityPolicy(full_credit_threshold=0.85, partial_credit_threshold=0.60)

# Submission-time auto-score: single full-or-nothing threshold
SUBMISSION_POLICY = SimilarityPolicy(full_credit_threshold=0.65, partial_credit_threshold=None)
