"""
Unit Tests for string similarity and fill-in-the-blank policies
"""
import pytest

from nexus_grader.utils.similarity import PRACTICE_POLICY, SUBMISSION_POLICY, SimilarityPolicy, similarity


class TestSimilarity:

    @pytest.mark.parametrize("a, b, expected", [
        ("kitten", "sitting", 4 / 7),
        ("flaw", "lawn", 0.5),
        ("abc", "abd", 2 / 3),
    ])
    def test_edit_distance_over_longer_length(self, a, b, expected):
        assert similarity(a, b) == pytest.approx(expected)

    def test_case_and_whitespace_insensitive(self):
        assert similarity("  Paris ", "paris") == 1.0

    def test_both_empty_are_identical(self):
        assert similarity("", "") == 1.0
        assert similarity(None, "  ") == 1.0

    def test_one_empty(self):
        assert similarity("abc", "") == 0.0

    def test_normalized_by_longer_string(self):
        assert similarity("abcdefghij", "abcdefgxyz") == pytest.approx(0.7)

    def test_symmetric(self):
        assert similarity("mitochondria", "mitocondria") == similarity("mitocondria", "mitochondria")


class TestSimilarityPolicy:

    def test_full_credit(self):
        score = PRACTICE_POLICY.score("Photosynthesis", "photosynthesis", 2)
        assert score.marks == 2
        assert score.is_correct is True
        assert score.partial is False

    def test_near_miss_still_full_credit(self):
        # one typo in a long word stays above 0.85
        score = PRACTICE_POLICY.score("photosyntesis", "photosynthesis", 2)
        assert score.is_correct is True

    def test_partial_band_floors_half_marks(self):
        score = PRACTICE_POLICY.score("abcdefghij", "abcdefgxyz", 3)
        assert score.marks == 1
        assert score.is_correct is False
        assert score.partial is True

    def test_below_partial_band(self):
        score = PRACTICE_POLICY.score("abcdefghij", "abcdxyzuvw", 2)
        assert score.marks == 0
        assert score.partial is False

    def test_submission_policy_has_no_partial_band(self):
        assert SUBMISSION_POLICY.score("abcdefghij", "abcdefgxyz", 2).marks == 2
        low = SUBMISSION_POLICY.score("abcdefghij", "abcdefxyzw", 2)
        assert low.marks == 0
        assert low.partial is False

    @pytest.mark.parametrize("kwargs", [
        {"full_credit_threshold": 1.5},
        {"full_credit_threshold": 0.5, "partial_credit_threshold": 0.7},
        {"partial_credit_fraction": -0.1},
    ])
    def test_invalid_policies(self, kwargs):
        with pytest.raises(ValueError):
            SimilarityPolicy(**kwargs)
