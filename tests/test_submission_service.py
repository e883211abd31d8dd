"""
Unit Tests for practice submission persistence
"""
from datetime import datetime, timedelta

import pytest

from nexus_grader.models.schemas import GradingResponse, GradingResult, PracticeSubmission
from nexus_grader.services.submission_service import SubmissionService, next_streak


def make_grading(correct: int, total: int) -> GradingResponse:
    results = [
        GradingResult(question_id=f"q{i}", marks_obtained=1 if i < correct else 0, max_marks=1,
                      feedback="", is_correct=i < correct)
        for i in range(total)
    ]
    return GradingResponse(
        total_score=correct,
        max_score=total,
        percentage=round(correct / total * 100),
        results=results,
        overall_feedback="Keep going!",
    )


def make_submission(student_id: str = "stu-1", correct: int = 3, total: int = 4, test_id: str = "t1"):
    return PracticeSubmission(
        student_id=student_id,
        student_name="Student One",
        test_id=test_id,
        test_title="Cells quiz",
        subject_name="Biology",
        answers={"q0": 1, "q1": "nucleus", "q2": None},
        grading=make_grading(correct, total),
    )


@pytest.fixture
def submission_service(db_manager):
    return SubmissionService(db_manager)


class TestStreak:

    def test_first_practice(self):
        assert next_streak(0, None, datetime(2025, 3, 10, 9)) == 1

    def test_same_day_unchanged(self):
        assert next_streak(3, datetime(2025, 3, 10, 9), datetime(2025, 3, 10, 21)) == 3

    def test_next_day_within_a_day_increments(self):
        assert next_streak(3, datetime(2025, 3, 10, 22), datetime(2025, 3, 11, 8)) == 4

    def test_more_than_a_day_resets(self):
        assert next_streak(5, datetime(2025, 3, 10, 9), datetime(2025, 3, 11, 9, 1)) == 1


class TestSubmissionService:

    async def test_store_and_fetch(self, submission_service):
        submission = make_submission()
        submission_id = await submission_service.add_practice_submission(submission)

        stored = await submission_service.get_practice_submission(submission_id)

        assert stored.id == submission_id
        assert stored.student_id == "stu-1"
        assert stored.answers == submission.answers
        assert stored.grading.total_score == 3
        assert [r.is_correct for r in stored.grading.results] == [True, True, True, False]
        assert stored.practice_streak == 1
        assert stored.submitted_at is not None

    async def test_unknown_submission(self, submission_service):
        assert await submission_service.get_practice_submission("missing") is None

    async def test_history_newest_first(self, submission_service):
        await submission_service.add_practice_submission(make_submission(test_id="old"), now=datetime(2025, 3, 10, 9))
        await submission_service.add_practice_submission(make_submission(test_id="new"), now=datetime(2025, 3, 10, 12))
        await submission_service.add_practice_submission(make_submission(student_id="other"), now=datetime(2025, 3, 10, 13))

        history = await submission_service.get_practice_submissions_by_student("stu-1")

        assert [s.test_id for s in history] == ["new", "old"]

    async def test_stats_accumulate(self, submission_service):
        await submission_service.add_practice_submission(make_submission(correct=3, total=4), now=datetime(2025, 3, 10, 9))
        await submission_service.add_practice_submission(make_submission(correct=0, total=4), now=datetime(2025, 3, 10, 10))

        stats = await submission_service.get_practice_stats("stu-1")

        assert stats.total_practice_tests == 2
        assert stats.total_questions_attempted == 8
        assert stats.total_correct_answers == 3
        # 37.5 rounds up
        assert stats.average_accuracy == 38
        assert stats.last_practice_date == datetime(2025, 3, 10, 10)

    async def test_streak_over_several_days(self, submission_service):
        times = [
            datetime(2025, 3, 10, 9),
            datetime(2025, 3, 10, 15),  # same day
            datetime(2025, 3, 11, 10),  # next day, 19h later
            datetime(2025, 3, 13, 10),  # gap
        ]
        streaks = []
        for now in times:
            submission_id = await submission_service.add_practice_submission(make_submission(), now=now)
            streaks.append((await submission_service.get_practice_submission(submission_id)).practice_streak)

        assert streaks == [1, 1, 2, 1]
        assert (await submission_service.get_practice_stats("stu-1")).current_streak == 1

    async def test_stats_for_new_student(self, submission_service):
        stats = await submission_service.get_practice_stats("nobody")
        assert stats.total_practice_tests == 0
        assert stats.average_accuracy == 0
        assert stats.current_streak == 0
        assert stats.last_practice_date is None

    async def test_default_timestamps_share_the_grading_clock(self, submission_service):
        submission = make_submission()
        before = datetime.now()
        submission_id = await submission_service.add_practice_submission(submission)

        stored = await submission_service.get_practice_submission(submission_id)
        stats = await submission_service.get_practice_stats("stu-1")

        assert stored.submitted_at.tzinfo is None
        assert abs(stored.submitted_at - before) < timedelta(minutes=1)
        assert abs(stored.submitted_at - submission.grading.graded_at) < timedelta(minutes=1)
        assert stats.last_practice_date == stored.submitted_at
