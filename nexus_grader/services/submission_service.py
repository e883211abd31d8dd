"""
Submission Service for practice test persistence
Stores graded practice submissions and keeps per-student practice stats
"""
import json
import math
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import db_schemas
from ..models.schemas import GradingResponse, PracticeStats, PracticeSubmission
from ..utils.database_manager import DatabaseManager


logger = logging.getLogger(__name__)

STREAK_WINDOW = timedelta(hours=24)


def next_streak(current: int, last_practice: Optional[datetime], now: datetime) -> int:
    """Streak after practicing at ``now``"""
    if last_practice is None:
        return 1
    if now - last_practice > STREAK_WINDOW:
        return 1
    if last_practice.date() != now.date():
        return current + 1
    return current


def _to_stats(row: Optional[db_schemas.PracticeStats]) -> PracticeStats:
    if row is None:
        return PracticeStats()
    return PracticeStats(
        total_practice_tests=row.total_practice_tests,
        total_questions_attempted=row.total_questions_attempted,
        total_correct_answers=row.total_correct_answers,
        average_accuracy=row.average_accuracy,
        current_streak=row.current_streak,
        last_practice_date=row.last_practice_date,
    )


def _to_submission(row: db_schemas.PracticeSubmission) -> PracticeSubmission:
    return PracticeSubmission(
        id=row.id,
        student_id=row.student_id,
        student_name=row.student_name,
        test_id=row.test_id,
        test_title=row.test_title,
        subject_name=row.subject_name,
        answers=json.loads(row.answers),
        grading=GradingResponse.model_validate_json(row.grading),
        practice_streak=row.practice_streak,
        submitted_at=row.submitted_at,
    )


class SubmissionService:

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get_session(self) -> Session:
        """Get database session"""
        return self.db_manager.get_session()

    def _update_stats(self, session: Session, student_id: str, grading: GradingResponse, now: datetime) -> int:
        stats = session.get(db_schemas.PracticeStats, student_id)
        if stats is None:
            stats = db_schemas.PracticeStats(
                student_id=student_id,
                total_practice_tests=0,
                total_questions_attempted=0,
                total_correct_answers=0,
                average_accuracy=0,
                current_streak=0,
            )
            session.add(stats)

        stats.current_streak = next_streak(stats.current_streak, stats.last_practice_date, now)
        stats.total_practice_tests += 1
        stats.total_questions_attempted += len(grading.results)
        stats.total_correct_answers += sum(1 for r in grading.results if r.is_correct)
        stats.average_accuracy = (
            math.floor(stats.total_correct_answers / stats.total_questions_attempted * 100 + 0.5)
            if stats.total_questions_attempted > 0 else 0
        )
        stats.last_practice_date = now
        return stats.current_streak

    async def add_practice_submission(self, submission: PracticeSubmission, now: Optional[datetime] = None) -> str:
        """Store a graded practice submission and update the student's stats; returns its id"""
        now = now or datetime.now()
        session = self.get_session()
        try:
            streak = self._update_stats(session, submission.student_id, submission.grading, now)
            row = db_schemas.PracticeSubmission(
                student_id=submission.student_id,
                student_name=submission.student_name,
                test_id=submission.test_id,
                test_title=submission.test_title,
                subject_name=submission.subject_name,
                answers=json.dumps(submission.answers),
                grading=submission.grading.model_dump_json(by_alias=True),
                total_score=submission.grading.total_score,
                max_score=submission.grading.max_score,
                percentage=submission.grading.percentage,
                practice_streak=streak,
                submitted_at=now,
            )
            session.add(row)
            session.commit()

            logger.info(
                f"Stored practice submission {row.id} for student {submission.student_id} "
                f"({submission.grading.percentage}%, streak {streak})"
            )
            return row.id

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error storing practice submission for student {submission.student_id}: {e}")
            raise
        finally:
            session.close()

    async def get_practice_submission(self, submission_id: str) -> Optional[PracticeSubmission]:
        session = self.get_session()
        try:
            row = session.get(db_schemas.PracticeSubmission, submission_id)
            return _to_submission(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving practice submission {submission_id}: {e}")
            raise
        finally:
            session.close()

    async def get_practice_submissions_by_student(self, student_id: str) -> List[PracticeSubmission]:
        """All submissions of a student, newest first"""
        session = self.get_session()
        try:
            rows = (
                session.query(db_schemas.PracticeSubmission)
                .filter(db_schemas.PracticeSubmission.student_id == student_id)
                .order_by(db_schemas.PracticeSubmission.submitted_at.desc())
                .all()
            )
            logger.info(f"Retrieved {len(rows)} practice submissions for student {student_id}")
            return [_to_submission(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving practice submissions for student {student_id}: {e}")
            raise
        finally:
            session.close()

    async def get_practice_stats(self, student_id: str) -> PracticeStats:
        """Practice stats of a student, zeroed when the student never practiced"""
        session = self.get_session()
        try:
            return _to_stats(session.get(db_schemas.PracticeStats, student_id))
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving practice stats for student {student_id}: {e}")
            raise
        finally:
            session.close()
