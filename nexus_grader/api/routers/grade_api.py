"""
Grading Router
Grades answer sets, auto-scores submissions and stores practice results
"""
import time
import logging
from typing import List

from fastapi import APIRouter, HTTPException, status

from ...models.schemas import (
    GradingRequest, GradingResponse, ObjectiveScore, PracticeGradingRequest,
    PracticeStats, PracticeSubmission, WireModel
)
from ...services.grade_service import GradeService, InvalidInputError
from ...services.submission_service import SubmissionService


logger = logging.getLogger(__name__)

# Router for grading operations
router = APIRouter(
    prefix="/grade",
    tags=["Grade Operations"],
    responses={404: {"description": "Not found"}},
)

# Global services (will be set from main app)
grade_service: GradeService = GradeService()
submission_service: SubmissionService = None


def set_services(grade_svc: GradeService, submission_svc: SubmissionService = None):
    """Set grading services from main application"""
    global grade_service, submission_service
    grade_service = grade_svc
    submission_service = submission_svc


class PracticeGradingResult(WireModel):
    """Stored practice submission id with its grading"""
    submission_id: str
    grading: GradingResponse


def check_submission_service():
    """Helper to check if the submission store is available"""
    if not submission_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Submission store not available. Please configure DATABASE_URL."
        )


async def _grade(request: GradingRequest) -> GradingResponse:
    try:
        return await grade_service.grade(request.questions, request.answers)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=GradingResponse)
async def grade_answers(request: GradingRequest) -> GradingResponse:
    """
    Grade a full answer set.

    Objective questions are scored locally, written answers by the LLM chain
    with a completeness fallback. Always returns one result per question.
    """
    start_time = time.time()
    try:
        result = await _grade(request)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Grading failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Grading failed: {str(e)}"
        )

    processing_time = (time.time() - start_time) * 1000
    logger.info(f"Graded {len(request.questions)} questions in {processing_time:.2f}ms - {result.percentage}%")
    return result


@router.post("/auto-score", response_model=ObjectiveScore)
async def auto_score(request: GradingRequest) -> ObjectiveScore:
    """Submission-time score for objective questions; no LLM involved"""
    try:
        return grade_service.score_objective(request.questions, request.answers)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/practice", response_model=PracticeGradingResult)
async def grade_practice(request: PracticeGradingRequest) -> PracticeGradingResult:
    """Grade a practice test and store it with the student's practice stats"""
    check_submission_service()

    try:
        grading = await _grade(request)
        submission = PracticeSubmission(
            student_id=request.student_id,
            student_name=request.student_name,
            test_id=request.test_id,
            test_title=request.test_title,
            subject_name=request.subject_name,
            answers={answer.question_id: answer.answer for answer in request.answers},
            grading=grading,
        )
        submission_id = await submission_service.add_practice_submission(submission)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Practice grading failed for student {request.student_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Practice grading failed: {str(e)}"
        )

    return PracticeGradingResult(submission_id=submission_id, grading=grading)


@router.get("/practice/{student_id}", response_model=List[PracticeSubmission])
async def get_practice_history(student_id: str) -> List[PracticeSubmission]:
    """Practice submissions of a student, newest first"""
    check_submission_service()
    try:
        return await submission_service.get_practice_submissions_by_student(student_id)
    except Exception as e:
        logger.error(f"Failed to load practice history for {student_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load practice history: {str(e)}"
        )


@router.get("/practice/{student_id}/stats", response_model=PracticeStats)
async def get_practice_stats(student_id: str) -> PracticeStats:
    """Running practice stats of a student"""
    check_submission_service()
    try:
        return await submission_service.get_practice_stats(student_id)
    except Exception as e:
        logger.error(f"Failed to load practice stats for {student_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load practice stats: {str(e)}"
        )
