"""
Core Grading Service for the Nexus Grader
Scores objective questions locally, delegates subjective ones to the LLM
fallback chain and always returns a complete result set
"""
import inspect
import logging
import math
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..models.schemas import (
    Answer, GradingResponse, GradingResult, ObjectiveScore, Question, QuestionType
)
from ..utils.config import Settings, settings as default_settings
from ..utils.json_recovery import JSONRecoveryError, parse_array
from ..utils.prompt_templates import PromptTemplates
from ..utils.similarity import SUBMISSION_POLICY, SimilarityPolicy
from .credential_service import MissingCredentialsError
from .llm_service import LLMError, LLMService, llm_service


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Any]
AnswerValue = Union[int, str, None]

# Failures absorbed by the fallback policies; only InvalidInputError escapes grade()
RECOVERABLE_ERRORS = (LLMError, JSONRecoveryError, MissingCredentialsError)

COMPLETENESS_FEEDBACK = "Auto-graded based on response completeness."
UNGRADED_FEEDBACK = "Could not grade this answer."

_OPTION_INDEX = re.compile(r"^(?:option\s*)?(\d+)$")

M = TypeVar("M", bound=BaseModel)


class GradingError(Exception):
    """Base exception for grading-related errors"""
    pass


class InvalidInputError(GradingError):
    """Questions or answers are structurally invalid"""
    pass


class GradingStage(str, Enum):
    SCORING_OBJECTIVE = "Analyzing your answers..."
    DELEGATING_SUBJECTIVE = "Grading written responses..."
    SUMMARIZING = "Generating feedback..."
    COMPLETE = "Complete"


@dataclass
class GradingMetrics:
    """Metrics collected during grading process"""
    processing_time_ms: float = 0.0
    total_llm_calls: int = 0
    delegated_questions: int = 0
    used_completeness_fallback: bool = False
    used_template_feedback: bool = False


def parse_choice_index(value: Any) -> Optional[int]:
    """Choice index from an int, a numeric string or an ``optionN`` key"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str):
        match = _OPTION_INDEX.match(value.strip().lower())
        if match:
            return int(match.group(1))
    return None


def _answer_text(value: AnswerValue) -> str:
    return "" if value is None else str(value).strip()


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    return 0.0


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def percentage_of(total: float, maximum: float) -> int:
    """Rounded percentage (half up), 0 when there is nothing to score"""
    if maximum <= 0:
        return 0
    return min(100, max(0, math.floor(total / maximum * 100 + 0.5)))


def _coerce_items(items: Any, model: Type[M], label: str) -> List[M]:
    if not isinstance(items, (list, tuple)):
        raise InvalidInputError(f"{label} must be a list, got {type(items).__name__}")

    coerced: List[M] = []
    for index, item in enumerate(items):
        if isinstance(item, model):
            coerced.append(item)
            continue
        try:
            coerced.append(model.model_validate(item))
        except ValidationError as e:
            raise InvalidInputError(f"{label}[{index}] is not a valid {model.__name__}: {e}") from e
    return coerced


class GradeService:
    """Orchestrates a grading run: objective scoring, delegated scoring, summary"""

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        fill_blank_policy: Optional[SimilarityPolicy] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.llm_service = llm or llm_service
        self.fill_blank_policy = fill_blank_policy or SimilarityPolicy(
            full_credit_threshold=self.settings.fill_blank_full_threshold,
            partial_credit_threshold=self.settings.fill_blank_partial_threshold,
            partial_credit_fraction=self.settings.fill_blank_partial_fraction,
        )

    # Objective scoring

    def grade_mcq(self, question: Question, answer: AnswerValue) -> GradingResult:
        """Exact index match, no partial credit"""
        correct_index = parse_choice_index(question.correct_answer)
        student_index = parse_choice_index(answer)
        is_correct = correct_index is not None and student_index == correct_index

        if is_correct:
            feedback = "Correct!"
        elif correct_index is None:
            feedback = "Incorrect. No answer key is set for this question."
        elif student_index is None:
            feedback = f"No answer selected. The correct answer was option {correct_index + 1}."
        else:
            feedback = f"Incorrect. The correct answer was option {correct_index + 1}."

        return GradingResult(
            question_id=question.id,
            marks_obtained=question.marks if is_correct else 0,
            max_marks=question.marks,
            feedback=feedback,
            is_correct=is_correct,
        )

    def grade_fill_blank(
        self,
        question: Question,
        answer: AnswerValue,
        policy: Optional[SimilarityPolicy] = None,
    ) -> GradingResult:
        """Similarity-based credit under ``policy`` (the service default when omitted)"""
        policy = policy or self.fill_blank_policy
        expected = _answer_text(question.correct_answer)
        submitted = _answer_text(answer)

        if not submitted:
            return GradingResult(
                question_id=question.id,
                marks_obtained=0,
                max_marks=question.marks,
                feedback=f'No answer provided. The correct answer was: "{expected}"',
                is_correct=False,
            )

        score = policy.score(submitted, expected, question.marks)
        if score.is_correct:
            feedback = "Correct!"
        elif score.partial:
            feedback = f'Partially correct. Expected: "{expected}"'
        else:
            feedback = f'Incorrect. The correct answer was: "{expected}"'

        return GradingResult(
            question_id=question.id,
            marks_obtained=score.marks,
            max_marks=question.marks,
            feedback=feedback,
            is_correct=score.is_correct,
        )

    def score_objective(
        self,
        questions: Sequence[Any],
        answers: Sequence[Any],
        policy: SimilarityPolicy = SUBMISSION_POLICY,
    ) -> ObjectiveScore:
        """Submission-time auto-score; subjective questions are left for review"""
        questions = _coerce_items(questions, Question, "questions")
        answer_map = self._answer_map(_coerce_items(answers, Answer, "answers"))

        mcq_score = 0
        fill_blank_score = 0
        pending_review = False
        for question in questions:
            answer = answer_map.get(question.id)
            if not question.type.is_objective:
                pending_review = True
            elif question.type == QuestionType.MCQ:
                mcq_score += int(self.grade_mcq(question, answer).marks_obtained)
            else:
                fill_blank_score += int(self.grade_fill_blank(question, answer, policy).marks_obtained)

        return ObjectiveScore(
            mcq_score=mcq_score,
            fill_blank_score=fill_blank_score,
            total_auto_score=mcq_score + fill_blank_score,
            pending_review=pending_review,
        )

    # Delegated scoring

    def _build_grading_prompt(self, questions: Sequence[Question], answer_map: Dict[str, AnswerValue]) -> str:
        items = []
        for question in questions:
            model_answer = _answer_text(question.correct_answer)
            items.append(PromptTemplates.SUBJECTIVE_ITEM.format(
                question_id=question.id,
                question_type=question.type.value,
                marks=question.marks,
                text=question.text,
                model_answer=f"Model Answer: {model_answer}\n" if model_answer else "",
                answer=_answer_text(answer_map.get(question.id)) or "No answer provided",
            ))
        return PromptTemplates.SUBJECTIVE_GRADING.format(
            questions_block=PromptTemplates.SUBJECTIVE_SEPARATOR.join(items)
        )

    def _result_from_grade(self, question: Question, grade: Optional[Dict[str, Any]]) -> GradingResult:
        if grade is None:
            return GradingResult(
                question_id=question.id,
                marks_obtained=0,
                max_marks=question.marks,
                feedback=UNGRADED_FEEDBACK,
                is_correct=False,
            )

        obtained = float(min(max(_to_number(grade.get("marksObtained", grade.get("marks_obtained"))), 0.0), question.marks))
        if obtained.is_integer():
            obtained = int(obtained)
        is_correct = _to_bool(grade.get("isCorrect", grade.get("is_correct")))
        feedback = grade.get("feedback")

        return GradingResult(
            question_id=question.id,
            marks_obtained=obtained,
            max_marks=question.marks,
            feedback=feedback.strip() if isinstance(feedback, str) and feedback.strip() else "Graded by AI.",
            is_correct=is_correct if is_correct is not None else obtained >= question.marks,
        )

    async def grade_subjective(
        self,
        questions: Sequence[Question],
        answer_map: Dict[str, AnswerValue],
        metrics: Optional[GradingMetrics] = None,
    ) -> List[GradingResult]:
        """
        Grade short/long answers with one delegated call.

        Unanswered questions score zero without being sent. If the call or the
        parse fails, every sent question falls back to completeness scoring.
        """
        metrics = metrics or GradingMetrics()
        results: Dict[str, GradingResult] = {}
        to_delegate: List[Question] = []

        for question in questions:
            if _answer_text(answer_map.get(question.id)):
                to_delegate.append(question)
            else:
                results[question.id] = GradingResult(
                    question_id=question.id,
                    marks_obtained=0,
                    max_marks=question.marks,
                    feedback="No answer provided.",
                    is_correct=False,
                )

        if to_delegate:
            metrics.delegated_questions = len(to_delegate)
            for result in await self._delegate(to_delegate, answer_map, metrics):
                results[result.question_id] = result

        return [results[question.id] for question in questions]

    async def _delegate(
        self,
        questions: List[Question],
        answer_map: Dict[str, AnswerValue],
        metrics: GradingMetrics,
    ) -> List[GradingResult]:
        prompt = self._build_grading_prompt(questions, answer_map)
        try:
            metrics.total_llm_calls += 1
            response = await self.llm_service.complete(
                system_message=PromptTemplates.GRADER_SYSTEM,
                user_message=prompt,
                temperature=self.settings.grading_temperature,
                max_tokens=self.settings.grading_max_tokens,
            )
            grades, truncated = parse_array(response)
        except RECOVERABLE_ERRORS as e:
            logger.error(f"AI grading failed, using completeness fallback: {e}")
            metrics.used_completeness_fallback = True
            return self.completeness_fallback(questions, answer_map)

        if truncated:
            logger.warning("AI grading response was truncated; missing grades will score zero")

        grades_by_id: Dict[str, Dict[str, Any]] = {}
        for grade in grades:
            if not isinstance(grade, dict):
                continue
            question_id = grade.get("questionId", grade.get("question_id", grade.get("id")))
            if question_id is not None:
                grades_by_id.setdefault(str(question_id), grade)

        missing = [q.id for q in questions if q.id not in grades_by_id]
        if missing:
            logger.warning(f"AI grading response had no grade for questions {missing}")

        return [self._result_from_grade(q, grades_by_id.get(q.id)) for q in questions]

    def completeness_fallback(
        self,
        questions: Sequence[Question],
        answer_map: Dict[str, AnswerValue],
    ) -> List[GradingResult]:
        """Half marks (floored) for a substantive answer, zero otherwise"""
        results = []
        for question in questions:
            substantive = len(_answer_text(answer_map.get(question.id))) > self.settings.completeness_min_length
            results.append(GradingResult(
                question_id=question.id,
                marks_obtained=math.floor(question.marks * 0.5) if substantive else 0,
                max_marks=question.marks,
                feedback=COMPLETENESS_FEEDBACK,
                is_correct=False,
            ))
        return results

    # Summary

    @staticmethod
    def template_feedback(percentage: int) -> str:
        if percentage >= 80:
            template = PromptTemplates.FEEDBACK_EXCELLENT
        elif percentage >= 60:
            template = PromptTemplates.FEEDBACK_GOOD
        elif percentage >= 40:
            template = PromptTemplates.FEEDBACK_FAIR
        else:
            template = PromptTemplates.FEEDBACK_LOW
        return template.format(percentage=percentage)

    async def generate_overall_feedback(
        self,
        total_score: float,
        max_score: int,
        results: Sequence[GradingResult],
        metrics: Optional[GradingMetrics] = None,
    ) -> str:
        metrics = metrics or GradingMetrics()
        percentage = percentage_of(total_score, max_score)
        prompt = PromptTemplates.OVERALL_FEEDBACK.format(
            total_score=f"{total_score:g}",
            max_score=max_score,
            percentage=percentage,
            correct_count=sum(1 for r in results if r.is_correct),
            total_questions=len(results),
        )

        try:
            metrics.total_llm_calls += 1
            return await self.llm_service.complete(
                system_message=PromptTemplates.COACH_SYSTEM,
                user_message=prompt,
                temperature=self.settings.feedback_temperature,
                max_tokens=self.settings.feedback_max_tokens,
            )
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Feedback generation failed, using template: {e}")
            metrics.used_template_feedback = True
            return self.template_feedback(percentage)

    # Orchestration

    @staticmethod
    def _answer_map(answers: Sequence[Answer]) -> Dict[str, AnswerValue]:
        answer_map: Dict[str, AnswerValue] = {}
        for answer in answers:
            # first answer per question wins
            answer_map.setdefault(answer.question_id, answer.answer)
        return answer_map

    @staticmethod
    async def _report(on_progress: Optional[ProgressCallback], stage: GradingStage) -> None:
        logger.debug(f"Grading stage: {stage.name}")
        if on_progress is None:
            return
        try:
            result = on_progress(stage.value)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # advisory only
            logger.warning(f"Progress callback failed at {stage.name}: {e}")

    async def grade(
        self,
        questions: Sequence[Any],
        answers: Sequence[Any],
        on_progress: Optional[ProgressCallback] = None,
    ) -> GradingResponse:
        """
        Grade a set of answers against their questions.

        Args:
            questions: Question models or dicts in wire format
            answers: Answer models or dicts; unanswered questions are simply absent
            on_progress: Optional callback receiving a short stage label

        Returns:
            Complete GradingResponse with one result per question, in question order

        Raises:
            InvalidInputError: inputs are not lists, hold invalid items, or repeat a question id
        """
        start_time = time.time()
        metrics = GradingMetrics()

        questions = _coerce_items(questions, Question, "questions")
        answers = _coerce_items(answers, Answer, "answers")
        seen = set()
        for question in questions:
            if question.id in seen:
                raise InvalidInputError(f"Duplicate question id: {question.id}")
            seen.add(question.id)
        answer_map = self._answer_map(answers)

        logger.info(f"Starting grading run for {len(questions)} questions, {len(answer_map)} answered")

        await self._report(on_progress, GradingStage.SCORING_OBJECTIVE)
        results: Dict[str, GradingResult] = {}
        subjective: List[Question] = []
        for question in questions:
            answer = answer_map.get(question.id)
            if not question.type.is_objective:
                subjective.append(question)
            elif question.type == QuestionType.MCQ:
                results[question.id] = self.grade_mcq(question, answer)
            else:
                results[question.id] = self.grade_fill_blank(question, answer)

        await self._report(on_progress, GradingStage.DELEGATING_SUBJECTIVE)
        if subjective:
            for result in await self.grade_subjective(subjective, answer_map, metrics):
                results[result.question_id] = result

        ordered = [results[question.id] for question in questions]
        total_score = sum(r.marks_obtained for r in ordered)
        max_score = sum(r.max_marks for r in ordered)

        await self._report(on_progress, GradingStage.SUMMARIZING)
        overall_feedback = await self.generate_overall_feedback(total_score, max_score, ordered, metrics)

        response = GradingResponse(
            total_score=total_score,
            max_score=max_score,
            percentage=percentage_of(total_score, max_score),
            results=ordered,
            overall_feedback=overall_feedback,
        )

        metrics.processing_time_ms = (time.time() - start_time) * 1000
        await self._report(on_progress, GradingStage.COMPLETE)
        logger.info(
            f"Grading completed in {metrics.processing_time_ms:.2f}ms with {metrics.total_llm_calls} LLM calls: "
            f"{total_score:g}/{max_score} ({response.percentage}%)"
            f"{' [completeness fallback]' if metrics.used_completeness_fallback else ''}"
            f"{' [template feedback]' if metrics.used_template_feedback else ''}"
        )
        return response
