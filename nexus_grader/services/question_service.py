"""
Question Service for the Nexus Grader
Generates test questions from chapter content through the LLM fallback chain
"""
import logging
import math
import time
from typing import Any, Dict, List, Optional

from ..models.schemas import Question, QuestionGenerationRequest, QuestionType
from ..utils.config import Settings, settings as default_settings
from ..utils.json_recovery import JSONRecoveryError, parse_array
from ..utils.prompt_templates import PromptTemplates
from .credential_service import MissingCredentialsError
from .llm_service import LLMError, LLMService, llm_service


logger = logging.getLogger(__name__)

# Generator type names first, grading names accepted as-is
TYPE_ALIASES: Dict[str, QuestionType] = {
    "mcq": QuestionType.MCQ,
    "blank": QuestionType.FILL_BLANK,
    "short": QuestionType.SHORT_ANSWER,
    "long": QuestionType.LONG_ANSWER,
    **{t.value: t for t in QuestionType},
}

DEFAULT_MARKS: Dict[QuestionType, int] = {
    QuestionType.MCQ: 1,
    QuestionType.FILL_BLANK: 1,
    QuestionType.SHORT_ANSWER: 2,
    QuestionType.LONG_ANSWER: 5,
}

DEFAULT_OPTIONS = ["Option A", "Option B", "Option C", "Option D"]


class QuestionGenerationError(Exception):
    """Question generation could not produce any usable questions"""
    pass


def _counts_block(request: QuestionGenerationRequest) -> str:
    lines = []
    if request.mcq_count > 0:
        lines.append(
            f"- {request.mcq_count} Multiple Choice Questions (MCQ) with 4 options each, "
            f"{request.mcq_marks} mark(s) each"
        )
    if request.blank_count > 0:
        lines.append(f"- {request.blank_count} Fill in the Blank questions, {request.blank_marks} mark(s) each")
    if request.short_count > 0:
        lines.append(f"- {request.short_count} Short Answer questions, {request.short_marks} mark(s) each")
    if request.long_count > 0:
        lines.append(f"- {request.long_count} Long Answer questions, {request.long_marks} mark(s) each")
    return "\n".join(lines)


def normalize_generated(item: Any, question_id: str) -> Optional[Question]:
    """Turn one generated item into a Question, or None when it is unusable"""
    if not isinstance(item, dict):
        return None
    text = item.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    question_type = TYPE_ALIASES.get(item.get("type")) if isinstance(item.get("type"), str) else None
    if question_type is None:
        return None

    marks = item.get("marks")
    if isinstance(marks, bool) or not isinstance(marks, (int, float)) or not math.isfinite(marks):
        marks = DEFAULT_MARKS[question_type]
    marks = int(marks)
    if marks < 1:
        marks = DEFAULT_MARKS[question_type]

    options = None
    correct_answer = None
    raw_answer = item.get("correctAnswer", item.get("correct_answer"))

    if question_type == QuestionType.MCQ:
        raw_options = item.get("options")
        if isinstance(raw_options, list) and len(raw_options) >= 2:
            options = [str(opt).strip() for opt in raw_options if str(opt).strip()]
            while len(options) < 4:
                options.append(f"Option {len(options) + 1}")
        else:
            options = list(DEFAULT_OPTIONS)
        valid_key = isinstance(raw_answer, (int, str)) and not isinstance(raw_answer, bool) and raw_answer != ""
        correct_answer = raw_answer if valid_key else "option0"
    elif question_type == QuestionType.FILL_BLANK:
        correct_answer = str(raw_answer).strip() if raw_answer not in (None, "") else ""

    return Question(
        id=question_id,
        type=question_type,
        text=text.strip(),
        options=options,
        correct_answer=correct_answer,
        marks=marks,
    )


class QuestionGenerator:
    """Builds generation prompts and validates what the model sends back"""

    def __init__(self, llm: Optional[LLMService] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.llm_service = llm or llm_service

    def validate_request(self, request: QuestionGenerationRequest) -> str:
        """Check the request and return the chapter content block"""
        if request.question_count == 0:
            raise QuestionGenerationError("Please specify at least one question to generate.")

        if request.total_marks is not None:
            available = request.total_marks - request.current_question_marks
            if request.calculated_marks > available:
                raise QuestionGenerationError(
                    f"Generated questions would use {request.calculated_marks} marks, "
                    f"but only {available} are available."
                )

        content = "\n\n---\n\n".join(
            f"Chapter: {chapter.title}\nContent: {chapter.content}"
            for chapter in request.chapters
            if chapter.content.strip()
        )
        if not content:
            raise QuestionGenerationError("No chapter content available. Please select chapters with content.")
        return content

    def build_prompt(self, request: QuestionGenerationRequest, chapter_content: str) -> str:
        return PromptTemplates.QUESTION_GENERATION.format(
            subject_name=request.subject_name,
            chapter_titles=", ".join(chapter.title for chapter in request.chapters),
            chapter_content=chapter_content,
            counts_block=_counts_block(request),
            mcq_marks=request.mcq_marks,
            blank_marks=request.blank_marks,
            short_marks=request.short_marks,
            long_marks=request.long_marks,
        )

    async def generate(self, request: QuestionGenerationRequest) -> List[Question]:
        """
        Generate questions for the selected chapters.

        Raises:
            QuestionGenerationError: invalid request, provider failure, unparseable
                output, or no valid questions in the output
        """
        chapter_content = self.validate_request(request)
        prompt = self.build_prompt(request, chapter_content)
        logger.info(
            f"Generating {request.question_count} questions ({request.calculated_marks} marks) "
            f"for {request.subject_name}"
        )

        try:
            response = await self.llm_service.complete(
                system_message=PromptTemplates.GENERATOR_SYSTEM,
                user_message=prompt,
                temperature=self.settings.generation_temperature,
                max_tokens=self.settings.generation_max_tokens,
            )
        except (LLMError, MissingCredentialsError) as e:
            logger.error(f"Question generation request failed: {e}")
            raise QuestionGenerationError(f"Failed to generate questions: {e}") from e

        try:
            items, truncated = parse_array(response)
        except JSONRecoveryError as e:
            logger.error(f"Could not parse generated questions: {e}")
            raise QuestionGenerationError(
                "Failed to parse AI response. The AI returned an invalid format. Please try again."
            ) from e

        if truncated:
            logger.warning("Generated question list looked truncated; some questions may be missing")

        stamp = int(time.time() * 1000)
        questions = []
        for i, item in enumerate(items):
            question = normalize_generated(item, f"ai-{stamp}-{i}")
            if question is None:
                logger.debug(f"Skipping invalid generated item {i}")
                continue
            questions.append(question)

        if not questions:
            raise QuestionGenerationError("No valid questions were generated. Please try again.")

        logger.info(f"Generated {len(questions)} questions ({sum(q.marks for q in questions)} marks)")
        return questions
