"""
Pydantic models for the Nexus Grader
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionType(str, Enum):
    """Supported question kinds"""
    MCQ = "mcq"
    FILL_BLANK = "fillBlank"
    SHORT_ANSWER = "shortAnswer"
    LONG_ANSWER = "longAnswer"

    @property
    def is_objective(self) -> bool:
        return self in (QuestionType.MCQ, QuestionType.FILL_BLANK)


class Question(WireModel):
    """A published test question, consumed read-only by the grader"""
    id: str = Field(..., min_length=1, description="Question identifier, unique within a test")
    type: QuestionType = Field(..., description="Question kind")
    text: str = Field(..., description="The question prompt")
    options: Optional[List[str]] = Field(None, description="Ordered choices (multiple-choice only)")
    correct_answer: Optional[Union[int, str]] = Field(
        None, description="Choice index, expected text, or model answer depending on kind"
    )
    marks: int = Field(..., gt=0, description="Points available for this question")


class Answer(WireModel):
    """A submitted answer for one question"""
    question_id: str = Field(..., description="Question this answer belongs to")
    answer: Optional[Union[int, str]] = Field(None, description="Selected choice index or free text")


class GradingResult(WireModel):
    """Grading outcome for a single question"""
    question_id: str = Field(..., description="Graded question")
    marks_obtained: float = Field(..., ge=0, description="Marks awarded")
    max_marks: int = Field(..., gt=0, description="Marks available, copied from the question")
    feedback: str = Field("", description="Short feedback for the student")
    is_correct: bool = Field(False, description="Whether the answer is considered correct")

    @model_validator(mode="after")
    def check_marks(self):
        if self.marks_obtained > self.max_marks:
            raise ValueError("marks_obtained cannot exceed max_marks")
        return self


class GradingResponse(WireModel):
    """Aggregate result of one grading run"""
    total_score: float = Field(..., ge=0, description="Sum of marks obtained")
    max_score: int = Field(..., ge=0, description="Sum of marks available")
    percentage: int = Field(..., ge=0, le=100, description="Rounded percentage, 0 when max_score is 0")
    results: List[GradingResult] = Field(default_factory=list, description="Per-question results in question order")
    overall_feedback: str = Field("", description="Short summary for the student")
    graded_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def check_totals(self):
        if abs(sum(r.marks_obtained for r in self.results) - self.total_score) > 1e-6:
            raise ValueError("total_score must equal the sum of marks obtained")
        if sum(r.max_marks for r in self.results) != self.max_score:
            raise ValueError("max_score must equal the sum of max marks")
        if self.total_score > self.max_score:
            raise ValueError("total_score cannot exceed max_score")
        return self


class ObjectiveScore(WireModel):
    """Submission-time auto-score for objective questions"""
    mcq_score: int = Field(0, ge=0)
    fill_blank_score: int = Field(0, ge=0)
    total_auto_score: int = Field(0, ge=0)
    pending_review: bool = Field(False, description="True when subjective questions still need grading")


class GradingRequest(WireModel):
    """Request model for grading a set of answers"""
    questions: List[Question] = Field(..., description="Questions of the test")
    answers: List[Answer] = Field(default_factory=list, description="Submitted answers; unanswered questions are omitted")


class PracticeGradingRequest(GradingRequest):
    """Grade a practice test and store the result"""
    student_id: str = Field(..., min_length=1)
    student_name: str = Field("Student")
    test_id: str = Field(..., min_length=1)
    test_title: str = Field(...)
    subject_name: str = Field("General")


class PracticeSubmission(WireModel):
    """Stored practice submission"""
    id: Optional[str] = None
    student_id: str
    student_name: str
    test_id: str
    test_title: str
    subject_name: str = "General"
    answers: Dict[str, Union[int, str, None]] = Field(default_factory=dict)
    grading: GradingResponse
    practice_streak: int = 1
    submitted_at: Optional[datetime] = None


class PracticeStats(WireModel):
    """Running practice totals for one student"""
    total_practice_tests: int = 0
    total_questions_attempted: int = 0
    total_correct_answers: int = 0
    average_accuracy: int = 0
    current_streak: int = 0
    last_practice_date: Optional[datetime] = None


class Chapter(WireModel):
    """Chapter material used as the source for generated questions"""
    id: Optional[str] = None
    title: str
    content: str = ""


class QuestionGenerationRequest(WireModel):
    """Request model for AI question generation"""
    subject_name: str = Field(..., description="Subject of the test")
    chapters: List[Chapter] = Field(..., description="Selected chapters")
    mcq_count: int = Field(5, ge=0, le=20)
    blank_count: int = Field(5, ge=0, le=20)
    short_count: int = Field(3, ge=0, le=20)
    long_count: int = Field(2, ge=0, le=20)
    mcq_marks: int = Field(1, gt=0)
    blank_marks: int = Field(1, gt=0)
    short_marks: int = Field(2, gt=0)
    long_marks: int = Field(5, gt=0)
    total_marks: Optional[int] = Field(None, gt=0, description="Marks budget of the test")
    current_question_marks: int = Field(0, ge=0, description="Marks already used by existing questions")

    @property
    def question_count(self) -> int:
        return self.mcq_count + self.blank_count + self.short_count + self.long_count

    @property
    def calculated_marks(self) -> int:
        return (
            self.mcq_count * self.mcq_marks
            + self.blank_count * self.blank_marks
            + self.short_count * self.short_marks
            + self.long_count * self.long_marks
        )


class ParseRequest(WireModel):
    """Raw provider text to run through JSON recovery"""
    raw: str


class ParseResponse(WireModel):
    """Items recovered from raw provider text"""
    items: List[Any]
    truncated: bool
