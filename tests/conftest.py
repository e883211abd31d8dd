"""
Shared fixtures for the Nexus Grader tests
"""
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from nexus_grader.models.schemas import Answer, Question, QuestionType
from nexus_grader.services.credential_service import StaticCredentialSource
from nexus_grader.services.llm_service import AllProvidersExhaustedError, LLMService
from nexus_grader.utils.config import Settings
from nexus_grader.utils.database_manager import DatabaseManager


class FakeLLM:
    """Scripted stand-in for LLMService; an empty script behaves like a dead chain"""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_message, user_message, temperature=None, max_tokens=None) -> str:
        self.calls.append({
            "system_message": system_message,
            "user_message": user_message,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise AllProvidersExhaustedError([])
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLM]:
    return FakeLLM


@pytest.fixture
def make_provider(test_settings) -> Callable[..., LLMService]:
    """Build an LLMService whose HTTP traffic is answered by ``handler``"""

    def factory(handler, models=("model-a", "model-b", "model-c"), api_key="sk-test") -> LLMService:
        return LLMService(
            models=list(models),
            credentials=StaticCredentialSource(api_key),
            settings=test_settings,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def requested_model() -> Callable[[httpx.Request], str]:
    def read(request: httpx.Request) -> str:
        return json.loads(request.content)["model"]
    return read


@pytest.fixture
def db_manager():
    manager = DatabaseManager("sqlite://")
    yield manager
    manager.close()


@pytest.fixture
def mixed_questions() -> List[Question]:
    return [
        Question(id="q1", type=QuestionType.MCQ, text="2 + 2 = ?", options=["3", "4", "5", "6"],
                 correct_answer=1, marks=1),
        Question(id="q2", type=QuestionType.FILL_BLANK, text="The capital of France is ____.",
                 correct_answer="Paris", marks=2),
        Question(id="q3", type=QuestionType.SHORT_ANSWER, text="What is photosynthesis?",
                 correct_answer="Plants turning light into chemical energy", marks=4),
        Question(id="q4", type=QuestionType.LONG_ANSWER, text="Explain the water cycle.", marks=6),
    ]


@pytest.fixture
def mixed_answers() -> List[Answer]:
    return [
        Answer(question_id="q1", answer=1),
        Answer(question_id="q2", answer=" paris "),
        Answer(question_id="q3", answer="Plants use sunlight to make glucose from water and CO2."),
        Answer(question_id="q4", answer="Water evaporates, condenses into clouds and falls as rain."),
    ]
