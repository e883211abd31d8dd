"""
API Tests for the Nexus Grader routers
"""
import pytest
from fastapi.testclient import TestClient

from nexus_grader.api.API import app
from nexus_grader.api.routers import grade_api, llm_api
from nexus_grader.services.grade_service import GradeService
from nexus_grader.services.question_service import QuestionGenerator
from nexus_grader.services.submission_service import SubmissionService


QUESTIONS = [
    {"id": "q1", "type": "mcq", "text": "2 + 2 = ?", "options": ["3", "4"], "correctAnswer": 1, "marks": 1},
    {"id": "q2", "type": "fillBlank", "text": "Capital of France?", "correctAnswer": "Paris", "marks": 2},
]
ANSWERS = [{"questionId": "q1", "answer": 1}, {"questionId": "q2", "answer": "paris"}]


@pytest.fixture
def client(fake_llm, test_settings, db_manager):
    """Test client with scripted LLM services and an in-memory store"""
    previous_grade = (grade_api.grade_service, grade_api.submission_service)
    previous_llm = (llm_api.provider, llm_api.question_generator)

    llm = fake_llm()
    grade_api.set_services(GradeService(llm=llm, settings=test_settings), SubmissionService(db_manager))
    llm_api.set_services(llm_api.provider, QuestionGenerator(llm=llm, settings=test_settings))

    # no context manager: the lifespan would replace the services above
    yield TestClient(app), llm

    grade_api.set_services(*previous_grade)
    llm_api.set_services(*previous_llm)


class TestRoot:

    def test_root(self, client):
        test_client, _ = client
        response = test_client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "Nexus Grader"


class TestGradeEndpoints:

    def test_grade(self, client):
        test_client, llm = client
        llm.responses.append("Great job!")

        response = test_client.post("/grade", json={"questions": QUESTIONS, "answers": ANSWERS})

        assert response.status_code == 200
        data = response.json()
        assert data["totalScore"] == 3
        assert data["maxScore"] == 3
        assert data["percentage"] == 100
        assert data["overallFeedback"] == "Great job!"
        assert [r["questionId"] for r in data["results"]] == ["q1", "q2"]

    def test_grade_survives_dead_provider_chain(self, client):
        test_client, _ = client
        response = test_client.post("/grade", json={"questions": QUESTIONS, "answers": []})
        assert response.status_code == 200
        assert response.json()["overallFeedback"]

    def test_duplicate_question_ids(self, client):
        test_client, _ = client
        response = test_client.post("/grade", json={"questions": QUESTIONS + QUESTIONS[:1], "answers": []})
        assert response.status_code == 400

    def test_malformed_request(self, client):
        test_client, _ = client
        response = test_client.post("/grade", json={"questions": [{"id": "q1"}]})
        assert response.status_code == 422

    def test_auto_score(self, client):
        test_client, llm = client
        questions = QUESTIONS + [{"id": "q3", "type": "shortAnswer", "text": "Why?", "marks": 3}]

        response = test_client.post("/grade/auto-score", json={"questions": questions, "answers": ANSWERS})

        assert response.status_code == 200
        assert response.json() == {
            "mcqScore": 1, "fillBlankScore": 2, "totalAutoScore": 3, "pendingReview": True
        }
        assert llm.calls == []


class TestPracticeEndpoints:

    def practice_payload(self):
        return {
            "studentId": "stu-1",
            "studentName": "Student One",
            "testId": "t1",
            "testTitle": "Warm-up",
            "questions": QUESTIONS,
            "answers": ANSWERS,
        }

    def test_practice_round_trip(self, client):
        test_client, _ = client

        graded = test_client.post("/grade/practice", json=self.practice_payload())
        assert graded.status_code == 200
        submission_id = graded.json()["submissionId"]
        assert graded.json()["grading"]["totalScore"] == 3

        history = test_client.get("/grade/practice/stu-1")
        assert history.status_code == 200
        assert [s["id"] for s in history.json()] == [submission_id]
        assert history.json()[0]["subjectName"] == "General"

        stats = test_client.get("/grade/practice/stu-1/stats")
        assert stats.status_code == 200
        assert stats.json()["totalPracticeTests"] == 1
        assert stats.json()["averageAccuracy"] == 100
        assert stats.json()["currentStreak"] == 1

    def test_stats_for_unknown_student(self, client):
        test_client, _ = client
        response = test_client.get("/grade/practice/nobody/stats")
        assert response.status_code == 200
        assert response.json()["totalPracticeTests"] == 0

    def test_store_unavailable(self, client):
        test_client, _ = client
        grade_api.set_services(grade_api.grade_service, None)
        response = test_client.post("/grade/practice", json=self.practice_payload())
        assert response.status_code == 503


class TestLLMEndpoints:

    def test_parse(self, client):
        test_client, _ = client
        response = test_client.post("/llm/parse", json={"raw": 'Here you go:\n```json\n[{"type":"mcq"}]\n```'})
        assert response.status_code == 200
        assert response.json() == {"items": [{"type": "mcq"}], "truncated": False}

    def test_parse_garbage(self, client):
        test_client, _ = client
        response = test_client.post("/llm/parse", json={"raw": "no json at all"})
        assert response.status_code == 422

    def test_generate_questions(self, client):
        test_client, llm = client
        llm.responses.append('[{"type": "short", "text": "What is a cell?"}]')

        response = test_client.post("/llm/questions/generate", json={
            "subjectName": "Biology",
            "chapters": [{"title": "Cells", "content": "Cells are the basic unit of life."}],
            "mcqCount": 0, "blankCount": 0, "shortCount": 1, "longCount": 0,
        })

        assert response.status_code == 200
        questions = response.json()
        assert len(questions) == 1
        assert questions[0]["type"] == "shortAnswer"
        assert questions[0]["marks"] == 2

    def test_generate_questions_failure(self, client):
        test_client, _ = client
        response = test_client.post("/llm/questions/generate", json={
            "subjectName": "Biology",
            "chapters": [{"title": "Cells", "content": "Cells are the basic unit of life."}],
        })
        assert response.status_code == 422

    def test_provider_info(self, client):
        test_client, _ = client
        response = test_client.get("/llm/info")
        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "openrouter"
        assert isinstance(data["models"], list)
        assert "token_configured" in data
