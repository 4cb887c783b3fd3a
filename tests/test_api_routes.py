import pytest
from fastapi.testclient import TestClient

from questionbank.api.dependencies import get_batch_assembler, get_question_store
from questionbank.main import app
from questionbank.services.ai.client import GenerationBlockedError, GenerationConfigError
from questionbank.services.learning.domain.entities import Difficulty, GenerationModel
from questionbank.services.learning.logic.question_store import QuestionStore


class StubAssembler:
    """Sustituye al ensamblador real: sin IA, sin DB, sin tareas en segundo plano."""

    def __init__(self, questions=None, error: Exception = None):
        self.questions = questions or []
        self.error = error
        self.calls = []

    async def assemble_batch(self, count, difficulty, model, previous_question_texts=(), covered_topics=()):
        self.calls.append({
            "count": count,
            "difficulty": difficulty,
            "model": model,
            "previous": list(previous_question_texts),
            "covered": list(covered_topics),
        })
        if self.error:
            raise self.error
        return self.questions[:count]


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_assembler(assembler):
    app.dependency_overrides[get_batch_assembler] = lambda: assembler
    return assembler


# ==============================================================================
#  POST /api/questions
# ==============================================================================

def test_questions_returns_camel_case_flashcards(client, question_factory):
    _use_assembler(StubAssembler([question_factory("q1", topic="Risk Analysis", times_served=4)]))

    response = client.post("/api/questions", json={"count": 1, "difficulty": "Medium"})

    assert response.status_code == 200
    card = response.json()["questions"][0]
    assert card["id"] == "q1"
    assert card["subTopic"] == "Risk Analysis"
    assert card["correctAnswerIndex"] == 0
    assert card["difficulty"] == "Medium"
    # Las métricas internas del banco no salen al cliente
    assert "timesServed" not in card
    assert "qualityScore" not in card


@pytest.mark.parametrize("requested, expected", [(50, 20), (0, 10), (-3, 1), (7, 7), (None, 10)])
def test_questions_count_is_clamped(client, requested, expected):
    assembler = _use_assembler(StubAssembler())
    body = {} if requested is None else {"count": requested}

    response = client.post("/api/questions", json=body)

    assert response.status_code == 200
    assert assembler.calls[0]["count"] == expected


def test_questions_defaults(client):
    assembler = _use_assembler(StubAssembler())

    client.post("/api/questions", json={})

    call = assembler.calls[0]
    assert call["difficulty"] == Difficulty.MEDIUM
    assert call["model"] == GenerationModel.GEMINI_FLASH_LITE
    assert call["previous"] == []
    assert call["covered"] == []


def test_questions_difficulty_is_case_insensitive(client):
    assembler = _use_assembler(StubAssembler())

    response = client.post("/api/questions", json={"difficulty": "hard"})

    assert response.status_code == 200
    assert assembler.calls[0]["difficulty"] == Difficulty.HARD


def test_questions_null_difficulty_defaults_to_medium(client):
    assembler = _use_assembler(StubAssembler())

    response = client.post("/api/questions", json={"difficulty": None})

    assert response.status_code == 200
    assert assembler.calls[0]["difficulty"] == Difficulty.MEDIUM


@pytest.mark.parametrize("body", [
    {"difficulty": "Extreme"},
    {"model": "not-a-model"},
    {"count": "many"},
    {"previousQuestions": "not a list"},
])
def test_questions_malformed_input_is_400(client, body):
    assembler = _use_assembler(StubAssembler())

    response = client.post("/api/questions", json=body)

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Petición inválida")
    assert assembler.calls == []


def test_questions_history_is_trimmed_to_most_recent(client):
    assembler = _use_assembler(StubAssembler())
    previous = [f"Q{i}" for i in range(30)]
    covered = [f"T{i}" for i in range(250)]

    client.post("/api/questions", json={
        "model": "gpt-4o", "previousQuestions": previous, "coveredTopics": covered,
    })

    call = assembler.calls[0]
    assert call["model"] == GenerationModel.GPT_4O
    assert call["previous"] == previous[-20:]
    assert call["covered"] == covered[-200:]


def test_questions_generation_failure_is_502(client):
    _use_assembler(StubAssembler(error=GenerationBlockedError("safety")))

    response = client.post("/api/questions", json={"count": 3})

    assert response.status_code == 502
    assert "detail" in response.json()


def test_questions_config_error_is_500(client):
    _use_assembler(StubAssembler(error=GenerationConfigError("missing key")))

    response = client.post("/api/questions", json={"count": 3})

    assert response.status_code == 500
    # El mensaje de la causa no se filtra al cliente
    assert "missing key" not in response.text


def test_questions_unexpected_error_is_500(client):
    _use_assembler(StubAssembler(error=RuntimeError("kaboom")))

    response = client.post("/api/questions", json={})

    assert response.status_code == 500
    assert "kaboom" not in response.text


# ==============================================================================
#  POST /api/feedback
# ==============================================================================

def test_feedback_without_bank_still_succeeds(client):
    app.dependency_overrides[get_question_store] = lambda: QuestionStore(None)

    response = client.post("/api/feedback", json={"questionId": "abc123", "isCorrect": True})

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_feedback_updates_the_bank(client, memory_repo, question_factory):
    memory_repo.rows["q1"] = question_factory("q1")
    app.dependency_overrides[get_question_store] = lambda: QuestionStore(memory_repo)

    response = client.post("/api/feedback", json={"questionId": "q1", "isCorrect": False})

    assert response.status_code == 200
    assert memory_repo.rows["q1"].times_answered == 1
    assert memory_repo.rows["q1"].correct_count == 0


def test_feedback_with_broken_bank_succeeds(client, memory_repo_factory):
    repo = memory_repo_factory(failing=["record_answer"])
    app.dependency_overrides[get_question_store] = lambda: QuestionStore(repo)

    response = client.post("/api/feedback", json={"questionId": "q1", "isCorrect": True})

    assert response.json() == {"success": True}


@pytest.mark.parametrize("body", [
    {"isCorrect": True},
    {"questionId": "q1"},
    {"questionId": "", "isCorrect": True},
    {"questionId": "q1", "isCorrect": "yes"},
])
def test_feedback_malformed_input_is_400(client, body):
    app.dependency_overrides[get_question_store] = lambda: QuestionStore(None)

    response = client.post("/api/feedback", json=body)

    assert response.status_code == 400


# ==============================================================================
#  HEALTH
# ==============================================================================

def test_health_without_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["question_bank"] == "disabled"
