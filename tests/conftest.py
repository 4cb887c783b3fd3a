import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from questionbank.services.learning.domain.entities import (
    CISSPDomain, Difficulty, Question, QualityStats, question_id_for
)
from questionbank.shared.database.repositories import QuestionRepository


# ==============================================================================
#  FAKE ASYNCPG (graba SQL + argumentos, como un D1/pool de mentira)
# ==============================================================================

class _AsyncNullContext:
    async def __aenter__(self):
        return None

    async def __aexit__(self, *exc):
        return False


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def fetchrow(self, query, *args):
        self.pool.calls.append({"method": "fetchrow", "sql": query, "args": list(args)})
        return self.pool.resolve_row(query, args)

    async def execute(self, query, *args):
        self.pool.calls.append({"method": "execute", "sql": query, "args": list(args)})
        return self.pool.execute_status

    async def executemany(self, query, args):
        self.pool.calls.append({"method": "executemany", "sql": query, "args": list(args)})

    async def fetchval(self, query, *args):
        self.pool.calls.append({"method": "fetchval", "sql": query, "args": list(args)})
        return 1

    def transaction(self):
        self.pool.transactions += 1
        return _AsyncNullContext()


class _Acquire:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def __aenter__(self):
        if self.pool.fail:
            raise ConnectionRefusedError("database unreachable")
        return FakeConnection(self.pool)

    async def __aexit__(self, *exc):
        return False


class FakePool:
    """
    rows_by_topic: filas devueltas por las consultas del banco, indexadas por sub_topic.
    returning_row: fila devuelta por UPDATE ... RETURNING / SELECT de estadísticas.
    """

    def __init__(self, rows_by_topic: Optional[Dict[str, dict]] = None, returning_row: Optional[dict] = None,
                 execute_status: str = "UPDATE 1", fail: bool = False):
        self.rows_by_topic = rows_by_topic or {}
        self.returning_row = returning_row
        self.execute_status = execute_status
        self.fail = fail
        self.calls: List[dict] = []
        self.transactions = 0

    def acquire(self):
        return _Acquire(self)

    def resolve_row(self, query, args):
        if "sub_topic = $2" in query:
            return self.rows_by_topic.get(args[1])
        return self.returning_row


def make_row(topic: str, row_id: str, **overrides) -> dict:
    row = {
        "id": row_id,
        "domain": CISSPDomain.SECURITY_OPERATIONS.value,
        "sub_topic": topic,
        "difficulty": Difficulty.MEDIUM.value,
        "question": f"Question {row_id}",
        "options": '["A", "B", "C", "D"]',
        "correct_answer_index": 0,
        "explanation": "Explanation",
        "quality_score": 1.0,
        "times_served": 0,
        "times_answered": 0,
        "correct_count": 0,
        "correct_rate": 0.0,
    }
    row.update(overrides)
    return row


# ==============================================================================
#  REPOSITORIO EN MEMORIA (misma semántica que el SQL)
# ==============================================================================

class InMemoryQuestionRepository(QuestionRepository):
    def __init__(self, failing: Sequence[str] = (), failing_topics: Sequence[str] = (),
                 cancelled_topics: Sequence[str] = ()):
        self.rows: Dict[str, Question] = {}
        self.failing = set(failing)
        self.failing_topics = set(failing_topics)
        self.cancelled_topics = set(cancelled_topics)
        self.score_writes: List[float] = []

    def _maybe_fail(self, operation: str):
        if operation in self.failing:
            raise ConnectionError(f"{operation}: database unreachable")

    async def ensure_schema(self) -> None:
        self._maybe_fail("ensure_schema")

    async def find_least_served(self, difficulty, topic, min_quality, excluded_question_texts=()):
        self._maybe_fail("find_least_served")
        if topic in self.failing_topics:
            raise TimeoutError(f"lookup timeout for {topic}")
        if topic in self.cancelled_topics:
            raise asyncio.CancelledError()
        matches = [
            q for q in self.rows.values()
            if q.difficulty == difficulty
            and q.sub_topic == topic
            and q.quality_score >= min_quality
            and q.question not in excluded_question_texts
        ]
        if not matches:
            return None
        return min(matches, key=lambda q: q.times_served)

    async def insert_if_absent(self, questions) -> None:
        self._maybe_fail("insert_if_absent")
        for q in questions:
            self.rows.setdefault(q.id, q.model_copy())

    async def increment_served(self, ids) -> None:
        self._maybe_fail("increment_served")
        for question_id in ids:
            if question_id in self.rows:
                row = self.rows[question_id]
                self.rows[question_id] = row.model_copy(update={"times_served": row.times_served + 1})

    async def record_answer(self, question_id, is_correct):
        self._maybe_fail("record_answer")
        row = self.rows.get(question_id)
        if row is None:
            return None
        answered = row.times_answered + 1
        correct = row.correct_count + (1 if is_correct else 0)
        row = row.model_copy(update={
            "times_answered": answered,
            "correct_count": correct,
            "correct_rate": correct / answered,
        })
        self.rows[question_id] = row
        return self._stats(row)

    async def get_quality_stats(self, question_id):
        self._maybe_fail("get_quality_stats")
        row = self.rows.get(question_id)
        return self._stats(row) if row else None

    async def update_quality_score(self, question_id, new_score, expected_score) -> bool:
        self._maybe_fail("update_quality_score")
        row = self.rows.get(question_id)
        if row is None or row.quality_score != expected_score:
            return False
        self.rows[question_id] = row.model_copy(update={"quality_score": new_score})
        self.score_writes.append(new_score)
        return True

    @staticmethod
    def _stats(row: Question) -> QualityStats:
        return QualityStats(
            difficulty=row.difficulty,
            times_answered=row.times_answered,
            correct_rate=row.correct_rate,
            quality_score=row.quality_score,
        )


def make_question(question_id: str, topic: str = "t1", difficulty: Difficulty = Difficulty.MEDIUM, **overrides) -> Question:
    fields = {
        "id": question_id,
        "domain": CISSPDomain.SECURITY_OPERATIONS,
        "sub_topic": topic,
        "difficulty": difficulty,
        "question": f"Question {question_id}",
        "options": ["A", "B", "C", "D"],
        "correct_answer_index": 0,
        "explanation": "Explanation",
    }
    fields.update(overrides)
    return Question(**fields)


def make_hashed_question(text: str, topic: str, difficulty: Difficulty = Difficulty.MEDIUM) -> Question:
    return make_question(question_id_for(text), topic=topic, difficulty=difficulty, question=text)


# ==============================================================================
#  FIXTURES
# ==============================================================================

@pytest.fixture
def question_factory():
    return make_question

@pytest.fixture
def hashed_question_factory():
    return make_hashed_question

@pytest.fixture
def row_factory():
    return make_row

@pytest.fixture
def fake_pool_factory():
    return FakePool

@pytest.fixture
def memory_repo():
    return InMemoryQuestionRepository()

@pytest.fixture
def memory_repo_factory():
    return InMemoryQuestionRepository
