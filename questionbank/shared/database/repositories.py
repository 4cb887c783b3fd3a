from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
import json

import asyncpg

from questionbank.services.learning.domain.entities import (
    CISSPDomain, Difficulty, Question, QualityStats
)

# --- 1. ESQUEMA ---

QUESTIONS_DDL = """
    CREATE TABLE IF NOT EXISTS questions (
        id TEXT PRIMARY KEY,
        domain TEXT NOT NULL,
        sub_topic TEXT NOT NULL DEFAULT '',
        difficulty TEXT NOT NULL,
        question TEXT NOT NULL,
        options TEXT NOT NULL,
        correct_answer_index INTEGER NOT NULL,
        explanation TEXT NOT NULL,
        quality_score DOUBLE PRECISION NOT NULL DEFAULT 1.0
            CHECK (quality_score >= 0.1 AND quality_score <= 2.0),
        times_served INTEGER NOT NULL DEFAULT 0,
        times_answered INTEGER NOT NULL DEFAULT 0,
        correct_count INTEGER NOT NULL DEFAULT 0,
        correct_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CHECK (correct_count <= times_answered)
    );
    CREATE INDEX IF NOT EXISTS idx_questions_lookup
        ON questions (difficulty, sub_topic, quality_score);
"""

# --- 2. INTERFAZ (Contrato) ---

class QuestionRepository(ABC):
    @abstractmethod
    async def ensure_schema(self) -> None:
        pass

    @abstractmethod
    async def find_least_served(
        self,
        difficulty: Difficulty,
        topic: str,
        min_quality: float,
        excluded_question_texts: Sequence[str] = (),
    ) -> Optional[Question]:
        pass

    @abstractmethod
    async def insert_if_absent(self, questions: Sequence[Question]) -> None:
        pass

    @abstractmethod
    async def increment_served(self, ids: Sequence[str]) -> None:
        pass

    @abstractmethod
    async def record_answer(self, question_id: str, is_correct: bool) -> Optional[QualityStats]:
        pass

    @abstractmethod
    async def get_quality_stats(self, question_id: str) -> Optional[QualityStats]:
        pass

    @abstractmethod
    async def update_quality_score(self, question_id: str, new_score: float, expected_score: float) -> bool:
        pass


# --- 3. IMPLEMENTACIÓN REAL (PostgreSQL) ---

class PostgresQuestionRepository(QuestionRepository):
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(QUESTIONS_DDL)

    async def find_least_served(
        self,
        difficulty: Difficulty,
        topic: str,
        min_quality: float,
        excluded_question_texts: Sequence[str] = (),
    ) -> Optional[Question]:
        # Construcción dinámica de la query
        query = """
            SELECT * FROM questions
            WHERE difficulty = $1
              AND sub_topic = $2
              AND quality_score >= $3
        """
        params = [difficulty.value, topic, min_quality]
        param_counter = 4

        if excluded_question_texts:
            placeholders = []
            for text in excluded_question_texts:
                placeholders.append(f"${param_counter}")
                params.append(text)
                param_counter += 1
            query += f" AND question NOT IN ({', '.join(placeholders)})"

        # Menos servidas primero; el empate se rompe al azar
        query += " ORDER BY times_served ASC, random() LIMIT 1"

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        return self._row_to_question(row) if row else None

    async def insert_if_absent(self, questions: Sequence[Question]) -> None:
        if not questions:
            return
        query = """
            INSERT INTO questions
                (id, domain, sub_topic, difficulty, question, options, correct_answer_index, explanation)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (id) DO NOTHING
        """
        args = [
            (
                q.id,
                q.domain.value,
                q.sub_topic or "",
                q.difficulty.value,
                q.question,
                json.dumps(q.options),
                q.correct_answer_index,
                q.explanation,
            )
            for q in questions
        ]
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(query, args)

    async def increment_served(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        query = """
            UPDATE questions
            SET times_served = times_served + 1, updated_at = now()
            WHERE id = ANY($1::text[])
        """
        async with self.pool.acquire() as conn:
            await conn.execute(query, list(ids))

    async def record_answer(self, question_id: str, is_correct: bool) -> Optional[QualityStats]:
        """
        Un único UPDATE atómico: las expresiones usan los valores previos de la fila,
        así que dos respuestas concurrentes no se pisan.
        """
        query = """
            UPDATE questions
            SET times_answered = times_answered + 1,
                correct_count = correct_count + $1,
                correct_rate = (correct_count + $1)::double precision / (times_answered + 1),
                updated_at = now()
            WHERE id = $2
            RETURNING difficulty, times_answered, correct_rate, quality_score
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, 1 if is_correct else 0, question_id)
        return self._row_to_stats(row) if row else None

    async def get_quality_stats(self, question_id: str) -> Optional[QualityStats]:
        query = """
            SELECT difficulty, times_answered, correct_rate, quality_score
            FROM questions WHERE id = $1
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, question_id)
        return self._row_to_stats(row) if row else None

    async def update_quality_score(self, question_id: str, new_score: float, expected_score: float) -> bool:
        # Compare-and-set: si otra respuesta ya movió el score, no lo sobrescribimos
        query = """
            UPDATE questions
            SET quality_score = $1, updated_at = now()
            WHERE id = $2 AND quality_score = $3
        """
        async with self.pool.acquire() as conn:
            status = await conn.execute(query, new_score, question_id, expected_score)
        return status == "UPDATE 1"

    # Mapeamos de SQL (filas) a Objetos de Dominio (Entidades)
    @staticmethod
    def _row_to_question(row) -> Question:
        return Question(
            id=row["id"],
            domain=CISSPDomain(row["domain"]),
            sub_topic=row["sub_topic"],
            difficulty=Difficulty(row["difficulty"]),
            question=row["question"],
            options=json.loads(row["options"]),
            correct_answer_index=row["correct_answer_index"],
            explanation=row["explanation"],
            quality_score=row["quality_score"],
            times_served=row["times_served"],
            times_answered=row["times_answered"],
            correct_count=row["correct_count"],
            correct_rate=row["correct_rate"],
        )

    @staticmethod
    def _row_to_stats(row) -> QualityStats:
        return QualityStats(
            difficulty=Difficulty(row["difficulty"]),
            times_answered=row["times_answered"],
            correct_rate=row["correct_rate"],
            quality_score=row["quality_score"],
        )
