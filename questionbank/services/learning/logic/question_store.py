import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from questionbank.services.learning.domain.entities import Difficulty, Question
from questionbank.services.learning.logic.quality_scorer import QualityScorer
from questionbank.shared.config import settings
from questionbank.shared.database.repositories import QuestionRepository

logger = logging.getLogger(__name__)

class QuestionStore:
    """
    Fachada del banco de preguntas.

    El banco es una optimización, nunca una dependencia: si no hay repositorio
    (DB sin configurar) o la DB falla, las lecturas devuelven vacío y las
    escrituras se loguean y se descartan.
    """

    def __init__(self, repository: Optional[QuestionRepository], min_quality: float = settings.MIN_BANK_QUALITY_SCORE):
        self.repository = repository
        self.min_quality = min_quality
        self.scorer = QualityScorer(repository) if repository is not None else None

    @property
    def available(self) -> bool:
        return self.repository is not None

    async def query_banked(
        self,
        difficulty: Difficulty,
        topics: Iterable[str],
        limit: int,
        excluded_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        """Como mucho una pregunta por subtema distinto, en el orden de los subtemas."""
        topics = list(topics)
        if self.repository is None or not topics or limit <= 0:
            return []

        # dict.fromkeys deduplica conservando el orden
        unique_topics = list(dict.fromkeys(topics))[:limit]

        # Fan-out: consultas independientes de solo lectura, una por subtema
        results = await asyncio.gather(
            *[
                self.repository.find_least_served(difficulty, topic, self.min_quality, excluded_question_texts)
                for topic in unique_topics
            ],
            return_exceptions=True,
        )

        banked: List[Question] = []
        for topic, result in zip(unique_topics, results):
            if isinstance(result, BaseException):
                logger.warning(f"⚠️ Fallo consultando el banco para '{topic}': {result}")
            elif result is not None:
                banked.append(result)

        logger.info(f"🏦 Banco: {len(banked)}/{len(unique_topics)} subtemas cubiertos [{difficulty.value}]")
        return banked

    async def save(self, questions: Sequence[Question]) -> None:
        if self.repository is None or not questions:
            return
        try:
            await self.repository.insert_if_absent(questions)
        except Exception as e:
            logger.warning(f"⚠️ No se pudieron guardar {len(questions)} preguntas en el banco: {e}")

    async def increment_served(self, ids: Sequence[str]) -> None:
        if self.repository is None or not ids:
            return
        try:
            await self.repository.increment_served(ids)
        except Exception as e:
            logger.warning(f"⚠️ No se pudo actualizar times_served: {e}")

    async def record_feedback(self, question_id: str, is_correct: bool) -> None:
        if self.repository is None:
            return
        try:
            stats = await self.repository.record_answer(question_id, is_correct)
            if stats is None:
                logger.info(f"Feedback para pregunta desconocida {question_id}, ignorado")
                return
            await self.scorer.apply_quality_score(question_id, stats)
        except Exception as e:
            logger.warning(f"⚠️ No se pudo registrar feedback de {question_id}: {e}")

    async def apply_quality_score(self, question_id: str) -> Optional[float]:
        if self.scorer is None:
            return None
        return await self.scorer.apply_quality_score(question_id)
