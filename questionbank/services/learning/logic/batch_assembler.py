import logging
from datetime import datetime
from typing import List, Sequence

from questionbank.services.ai.client import GenerationAdapter
from questionbank.services.learning.domain.entities import (
    Difficulty, GenerationModel, Question, question_id_for
)
from questionbank.services.learning.logic.question_store import QuestionStore
from questionbank.services.learning.logic.topic_selector import TopicSelector
from questionbank.shared.infrastructure.tasks import fire_and_forget

logger = logging.getLogger(__name__)


def merge_unique_questions(first: Sequence[Question], second: Sequence[Question], count: int) -> List[Question]:
    """
    Concatena primero-luego-segundo sin ids repetidos y corta a `count`.
    En empate gana la primera fuente: nunca se desaloja una banked por una generada.
    """
    merged: List[Question] = []
    seen_ids = set()
    for question in [*first, *second]:
        if question.id in seen_ids:
            continue
        seen_ids.add(question.id)
        merged.append(question)
    return merged[:max(count, 0)]


class BatchAssembler:
    def __init__(
        self,
        topic_selector: TopicSelector,
        question_store: QuestionStore,
        generation_adapter: GenerationAdapter,
    ):
        self.topic_selector = topic_selector
        self.question_store = question_store
        self.generation_adapter = generation_adapter

    async def assemble_batch(
        self,
        count: int,
        difficulty: Difficulty,
        model: GenerationModel,
        previous_question_texts: Sequence[str] = (),
        covered_topics: Sequence[str] = (),
    ) -> List[Question]:
        start_time = datetime.now()

        # 1. PLANO DEL LOTE: un subtema por hueco
        assignments = self.topic_selector.select_uncovered_topics(count, covered_topics)
        target_topics = [a.topic for a in assignments]

        # 2. BANCO (degradación: cualquier fallo equivale a "nada en el banco")
        try:
            banked = await self.question_store.query_banked(
                difficulty, target_topics, count, previous_question_texts
            )
        except Exception as e:
            logger.warning(f"⚠️ Banco no disponible, generamos todo: {e}")
            banked = []

        # 3. HUECOS: se rellenan por subtema, no solo por número
        banked_topics = {q.sub_topic for q in banked}
        remaining = [a for a in assignments if a.topic not in banked_topics]

        # 4. GENERACIÓN para lo que el banco no cubre
        generated: List[Question] = []
        if remaining:
            raw = await self.generation_adapter.generate(difficulty, model, remaining, previous_question_texts)
            # El id siempre es el hash del texto final, sea cual sea el que propuso el adaptador
            generated = [q.model_copy(update={"id": question_id_for(q.question)}) for q in raw]

        # 5. FUSIÓN: banked primero
        result = merge_unique_questions(banked, generated, count)

        # 6. CONTABILIDAD en segundo plano (guardar y luego contar servidas)
        fire_and_forget(
            self._persist_and_count(generated, [q.id for q in result]),
            name="question-bank-bookkeeping",
        )

        logger.info(
            f"✅ Lote de {len(result)} preguntas ({len(banked)} banco + {len(generated)} generadas) "
            f"en {(datetime.now() - start_time).total_seconds():.1f}s"
        )
        return result

    async def _persist_and_count(self, generated: Sequence[Question], served_ids: Sequence[str]) -> None:
        # Mismo orden que el flujo: primero existe la fila, luego se incrementa
        await self.question_store.save(generated)
        await self.question_store.increment_served(served_ids)
