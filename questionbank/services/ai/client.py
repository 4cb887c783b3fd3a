from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
import logging

from pydantic import ValidationError

from questionbank.services.ai.schemas import GeneratedBatchAI, GeneratedQuestionAI
from questionbank.services.learning.domain.entities import (
    Difficulty, GenerationModel, Question, TopicAssignment, question_id_for
)

logger = logging.getLogger(__name__)

# --- 0. ERRORES ---

class AIServiceError(Exception):
    pass

class GenerationConfigError(AIServiceError):
    """Faltan credenciales o configuración del proveedor. Fatal para la petición."""

class GenerationError(AIServiceError):
    """El proveedor falló, devolvió vacío o un formato inválido."""

class GenerationBlockedError(GenerationError):
    """El proveedor bloqueó el contenido (filtros de seguridad)."""


# 1. LA INTERFAZ (El Contrato)
class GenerationAdapter(ABC):
    @abstractmethod
    async def generate(
        self,
        difficulty: Difficulty,
        model: GenerationModel,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        """Una pregunta por asignación. Lanza GenerationError en vez de devolver datos parciales en silencio."""
        pass

    def _to_questions(
        self,
        batch: GeneratedBatchAI,
        difficulty: Difficulty,
        assignments: Sequence[TopicAssignment],
    ) -> List[Question]:
        """
        Validación en la frontera: cada registro de la IA pasa a entidad Question.
        Como mucho un registro por hueco del plan; lo que sobra se descarta.
        Los registros con forma inválida se descartan; si no queda ninguno es un fallo.
        """
        questions: List[Question] = []
        for item, assignment in zip(batch.questions, assignments):
            question = self._map_item(item, difficulty, assignment)
            if question is not None:
                questions.append(question)

        surplus = len(batch.questions) - len(assignments)
        if surplus > 0:
            logger.warning(f"⚠️ La IA devolvió {surplus} preguntas fuera del plan, descartadas")

        if not questions:
            raise GenerationError("La IA no devolvió ninguna pregunta válida.")
        if len(questions) < len(assignments):
            logger.warning(f"⚠️ La IA devolvió {len(questions)}/{len(assignments)} preguntas válidas")
        return questions

    def _map_item(
        self,
        item: GeneratedQuestionAI,
        difficulty: Difficulty,
        assignment: TopicAssignment,
    ) -> Optional[Question]:
        # El hueco manda: dominio y subtema salen del plan, no de lo que diga la IA
        if item.sub_topic.strip() != assignment.topic or item.domain.strip() != assignment.domain.value:
            logger.debug(f"La IA cambió el hueco '{assignment.topic}' por '{item.sub_topic}', se corrige")
        try:
            return Question(
                id=question_id_for(item.question),
                domain=assignment.domain,
                sub_topic=assignment.topic,
                difficulty=difficulty,
                question=item.question.strip(),
                options=item.options,
                correct_answer_index=item.correct_answer_index,
                explanation=item.explanation.strip(),
            )
        except ValidationError as e:
            logger.warning(f"⚠️ Pregunta generada inválida para '{assignment.topic}': {e.error_count()} errores")
            return None


# 2. EL MOCK (El Actor de Doble)
class MockGenerationAdapter(GenerationAdapter):
    """
    Simula al proveedor para desarrollo local y tests sin gastar tokens.
    El texto depende solo de (dificultad, subtema), así que repetir un subtema
    produce el mismo id y ejercita la deduplicación del banco.
    """

    def __init__(self):
        self.calls: List[List[TopicAssignment]] = []

    async def generate(
        self,
        difficulty: Difficulty,
        model: GenerationModel,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        self.calls.append(list(assignments))
        logger.info(f"[MOCK AI] Generando {len(assignments)} preguntas simuladas...")

        batch = GeneratedBatchAI(questions=[
            GeneratedQuestionAI(
                domain=a.domain.value,
                sub_topic=a.topic,
                question=(
                    f"[{difficulty.value}] A security manager is reviewing '{a.topic}'. "
                    f"Which action should be taken FIRST?"
                ),
                options=[
                    "Align the control with business objectives and risk appetite",
                    "Deploy the newest technical control available",
                    "Outsource the decision to the vendor",
                    "Accept the risk without documentation",
                ],
                correct_answer_index=0,
                explanation="The manager's perspective prioritises governance and risk before technology.",
            )
            for a in assignments
        ])
        return self._to_questions(batch, difficulty, assignments)
