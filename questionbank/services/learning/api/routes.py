import logging
from fastapi import APIRouter, Depends, HTTPException, status

# --- SCHEMAS ---
from questionbank.services.learning.api.schemas import (
    FeedbackRequest, FeedbackResponse,
    Flashcard, QuestionBatchRequest, QuestionBatchResponse,
)
# --- LÓGICA DE NEGOCIO ---
from questionbank.services.ai.client import GenerationConfigError, GenerationError
from questionbank.services.learning.logic.batch_assembler import BatchAssembler
from questionbank.services.learning.logic.question_store import QuestionStore

# --- INFRAESTRUCTURA ---
from questionbank.api.dependencies import get_batch_assembler, get_question_store

logger = logging.getLogger(__name__)
router = APIRouter()

# =============================================================================
# 📝 1. LOTE DE PREGUNTAS (banco + generación)
# =============================================================================
@router.post("/questions", response_model=QuestionBatchResponse)
async def get_question_batch(
    request: QuestionBatchRequest,
    assembler: BatchAssembler = Depends(get_batch_assembler),
):
    """
    Devuelve un lote de preguntas: primero las del banco, el resto generadas.
    """
    try:
        questions = await assembler.assemble_batch(
            count=request.count,
            difficulty=request.difficulty,
            model=request.model,
            previous_question_texts=request.previous_questions,
            covered_topics=request.covered_topics,
        )
    except GenerationConfigError as e:
        logger.error(f"❌ Configuración de IA incompleta: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de configuración del servidor."
        )
    except GenerationError as e:
        logger.error(f"❌ Fallo generando preguntas: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="No se pudieron generar preguntas. Inténtalo de nuevo más tarde."
        )
    except Exception:
        logger.exception("❌ Error inesperado ensamblando el lote")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error interno generando preguntas."
        )

    return QuestionBatchResponse(questions=[Flashcard.from_question(q) for q in questions])

# =============================================================================
# 👍 2. FEEDBACK (acierto / fallo en la primera respuesta de la sesión)
# =============================================================================
@router.post("/feedback", response_model=FeedbackResponse)
async def record_feedback(
    request: FeedbackRequest,
    question_store: QuestionStore = Depends(get_question_store),
):
    # Sin banco o con el banco caído, el store no hace nada y respondemos éxito igualmente
    await question_store.record_feedback(request.question_id, request.is_correct)
    return FeedbackResponse(success=True)
