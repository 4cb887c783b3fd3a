from functools import lru_cache
from fastapi import Depends

from questionbank.shared.config import settings
from questionbank.shared.infrastructure.db import DatabasePool
from questionbank.shared.database.repositories import PostgresQuestionRepository

# Servicios de Dominio
from questionbank.services.ai.client import GenerationAdapter, MockGenerationAdapter
from questionbank.services.ai.service import (
    GeminiGenerationAdapter, ModelRouterAdapter, OpenAIGenerationAdapter
)
from questionbank.services.learning.logic.batch_assembler import BatchAssembler
from questionbank.services.learning.logic.question_store import QuestionStore
from questionbank.services.learning.logic.topic_selector import TopicSelector

# 1. Inyección del Store (Repository Pattern). Sin pool -> store degradado.
async def get_question_store() -> QuestionStore:
    pool = DatabasePool.get_pool()
    repository = PostgresQuestionRepository(pool) if pool is not None else None
    return QuestionStore(repository)

# 2. Proveedor de IA: uno por proceso, los clientes HTTP son reutilizables
@lru_cache()
def get_generation_adapter() -> GenerationAdapter:
    if settings.USE_MOCK_AI:
        return MockGenerationAdapter()
    return ModelRouterAdapter(
        gemini=GeminiGenerationAdapter(),
        openai_adapter=OpenAIGenerationAdapter(),
    )

def get_topic_selector() -> TopicSelector:
    return TopicSelector()

# 3. Inyección de Servicios (Application Layer)
async def get_batch_assembler(
    question_store: QuestionStore = Depends(get_question_store),
    generation_adapter: GenerationAdapter = Depends(get_generation_adapter),
    topic_selector: TopicSelector = Depends(get_topic_selector),
) -> BatchAssembler:
    """
    FastAPI construirá automáticamente:
    Pool -> Repository -> QuestionStore -> BatchAssembler
    """
    return BatchAssembler(topic_selector, question_store, generation_adapter)
