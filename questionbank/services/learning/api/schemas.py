from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional

from questionbank.services.learning.domain.entities import (
    CISSPDomain, Difficulty, GenerationModel, Question
)
from questionbank.services.ai.config import get_ai_settings
from questionbank.shared.config import settings

# El frontend habla camelCase (subTopic, correctAnswerIndex...)
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# --- INPUTS ---

class QuestionBatchRequest(CamelModel):
    count: Optional[int] = Field(default=None, validate_default=True)
    difficulty: Difficulty = Difficulty.MEDIUM
    model: GenerationModel = Field(default_factory=lambda: get_ai_settings().default_model)
    previous_questions: List[str] = Field(default_factory=list)
    covered_topics: List[str] = Field(default_factory=list)

    @field_validator('count')
    def clamp_count(cls, v: Optional[int]) -> int:
        # 0 o ausente -> tamaño de lote por defecto
        if not v:
            return settings.DEFAULT_BATCH_SIZE
        return min(max(v, settings.MIN_QUESTIONS_PER_REQUEST), settings.MAX_QUESTIONS_PER_REQUEST)

    @field_validator('difficulty', mode='before')
    def normalize_difficulty(cls, v: Any) -> Any:
        # Aceptamos "easy"/"EASY" y null (-> Medium); cualquier otro valor se rechaza
        if v is None:
            return Difficulty.MEDIUM
        if isinstance(v, str):
            mapping = {d.value.lower(): d for d in Difficulty}
            return mapping.get(v.lower().strip(), v)
        return v

    @field_validator('previous_questions')
    def keep_recent_questions(cls, v: List[str]) -> List[str]:
        # Las más recientes van al final
        return v[-settings.MAX_PREVIOUS_QUESTIONS:] if v else []

    @field_validator('covered_topics')
    def keep_recent_topics(cls, v: List[str]) -> List[str]:
        return v[-settings.MAX_COVERED_TOPICS:] if v else []

class FeedbackRequest(CamelModel):
    question_id: str = Field(..., min_length=1)
    is_correct: bool = Field(..., strict=True)

# --- OUTPUTS ---

class Flashcard(CamelModel):
    """Lo que ve el cliente: sin métricas internas del banco."""
    id: str
    domain: CISSPDomain
    sub_topic: str
    difficulty: Difficulty
    question: str
    options: List[str]
    correct_answer_index: int
    explanation: str

    @classmethod
    def from_question(cls, question: Question) -> "Flashcard":
        return cls(
            id=question.id,
            domain=question.domain,
            sub_topic=question.sub_topic,
            difficulty=question.difficulty,
            question=question.question,
            options=question.options,
            correct_answer_index=question.correct_answer_index,
            explanation=question.explanation,
        )

class QuestionBatchResponse(CamelModel):
    questions: List[Flashcard]

class FeedbackResponse(CamelModel):
    success: bool = True
