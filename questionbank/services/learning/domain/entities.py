from enum import Enum
from typing import List
import hashlib

from pydantic import BaseModel, Field, field_validator

# --- 1. VOCABULARIO (ENUMS) ---

class CISSPDomain(str, Enum):
    SECURITY_AND_RISK_MANAGEMENT = "Security and Risk Management"
    ASSET_SECURITY = "Asset Security"
    SECURITY_ARCHITECTURE_AND_ENGINEERING = "Security Architecture and Engineering"
    COMMUNICATION_AND_NETWORK_SECURITY = "Communication and Network Security"
    IDENTITY_AND_ACCESS_MANAGEMENT = "Identity and Access Management (IAM)"
    SECURITY_ASSESSMENT_AND_TESTING = "Security Assessment and Testing"
    SECURITY_OPERATIONS = "Security Operations"
    SOFTWARE_DEVELOPMENT_SECURITY = "Software Development Security"

class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

class AIProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"

class GenerationModel(str, Enum):
    """Modelos que el cliente puede pedir. El prefijo decide el proveedor."""
    GEMINI_FLASH_LITE = "gemini-2.5-flash-lite"
    GEMINI_FLASH = "gemini-2.5-flash"
    GEMINI_PRO = "gemini-2.5-pro"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4O = "gpt-4o"

    @property
    def provider(self) -> AIProvider:
        if self.value.startswith("gpt-"):
            return AIProvider.OPENAI
        return AIProvider.GEMINI

# --- 2. IDENTIDAD DETERMINISTA ---

def question_id_for(text: str) -> str:
    """
    Id estable a partir del texto normalizado (trim + minúsculas).
    Dos generaciones independientes con el mismo enunciado producen el mismo id.
    """
    digest = hashlib.sha256(text.strip().lower().encode("utf-8")).digest()
    return digest[:8].hex()

# --- 3. MODELOS DEL BANCO ---

class TopicAssignment(BaseModel):
    """Directiva por hueco: qué (dominio, subtema) debe cubrir la pregunta."""
    domain: CISSPDomain
    topic: str

class Question(BaseModel):
    id: str
    domain: CISSPDomain
    sub_topic: str = ""
    difficulty: Difficulty

    # Contenido
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_answer_index: int = Field(..., ge=0, le=3)
    explanation: str

    # Métricas del banco (solo las escribe el store)
    quality_score: float = Field(default=1.0, ge=0.1, le=2.0)
    times_served: int = Field(default=0, ge=0)
    times_answered: int = Field(default=0, ge=0)
    correct_count: int = Field(default=0, ge=0)
    correct_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("options")
    def strip_options(cls, v: List[str]) -> List[str]:
        return [option.strip() for option in v]

class QualityStats(BaseModel):
    """Subconjunto de la fila que consume el Quality Scorer."""
    difficulty: Difficulty
    times_answered: int
    correct_rate: float
    quality_score: float
