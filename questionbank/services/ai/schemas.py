from typing import List
from pydantic import BaseModel, Field

# --- Salida estructurada de la IA ---
# NOTA: sin restricciones de esquema (minItems, maximum...) porque los proveedores
# las rechazan en modo estructurado. La forma real (4 opciones, índice 0-3) la valida
# la entidad Question al mapear, pregunta a pregunta.

class GeneratedQuestionAI(BaseModel):
    domain: str = Field(..., description="CISSP domain name, exactly as given in the assignment.")
    sub_topic: str = Field(..., description="Sub-topic, exactly as given in the assignment.")
    question: str = Field(..., description="Scenario-based question text.")
    options: List[str] = Field(..., description="Exactly 4 answer options.")
    correct_answer_index: int = Field(..., description="0-based index of the correct option.")
    explanation: str = Field(..., description="Why the correct answer is best and why the others are not.")

class GeneratedBatchAI(BaseModel):
    """Respuesta raíz que esperamos del modelo."""
    questions: List[GeneratedQuestionAI]
