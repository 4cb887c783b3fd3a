from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache

from questionbank.services.learning.domain.entities import GenerationModel

class AISettings(BaseSettings):
    """
    Configuración inmutable del servicio de IA.
    Lee variables de entorno (.env) automáticamente.
    """
    # Credenciales. Opcionales para que la app arranque; si falta la del proveedor
    # pedido, la petición falla con error de configuración.
    gemini_api_key: Optional[str] = Field(default=None, description="GEMINI_API_KEY")
    openai_api_key: Optional[str] = Field(default=None, description="OPENAI_API_KEY")

    default_model: GenerationModel = Field(default=GenerationModel.GEMINI_FLASH_LITE)

    # Hiperparámetros
    temperature: float = Field(default=0.7, description="Variedad entre preguntas del mismo subtema")

    # Resiliencia (Tenacity)
    max_retries: int = Field(default=3, description="Intentos contra el proveedor")
    retry_min_wait: int = Field(default=2, description="Segundos de espera mínima entre reintentos")
    retry_max_wait: int = Field(default=10)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

@lru_cache()
def get_ai_settings() -> AISettings:
    """
    Singleton con caché.
    Se instancia una sola vez para no leer el disco (.env) en cada petición.
    """
    return AISettings()
