from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class SharedSettings(BaseSettings):
    """
    Configuración del servicio del banco de preguntas.
    Todo se puede sobrescribir por variables de entorno o .env.
    """
    PROJECT_NAME: str = "CISSP Question Bank"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Persistencia. Sin DATABASE_URL el banco queda desactivado y todo se genera.
    DATABASE_URL: Optional[str] = None
    DB_USE_SSL: bool = False
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 10
    DB_COMMAND_TIMEOUT: float = 10.0

    # Límites de la petición
    DEFAULT_BATCH_SIZE: int = 10
    MIN_QUESTIONS_PER_REQUEST: int = 1
    MAX_QUESTIONS_PER_REQUEST: int = 20
    MAX_PREVIOUS_QUESTIONS: int = 20
    MAX_COVERED_TOPICS: int = 200

    # Umbral de exclusión del banco
    MIN_BANK_QUALITY_SCORE: float = 0.3

    # Generador simulado (desarrollo local sin gastar tokens)
    USE_MOCK_AI: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

settings = SharedSettings()
