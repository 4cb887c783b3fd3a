import logging
import ssl
from typing import Optional

import asyncpg

from questionbank.shared.config import settings

logger = logging.getLogger(__name__)

class DatabasePool:
    _pool: Optional[asyncpg.Pool] = None

    @classmethod
    async def connect(cls) -> Optional[asyncpg.Pool]:
        """
        Inicializa el Pool de conexiones.
        El banco es una optimización: si no hay DSN o la DB no responde,
        el servicio arranca igualmente y genera todas las preguntas.
        """
        if cls._pool is not None:
            return cls._pool

        if not settings.DATABASE_URL:
            logger.warning("⚠️ DATABASE_URL no configurada: banco de preguntas desactivado.")
            return None

        ssl_context = ssl.create_default_context() if settings.DB_USE_SSL else False

        try:
            cls._pool = await asyncpg.create_pool(
                dsn=settings.DATABASE_URL,
                min_size=settings.DB_POOL_MIN_SIZE,
                max_size=settings.DB_POOL_MAX_SIZE,
                command_timeout=settings.DB_COMMAND_TIMEOUT,
                ssl=ssl_context,
            )
            logger.info("✅ Database Pool conectado exitosamente.")
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"❌ No se pudo conectar al banco, seguimos sin él: {e}")
            cls._pool = None
        return cls._pool

    @classmethod
    async def disconnect(cls):
        if cls._pool:
            await cls._pool.close()
            cls._pool = None
            logger.info("💤 Database Pool cerrado.")

    @classmethod
    def get_pool(cls) -> Optional[asyncpg.Pool]:
        """Devuelve None cuando el banco no está disponible."""
        return cls._pool
