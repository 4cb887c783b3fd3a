import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from questionbank.shared.config import settings
from questionbank.shared.infrastructure.db import DatabasePool
from questionbank.shared.infrastructure.tasks import drain_background_tasks, pending_count
from questionbank.shared.database.repositories import PostgresQuestionRepository

# Rutas del banco de preguntas
from questionbank.services.learning.api import routes as learning_routes

# Configuración de Logging
logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger("QuestionBank")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Iniciando Question Bank...")
    pool = await DatabasePool.connect()
    if pool is not None:
        try:
            await PostgresQuestionRepository(pool).ensure_schema()
            logger.info("✅ Esquema 'questions' verificado")
        except Exception as e:
            logger.error(f"⚠️ No se pudo verificar el esquema, el banco puede fallar: {e}")
    yield
    logger.info("🛑 Apagando servicios...")
    # Damos margen a la contabilidad pendiente antes de cerrar el pool
    await drain_background_tasks(timeout=5.0)
    await DatabasePool.disconnect()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# ❗ ENTRADA MALFORMADA -> 400 con un único mensaje legible
# =============================================================================
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Petición inválida: {field or 'body'}: {first.get('msg', 'valor no válido')}"
    else:
        message = "Petición inválida."
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": message})

# =============================================================================
# 🩺 HEALTH CHECK
# =============================================================================
@app.get("/health")
async def health_check():
    pool = DatabasePool.get_pool()
    if pool is None:
        return {"status": "healthy", "question_bank": "disabled", "pending_tasks": pending_count()}
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        bank = "connected"
    except Exception as e:
        logger.warning(f"⚠️ Health check del banco falló: {e}")
        bank = "degraded"
    return {"status": "healthy", "question_bank": bank, "pending_tasks": pending_count()}

# --- CONEXIÓN DE RUTAS (ROUTERS) ---
app.include_router(
    learning_routes.router,
    prefix=settings.API_PREFIX,
    tags=["Question Bank"]
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
