import asyncio
import logging
from typing import List, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

# --- CONFIGURACIÓN ---
from questionbank.services.ai.config import AISettings, get_ai_settings

# --- CONTRATO Y ERRORES ---
from questionbank.services.ai.client import (
    AIServiceError,
    GenerationAdapter,
    GenerationBlockedError,
    GenerationConfigError,
    GenerationError,
)
from questionbank.services.ai.prompts import PromptManager
from questionbank.services.ai.schemas import GeneratedBatchAI
from questionbank.services.learning.domain.entities import (
    AIProvider, Difficulty, GenerationModel, Question, TopicAssignment
)

logger = logging.getLogger(__name__)
settings = get_ai_settings()

# El contenido CISSP habla de ataques y exploits y dispara los filtros por defecto.
GEMINI_SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}

GEMINI_TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)

OPENAI_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


# =============================================================================
# 1. GEMINI (proveedor por defecto)
# =============================================================================
class GeminiGenerationAdapter(GenerationAdapter):
    def __init__(self, ai_settings: Optional[AISettings] = None):
        self.settings = ai_settings or settings
        if self.settings.gemini_api_key:
            genai.configure(api_key=self.settings.gemini_api_key)

    def _build_model(self, model: GenerationModel) -> genai.GenerativeModel:
        return genai.GenerativeModel(
            model_name=model.value,
            system_instruction=PromptManager.get_examiner_system_prompt(),
            safety_settings=GEMINI_SAFETY_SETTINGS,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                temperature=self.settings.temperature,
            ),
        )

    @retry(
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=1, min=settings.retry_min_wait, max=settings.retry_max_wait),
        retry=retry_if_exception_type(GEMINI_TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _call_gemini_async(self, gemini_model: genai.GenerativeModel, prompt: str):
        """Llamada a Gemini con reintentos automáticos."""
        loop = asyncio.get_running_loop()
        # Gemini SDK es síncrono, lo envolvemos
        return await loop.run_in_executor(None, lambda: gemini_model.generate_content(prompt))

    async def generate(
        self,
        difficulty: Difficulty,
        model: GenerationModel,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        if not self.settings.gemini_api_key:
            raise GenerationConfigError("Falta GEMINI_API_KEY.")

        prompt = PromptManager.build_question_batch_prompt(difficulty, assignments, previous_question_texts)
        logger.info(f"🧠 Gemini ({model.value}) generando {len(assignments)} preguntas [{difficulty.value}]")

        try:
            response = await self._call_gemini_async(self._build_model(model), prompt)
        except google_exceptions.GoogleAPIError as e:
            raise GenerationError(f"Gemini falló: {e}") from e

        # Sin candidatos = el prompt fue bloqueado por los filtros
        if not response.candidates:
            raise GenerationBlockedError(f"Gemini no devolvió candidatos. Feedback: {response.prompt_feedback}")

        try:
            text = response.text
        except ValueError as e:
            # .text lanza ValueError cuando el candidato se cortó por seguridad
            raise GenerationBlockedError(f"Respuesta de Gemini bloqueada: {e}") from e

        if not text:
            raise GenerationError("Gemini devolvió una respuesta vacía.")

        usage = getattr(response, "usage_metadata", None)
        if usage:
            logger.info(f"💰 Consumo AI: {usage.total_token_count} tokens")

        try:
            batch = GeneratedBatchAI.model_validate_json(text)
        except ValidationError as e:
            raise GenerationError(f"JSON de Gemini inválido: {e.error_count()} errores") from e

        return self._to_questions(batch, difficulty, assignments)


# =============================================================================
# 2. OPENAI (Structured Outputs)
# =============================================================================
class OpenAIGenerationAdapter(GenerationAdapter):
    def __init__(self, client: Optional[AsyncOpenAI] = None, ai_settings: Optional[AISettings] = None):
        self.settings = ai_settings or settings
        self.client = client
        if self.client is None and self.settings.openai_api_key:
            self.client = AsyncOpenAI(api_key=self.settings.openai_api_key)

    @retry(
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=1, min=settings.retry_min_wait, max=settings.retry_max_wait),
        retry=retry_if_exception_type(OPENAI_TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _call_openai(self, model: GenerationModel, prompt: str):
        return await self.client.beta.chat.completions.parse(
            model=model.value,
            messages=[
                {"role": "system", "content": PromptManager.get_examiner_system_prompt()},
                {"role": "user", "content": prompt}
            ],
            response_format=GeneratedBatchAI,
            temperature=self.settings.temperature,
        )

    async def generate(
        self,
        difficulty: Difficulty,
        model: GenerationModel,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        if self.client is None:
            raise GenerationConfigError("Falta OPENAI_API_KEY.")

        prompt = PromptManager.build_question_batch_prompt(difficulty, assignments, previous_question_texts)
        logger.info(f"🧠 OpenAI ({model.value}) generando {len(assignments)} preguntas [{difficulty.value}]")

        try:
            completion = await self._call_openai(model, prompt)
        except openai.ContentFilterFinishReasonError as e:
            raise GenerationBlockedError("OpenAI filtró el contenido.") from e
        except openai.AuthenticationError as e:
            raise GenerationConfigError(f"Credenciales de OpenAI inválidas: {e}") from e
        except (openai.OpenAIError, ValidationError) as e:
            raise GenerationError(f"OpenAI falló: {e}") from e

        if completion.usage:
            logger.info(f"💰 Consumo AI: {completion.usage.total_tokens} tokens")

        message = completion.choices[0].message
        if message.refusal:
            raise GenerationBlockedError(f"OpenAI rechazó la petición: {message.refusal}")

        batch = message.parsed
        if not batch or not batch.questions:
            raise GenerationError("OpenAI devolvió una respuesta vacía.")

        return self._to_questions(batch, difficulty, assignments)


# =============================================================================
# 3. ENRUTADOR POR MODELO
# =============================================================================
class ModelRouterAdapter(GenerationAdapter):
    """Elige el proveedor según el modelo pedido en la petición."""

    def __init__(self, gemini: GenerationAdapter, openai_adapter: GenerationAdapter):
        self.adapters = {
            AIProvider.GEMINI: gemini,
            AIProvider.OPENAI: openai_adapter,
        }

    async def generate(
        self,
        difficulty: Difficulty,
        model: GenerationModel,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> List[Question]:
        adapter = self.adapters[model.provider]
        try:
            return await adapter.generate(difficulty, model, assignments, previous_question_texts)
        except AIServiceError:
            raise
        except Exception as e:
            logger.error(f"❌ Error inesperado en el proveedor {model.provider.value}: {e}")
            raise GenerationError(str(e)) from e
