import logging
from uuid import uuid4

import httpx
from openai import AsyncOpenAI
from openai import OpenAIError

from forensic_report.core.config import settings

# Configure module logger
logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when LLM call fails"""


# ---------------------------------------------------------------
# Text-generation client
# ---------------------------------------------------------------
timeout_config = httpx.Timeout(
    settings.LLM_CONNECT_TIMEOUT,
    read=settings.LLM_READ_TIMEOUT,
)

_client_instance: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    global _client_instance
    if _client_instance is None:
        if not settings.openai_api_key:
            raise LLMError("OPENAI_API_KEY is not configured.")
        # No automatic retries.
        _client_instance = AsyncOpenAI(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            timeout=timeout_config,
            max_retries=0,
        )
    return _client_instance


async def call_llm(prompt: str, request_id: str | None = None) -> str:
    """Send *prompt* as the single system instruction and return the generated text.

    Sampling temperature and the token ceiling come from settings; an empty
    completion is returned as ''. Every failure is raised as ``LLMError``.
    """
    request_id = request_id or str(uuid4())
    logger.info("[%s] Making LLM API call with model: %s", request_id, settings.model_id)

    try:
        rsp = await _get_client().chat.completions.create(
            model=settings.model_id,
            messages=[
                {"role": "system", "content": prompt},
            ],
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout=timeout_config,
        )

        logger.debug("[%s] Raw LLM response structure: %s", request_id, str(rsp))

        if not rsp or not hasattr(rsp, "choices") or not rsp.choices:
            logger.error("[%s] Invalid response structure from LLM API: %s", request_id, str(rsp))
            raise LLMError(f"Invalid response structure from LLM API: {str(rsp)}")

        first_choice = rsp.choices[0]
        if not hasattr(first_choice, "message") or first_choice.message is None:
            logger.error("[%s] Missing 'message' in LLM API response: %s", request_id, str(first_choice))
            raise LLMError(f"Missing 'message' in LLM API response: {str(first_choice)}")

        content = (first_choice.message.content or "").strip()
        logger.debug("[%s] LLM response received, length: %d chars", request_id, len(content))
        return content
    except LLMError:
        raise
    except OpenAIError as e:
        logger.error("[%s] OpenAI API error: %s", request_id, str(e), exc_info=True)
        raise LLMError(f"OpenAI API error: {str(e)}") from e
    except Exception as e:
        logger.exception("[%s] Unexpected error in LLM call", request_id)
        raise LLMError(f"Unexpected error in LLM call: {str(e)}") from e
