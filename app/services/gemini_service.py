"""
RizzedIn — GeminiService: text-completion client for persona chat and
conversation evaluation.

Wraps the Gemini SDK behind a single ``generate`` coroutine:

- Multi-model fallback chain with exponential-backoff retry on transient
  errors (429 / 5xx)
- Optional system instruction and prior-turn history for persona chat
- Optional JSON response mode for structured evaluation output
- A wall-clock bound on the whole call so a slow upstream never blocks a
  chat send indefinitely

Callers get free text back and parse it themselves.  Default chain:

    gemini-2.5-pro -> gemini-2.5-flash -> gemini-2.0-flash
"""

from __future__ import annotations

import asyncio
import time

import google.generativeai as genai
import structlog
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.services.exceptions import UpstreamUnavailableError

logger = structlog.get_logger(__name__)

_MAX_ATTEMPTS = 4
_TRANSIENT_MARKERS = ("429", "resource_exhausted", "500", "503", "internal")

# Chat roles as stored on the chat record -> Gemini content roles
_ROLE_MAP: dict[str, str] = {
    "user": "user",
    "assistant": "model",
}


def _is_retryable_api_error(exc: BaseException) -> bool:
    """Rate limits (429) and server faults (500/503) are worth another try.

    The SDK surfaces these under several exception classes, so both the
    class name and the message are checked.
    """
    message = str(exc).lower()
    kind = type(exc).__name__.lower()

    if any(marker in message for marker in _TRANSIENT_MARKERS):
        return True
    return "resourceexhausted" in kind or "serviceunavailable" in kind


def to_gemini_contents(
    history: list[dict] | None,
    prompt: str,
) -> list[dict]:
    """Convert stored chat messages plus the new prompt into Gemini contents."""
    contents: list[dict] = []
    for message in history or []:
        role = _ROLE_MAP.get(message.get("role", ""), "user")
        contents.append({"role": role, "parts": [message.get("content", "")]})
    contents.append({"role": "user", "parts": [prompt]})
    return contents


class GeminiService:
    """Free-text completion client used by the chat and import services."""

    def __init__(self) -> None:
        settings = get_settings()

        genai.configure(api_key=settings.GEMINI_API_KEY)

        self._model_chain: list[str] = [
            settings.GEMINI_MODEL_PRIMARY,
            settings.GEMINI_MODEL_FALLBACK,
            settings.GEMINI_MODEL_STABLE,
        ]
        self._timeout: float = settings.MODEL_TIMEOUT_SECONDS

        self._safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        }

        logger.info(
            "gemini_service_initialised",
            model_chain=self._model_chain,
            timeout_seconds=self._timeout,
        )

    async def generate(
        self,
        prompt: str,
        temperature: float,
        system_instruction: str | None = None,
        history: list[dict] | None = None,
        json_mode: bool = False,
        max_output_tokens: int = 1024,
    ) -> str:
        """Return the model's text completion for *prompt*.

        Parameters
        ----------
        prompt:
            The newest user turn (or the whole prompt for one-shot calls).
        temperature:
            Sampling temperature.
        system_instruction:
            Persona or task instructions placed outside the turn history.
        history:
            Prior turns as ``[{"role": "user"|"assistant", "content": str}]``.
        json_mode:
            Ask the model for ``application/json`` output.

        Raises
        ------
        UpstreamUnavailableError
            If every model in the chain fails or the call exceeds
            ``MODEL_TIMEOUT_SECONDS``.
        """
        start = time.monotonic()
        try:
            text = await asyncio.wait_for(
                self._generate_with_fallback(
                    prompt,
                    temperature,
                    system_instruction,
                    history,
                    json_mode,
                    max_output_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("gemini_timeout", timeout_seconds=self._timeout)
            raise UpstreamUnavailableError(
                f"Model call exceeded {self._timeout}s"
            ) from exc

        logger.debug(
            "gemini_generate_complete",
            elapsed_ms=round((time.monotonic() - start) * 1000, 2),
            response_length=len(text),
        )
        return text

    async def _generate_with_fallback(
        self,
        prompt: str,
        temperature: float,
        system_instruction: str | None,
        history: list[dict] | None,
        json_mode: bool,
        max_output_tokens: int,
    ) -> str:
        contents = to_gemini_contents(history, prompt)
        generation_config = genai.GenerationConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json" if json_mode else "text/plain",
        )

        last_error: Exception | None = None
        for model_name in self._model_chain:
            try:
                return await self._call_model(
                    model_name, contents, system_instruction, generation_config
                )
            except Exception as exc:
                last_error = exc
                logger.warning("gemini_model_failed", model=model_name, error=str(exc))

        raise UpstreamUnavailableError(
            f"All models in chain exhausted. Last error: {last_error}"
        )

    async def _call_model(
        self,
        model_name: str,
        contents: list[dict],
        system_instruction: str | None,
        generation_config: genai.GenerationConfig,
    ) -> str:
        """One model, up to ``_MAX_ATTEMPTS`` tries with 1s..20s backoff.

        Non-transient errors (bad request, blocked prompt, empty text) are
        raised on the first attempt so the chain can move on.
        """
        model = genai.GenerativeModel(
            model_name, system_instruction=system_instruction
        )
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable_api_error),
            stop=stop_after_attempt(_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=1, min=1, max=20),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                tries = attempt.retry_state.attempt_number
                if tries > 1:
                    logger.info("gemini_retry", model=model_name, attempt=tries)
                response = await model.generate_content_async(
                    contents,
                    safety_settings=self._safety_settings,
                    generation_config=generation_config,
                )
                if not response.candidates:
                    raise ValueError(
                        f"{model_name} produced no candidates "
                        f"(feedback: {response.prompt_feedback})"
                    )
                text = response.text
                if not text or not text.strip():
                    raise ValueError(f"{model_name} produced empty text")
                return text

        raise UpstreamUnavailableError(f"{model_name} gave no answer")
