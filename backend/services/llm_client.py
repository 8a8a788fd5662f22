"""LLM Client for Groq API integration."""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, CHAT_MODEL, LLM_TIMEOUT
from services.errors import LLMClientError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


class LLMClient:
    """Async client for the Groq chat completion API.

    Without an API key the client is unconfigured; callers check
    `configured` and fall back to their degraded behaviour.
    """

    def __init__(
        self,
        api_key: Optional[str] = GROQ_API_KEY,
        model: str = CHAT_MODEL,
        timeout: float = LLM_TIMEOUT,
        temperature: float = 0.7,
        max_tokens: int = 500
    ):
        """
        Initialize LLM client.

        Args:
            api_key: Groq API key; None or empty leaves the client unconfigured
            model: Chat model name
            timeout: Seconds before a single completion call is abandoned
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self.api_key = api_key or None
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = AsyncGroq(api_key=self.api_key) if self.api_key else None

        if self.configured:
            logger.info(f"LLMClient initialized with model: {model}")
        else:
            logger.warning("GROQ_API_KEY not configured, answers will use degraded mode")

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Generate a completion and return only its text."""
        response = await self.generate(system_prompt, user_prompt)
        return response.text

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """
        Generate response using Groq API.

        Args:
            system_prompt: Fixed instructions for the model
            user_prompt: Context and question

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        if not self.configured:
            raise LLMClientError(
                code="NOT_CONFIGURED",
                message="Generative provider is not configured",
                details={"model": self.model}
            )

        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {self.model}")

            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt}
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature
                ),
                timeout=self.timeout
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content or "No answer generated."
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={self.model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=self.model
            )

        except RateLimitError as e:
            raise self._error("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.", start_time, e)
        except AuthenticationError as e:
            raise self._error("AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.", start_time, e)
        except (APITimeoutError, asyncio.TimeoutError) as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out. Please try again.", start_time, e)
        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {e}", start_time, e)
        except Exception as e:
            raise self._error("UNKNOWN_ERROR", f"Unexpected error: {e}", start_time, e)

    def _error(self, code: str, message: str, start_time: float, original: Exception) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details = {
            "model": self.model,
            "latency_ms": latency_ms,
            "original_error": str(original),
        }
        logger.error(
            f"{code}: model={self.model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": code}
        )
        return LLMClientError(code=code, message=message, details=details)
