"""
Model invocation with bounded rate-limit retry.

The :class:`ModelInvoker` is the only component that talks to the model
backend. It classifies every failure into one of the model-layer exceptions so
the pipeline can decide how to degrade:

    NoCredentialsError  - no backend configured, zero calls made
    RateLimitedError    - rate limited on every attempt (1 + max_retries)
    TransportError      - any other backend failure, never retried
    EmptyResponseError  - the call succeeded but returned no text

Example:
    >>> invoker = ModelInvoker.from_settings()
    >>> raw = invoker.invoke(prompt)
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Protocol, runtime_checkable

from config.settings import Settings, settings as default_settings
from contract_risk.exceptions import (
    EmptyResponseError,
    NoCredentialsError,
    RateLimitedError,
    TransportError,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429


@runtime_checkable
class ModelBackend(Protocol):
    """
    Protocol for model backends.

    Implementations perform one opaque network call. A rate-limit signal is
    either a ``RateLimitedError`` or any exception carrying
    ``status_code == 429`` (as the OpenAI SDK's ``RateLimitError`` does).
    """

    def generate(self, prompt: str) -> str:
        """Send the prompt and return the raw reply text."""
        ...


def is_rate_limit(error: BaseException) -> bool:
    """Check whether a backend exception signals rate limiting."""
    if isinstance(error, RateLimitedError):
        return True
    return getattr(error, "status_code", None) == RATE_LIMIT_STATUS


class ModelInvoker:
    """
    Calls the model backend, retrying only on rate-limit signals.

    Attributes:
        backend: The model backend, or None when no credential is configured.
        max_retries: Additional attempts after the first rate-limited call.
        base_delay: Delay before the first retry; doubles on each retry.
        max_jitter: Upper bound of the uniform random jitter added to a delay.
    """

    def __init__(
        self,
        backend: Optional[ModelBackend],
        *,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.backend = backend
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ModelInvoker":
        """
        Build an invoker wired to the OpenAI backend when a key is configured.

        A missing key yields an invoker without backend, whose every call
        raises NoCredentialsError.
        """
        config = config or default_settings
        backend: Optional[ModelBackend] = None
        if config.has_model_credentials:
            from contract_risk.backends import OpenAIBackend

            backend = OpenAIBackend.from_settings(config)
        else:
            logger.warning("OPENAI_API_KEY not set; model calls will use the fallback analyzer")

        return cls(
            backend,
            max_retries=config.RATE_LIMIT_MAX_RETRIES,
            base_delay=config.RATE_LIMIT_BASE_DELAY,
            max_jitter=config.RATE_LIMIT_MAX_JITTER,
        )

    def backoff_delay(self, retry: int) -> float:
        """Delay before the given retry (0-based): exponential plus jitter."""
        return self.base_delay * (2 ** retry) + random.uniform(0, self.max_jitter)

    def invoke(self, prompt: str) -> str:
        """
        Send the prompt to the model and return its raw reply.

        Args:
            prompt: The rendered analysis prompt. Calls are idempotent, so
                repeating them on rate limiting is always safe.

        Returns:
            The non-empty reply text.

        Raises:
            NoCredentialsError: If no backend is configured.
            RateLimitedError: If every attempt was rate limited.
            TransportError: On any other backend failure.
            EmptyResponseError: If the reply is empty.
        """
        if self.backend is None:
            raise NoCredentialsError()

        attempts = self.max_retries + 1
        last_exception: BaseException | None = None

        for attempt in range(attempts):
            try:
                raw = self.backend.generate(prompt)
            except Exception as e:
                if not is_rate_limit(e):
                    logger.error(f"Model call failed: {type(e).__name__}: {e}")
                    raise TransportError(
                        message=f"Model call failed: {e}",
                        error_type=type(e).__name__,
                    ) from e

                last_exception = e
                if attempt < self.max_retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"Rate limited on attempt {attempt + 1}/{attempts}, "
                        f"retrying in {delay:.2f}s"
                    )
                    self._sleep(delay)
                    continue
                logger.error(f"Rate limit persisted after {attempts} attempts")
                break

            if raw is None or not raw.strip():
                raise EmptyResponseError()
            logger.debug(f"Model replied with {len(raw)} characters on attempt {attempt + 1}")
            return raw

        raise RateLimitedError(
            message=f"Model API rate limit exceeded after {attempts} attempts: {last_exception}",
            attempts=attempts,
        ) from last_exception
