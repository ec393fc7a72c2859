"""OpenAI chat-completions backend for the model invoker."""

from __future__ import annotations

import logging
from typing import Optional

from openai import OpenAI

from config.settings import Settings, settings as default_settings
from contract_risk.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class OpenAIBackend:
    """
    Sends analysis prompts to an OpenAI chat model.

    SDK exceptions propagate untouched; the invoker classifies them
    (``openai.RateLimitError`` carries ``status_code == 429``). The SDK's own
    retries are disabled so the invoker's policy is the only one in effect.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        *,
        temperature: float = 0.3,
        max_tokens: int = 8000,
        timeout: float = 120.0,
        client: Optional[OpenAI] = None,
    ) -> None:
        self.client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "OpenAIBackend":
        config = config or default_settings
        return cls(
            api_key=config.OPENAI_API_KEY or "",
            model=config.MODEL_NAME,
            temperature=config.MODEL_TEMPERATURE,
            max_tokens=config.MODEL_MAX_TOKENS,
            timeout=config.MODEL_TIMEOUT_SECONDS,
        )

    def generate(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            return ""
        content = response.choices[0].message.content or ""
        logger.debug(f"{self.model} returned {len(content)} characters")
        return content

    def __repr__(self) -> str:
        return f"<OpenAIBackend model={self.model!r}>"
