# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Text generation through LiteLLM.

One LLMClient is built at startup and handed to the analysis narrative
generator, which only relies on the TextGenerator protocol below.

Providers: ollama (default, no key), openai, anthropic, google.

Example:
    >>> client = LLMClient()
    >>> if client.is_available():
    ...     reply = await client.chat(
    ...         [{"role": "user", "content": "Summarize this intervention"}],
    ...         temperature=0.3,
    ...     )
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

import litellm
from litellm import acompletion

from counseltrack.core.config.settings import LLMSettings, get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class TextGenerator(Protocol):
    """What the narrative generator needs from a language model."""

    def is_available(self) -> bool:
        ...

    async def chat(self, messages: list[dict[str, str]], temperature: float = 0.7) -> str:
        ...


@dataclass
class LLMResponse:
    """One completion with its token usage."""

    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"
    raw_response: Optional[object] = field(default=None, repr=False)

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class LLMError(Exception):
    """A completion could not be produced.

    Attributes:
        message: What went wrong.
        model: Model the call was made against.
        original_error: Provider exception, when there was one.
    """

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.model = model
        self.original_error = original_error
        super().__init__(message)


class LLMClient:
    """LiteLLM-backed TextGenerator.

    Constructor arguments override the matching LLMSettings values.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self._settings = llm_settings or get_settings().llm
        self.model = model or self._settings.get_default_model()
        self.timeout = timeout or self._settings.request_timeout
        self.max_retries = self._settings.max_retries if max_retries is None else max_retries

        # Providers reject parameters they do not know (e.g. max_tokens on some ollama models)
        litellm.drop_params = True

        logger.info("LLM client ready: model=%s enabled=%s", self.model, self._settings.enabled)

    def is_available(self) -> bool:
        """True when generation is enabled and the provider can be called."""
        return self._settings.enabled and self._settings.has_credentials

    def _call_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "timeout": self.timeout,
            "num_retries": self.max_retries,
        }
        if self._settings.default_provider == "ollama":
            options["api_base"] = self._settings.ollama_base_url
        api_key = self._settings.get_api_key()
        if api_key:
            options["api_key"] = api_key
        return options

    async def complete_with_messages(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        **kwargs: Any,
    ) -> LLMResponse:
        """Run one chat completion.

        Args:
            messages: OpenAI-style role/content dicts.
            model: Model for this call only.
            temperature: Sampling temperature.
            max_tokens: Completion length cap.
            **kwargs: Passed through to litellm.acompletion.

        Returns:
            LLMResponse with the reply text and token usage.

        Raises:
            ValueError: If messages is empty.
            LLMError: If the provider call fails.
        """
        if not messages:
            raise ValueError("At least one message is required")

        target = model or self.model
        try:
            response = await acompletion(
                model=target,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **self._call_options(),
                **kwargs,
            )
        except Exception as e:
            logger.error("Completion against %s failed: %s", target, str(e))
            raise LLMError(f"Completion failed: {e}", model=target, original_error=e) from e

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=target,
            tokens_input=getattr(usage, "prompt_tokens", 0) or 0,
            tokens_output=getattr(usage, "completion_tokens", 0) or 0,
            finish_reason=choice.finish_reason or "stop",
            raw_response=response,
        )

    async def chat(self, messages: list[dict[str, str]], temperature: float = 0.7) -> str:
        """Reply text only.

        Raises:
            LLMError: If generation is unavailable or the call fails.
        """
        if not self.is_available():
            raise LLMError("Text generation is disabled or has no credentials", model=self.model)

        response = await self.complete_with_messages(messages, temperature=temperature)
        return response.content

    def __repr__(self) -> str:
        return f"LLMClient(model={self.model!r}, enabled={self._settings.enabled})"
