"""OpenAI chat client shared by analysis, question answering and quizzes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .config import Config, resolve_api_key
from .errors import ConfigurationError, RecapError, ServiceError

logger = logging.getLogger("recapframe.llm")

QUOTA_MESSAGE = (
    "OpenAI API quota exceeded. Please try again later or contact support "
    "if this persists."
)


def translate_error(exc: Exception) -> RecapError:
    """Map an OpenAI SDK exception onto the recapframe error kinds."""
    if isinstance(exc, RecapError):
        return exc
    if isinstance(exc, openai.AuthenticationError):
        return ConfigurationError(
            "Invalid API key. Please check your OpenAI API key configuration."
        )
    if isinstance(exc, openai.RateLimitError):
        return ServiceError(QUOTA_MESSAGE, quota=True, status=429)
    if isinstance(exc, openai.APIStatusError):
        return ServiceError(
            f"API error ({exc.status_code}): {exc.message}", status=exc.status_code
        )
    if isinstance(exc, openai.APIConnectionError):
        return ServiceError(f"Network error: {exc}")
    return ServiceError(f"Unexpected service error: {exc}")


class LanguageModelClient:
    """Thin wrapper over ``chat.completions`` with retries on network errors."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-3.5-turbo",
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: int = 3,
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
            kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
            if base_url:
                kwargs["base_url"] = base_url
            if timeout:
                kwargs["timeout"] = timeout
            client = OpenAI(**kwargs)
        self.client = client
        self.model = model
        self.max_attempts = max(1, int(max_attempts))

    @classmethod
    def from_config(cls, config: Config) -> "LanguageModelClient":
        return cls(
            api_key=resolve_api_key(config),
            model=config.service.chat_model,
            base_url=config.service.base_url,
            timeout=config.service.timeout_s,
            max_attempts=config.service.max_attempts,
        )

    def _create(self, **kwargs):
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(min=0.1, max=10),
            retry=retry_if_exception_type(openai.APIConnectionError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    return self.client.chat.completions.create(**kwargs)
        except Exception as exc:
            error = translate_error(exc)
            logger.error("Chat completion failed: %s", error.message)
            raise error from exc

    def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 1000,
        temperature: float = 0.7,
        json_object: bool = False,
        model: Optional[str] = None,
    ) -> str:
        """Return the text content of the first choice ('' when absent)."""
        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_object:
            kwargs["response_format"] = {"type": "json_object"}
        resp = self._create(**kwargs)
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    def call_function(
        self,
        messages: List[Dict[str, str]],
        function: Dict[str, Any],
        model: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Force a single tool call and return its raw JSON arguments."""
        resp = self._create(
            model=model or self.model,
            messages=messages,
            temperature=temperature,
            tools=[{"type": "function", "function": function}],
            tool_choice={"type": "function", "function": {"name": function["name"]}},
        )
        if not resp.choices:
            return ""
        tool_calls = resp.choices[0].message.tool_calls or []
        if not tool_calls:
            return ""
        return tool_calls[0].function.arguments or ""
