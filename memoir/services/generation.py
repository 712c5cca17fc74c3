"""Chat completion services used for summaries, extraction and replies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from time import perf_counter, sleep
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import openai
import requests
from typing_extensions import Literal

from memoir.utils.exceptions import ConfigurationError, FailureStatus, GenerationError
from memoir.utils.metrics import ResponseTimeTracker, TokenUsageTracker
from memoir.utils.safety import RateLimiter, sanitize_input

logger = logging.getLogger(__name__)

ModelTier = Literal["full", "light"]


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged message sent to the generation service."""

    role: str
    content: str


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation knobs.

    ``tier`` selects between the full model and a cheaper one for auxiliary
    work such as query reformulation.
    """

    tier: ModelTier = "full"
    max_output_tokens: int = 1000
    temperature: float = 0.7


class GenerationService(Protocol):
    """Anything that can turn an ordered list of messages into text."""

    def complete(
        self, messages: Sequence[ChatMessage], options: GenerationOptions
    ) -> str:
        """Return the generated reply or raise :class:`GenerationError`."""


def classify_status_code(status_code: Optional[int]) -> FailureStatus:
    if status_code in (401, 403):
        return "authentication"
    if status_code == 429:
        return "rate_limit"
    if status_code in (408, 504):
        return "timeout"
    return "other"


def classify_openai_error(exc: BaseException) -> FailureStatus:
    """Map an exception raised by the ``openai`` SDK to a failure status."""

    if isinstance(exc, openai.AuthenticationError):
        return "authentication"
    if isinstance(exc, openai.RateLimitError):
        return "rate_limit"
    if isinstance(exc, openai.APITimeoutError):
        return "timeout"
    return classify_status_code(getattr(exc, "status_code", None))


class _RetryingChatService(ABC):
    """Shared retry, rate limiting and bookkeeping for chat providers."""

    def __init__(
        self,
        *,
        model: str,
        light_model: Optional[str],
        rate_limiter: Optional[RateLimiter],
        max_retries: int,
        retry_backoff: float,
        request_timeout: float,
        token_tracker: Optional[TokenUsageTracker],
        response_time_tracker: Optional[ResponseTimeTracker],
    ) -> None:
        if max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        if request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        self.model = model
        self.light_model = light_model or model
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._request_timeout = request_timeout
        self.token_tracker = token_tracker or TokenUsageTracker()
        self.response_time_tracker = response_time_tracker or ResponseTimeTracker()
        self._logger = logging.getLogger(self.__class__.__name__)

    def model_for(self, tier: ModelTier) -> str:
        return self.light_model if tier == "light" else self.model

    def complete(
        self, messages: Sequence[ChatMessage], options: GenerationOptions
    ) -> str:
        payload = [
            {"role": message.role, "content": sanitize_input(message.content)}
            for message in messages
        ]
        model = self.model_for(options.tier)

        attempt = 0
        while True:
            attempt += 1
            if self._rate_limiter is not None:
                self._rate_limiter.acquire()
            start = perf_counter()
            try:
                with self.response_time_tracker.track():
                    content, usage = self._invoke(model, payload, options)
            except GenerationError as exc:
                # Bad credentials do not improve with retries.
                if exc.status == "authentication" or attempt > self._max_retries:
                    raise
                sleep_time = min(30.0, self._retry_backoff**attempt)
                self._logger.warning(
                    "Retrying chat completion due to error",
                    extra={"error": str(exc), "status": exc.status, "attempt": attempt},
                )
                sleep(sleep_time)
                continue

            prompt_tokens, response_tokens = self.token_tracker.record(
                "\n".join(message["content"] for message in payload),
                content,
                prompt_tokens=usage.get("prompt_tokens"),
                response_tokens=usage.get("completion_tokens"),
            )
            self._logger.debug(
                "chat_completion",
                extra={
                    "model": model,
                    "duration": perf_counter() - start,
                    "prompt_tokens": prompt_tokens,
                    "response_tokens": response_tokens,
                    "attempt": attempt,
                },
            )
            return content

    @abstractmethod
    def _invoke(
        self,
        model: str,
        messages: List[Dict[str, str]],
        options: GenerationOptions,
    ) -> Tuple[str, Mapping[str, int]]:
        """Send one request and return the reply text and provider token counts."""
        raise NotImplementedError


class OpenAIChatService(_RetryingChatService):
    """Generation service backed by the OpenAI chat completions API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        light_model: Optional[str] = "gpt-4o-mini",
        api_base: Optional[str] = None,
        client: Optional[Any] = None,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 2,
        retry_backoff: float = 1.5,
        request_timeout: float = 60.0,
        token_tracker: Optional[TokenUsageTracker] = None,
        response_time_tracker: Optional[ResponseTimeTracker] = None,
    ) -> None:
        super().__init__(
            model=model,
            light_model=light_model,
            rate_limiter=rate_limiter or RateLimiter(rate=60, per=60.0),
            max_retries=max_retries,
            retry_backoff=retry_backoff,
            request_timeout=request_timeout,
            token_tracker=token_tracker,
            response_time_tracker=response_time_tracker,
        )
        if client is None:
            if not api_key:
                raise ConfigurationError(
                    "No API key configured for OpenAIChatService. Provide `client` or set `api_key`."
                )
            client_kwargs: Dict[str, Any] = {
                "api_key": api_key,
                "timeout": request_timeout,
                # Retries are handled here so failures are classified once.
                "max_retries": 0,
            }
            if api_base is not None:
                client_kwargs["base_url"] = api_base
            client = openai.OpenAI(**client_kwargs)
        self._client = client

    def _invoke(
        self,
        model: str,
        messages: List[Dict[str, str]],
        options: GenerationOptions,
    ) -> Tuple[str, Mapping[str, int]]:
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=options.max_output_tokens,
                temperature=options.temperature,
            )
        except openai.OpenAIError as exc:
            raise GenerationError(
                f"OpenAI chat completion failed: {exc}",
                status=classify_openai_error(exc),
            ) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise GenerationError("Empty response from OpenAI provider.")
        usage = getattr(response, "usage", None)
        counts: Dict[str, int] = {}
        if usage is not None:
            counts = {
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
            }
            counts = {key: value for key, value in counts.items() if value is not None}
        return content.strip(), counts


class HTTPChatService(_RetryingChatService):
    """Generation service for OpenAI-compatible ``/chat/completions`` endpoints.

    Useful for self-hosted gateways that speak the same wire format.
    """

    def __init__(
        self,
        *,
        url: str,
        model: str,
        light_model: Optional[str] = None,
        api_key: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 2,
        retry_backoff: float = 1.5,
        request_timeout: float = 60.0,
        token_tracker: Optional[TokenUsageTracker] = None,
        response_time_tracker: Optional[ResponseTimeTracker] = None,
    ) -> None:
        super().__init__(
            model=model,
            light_model=light_model,
            rate_limiter=rate_limiter,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
            request_timeout=request_timeout,
            token_tracker=token_tracker,
            response_time_tracker=response_time_tracker,
        )
        self.url = url
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._headers.update(extra_headers or {})

    def _invoke(
        self,
        model: str,
        messages: List[Dict[str, str]],
        options: GenerationOptions,
    ) -> Tuple[str, Mapping[str, int]]:
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": options.max_output_tokens,
            "temperature": options.temperature,
        }
        try:
            response = self._session.post(
                self.url,
                headers=self._headers,
                json=payload,
                timeout=self._request_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise GenerationError(f"Chat endpoint timed out: {exc}", status="timeout") from exc
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise GenerationError(
                f"Chat endpoint returned an error: {exc}",
                status=classify_status_code(status_code),
            ) from exc
        except (requests.RequestException, ValueError) as exc:
            raise GenerationError(f"Chat endpoint request failed: {exc}") from exc

        content: Optional[str] = None
        choices = data.get("choices") or []
        if choices and isinstance(choices[0], dict):
            message = choices[0].get("message") or {}
            content = message.get("content")
        if not content or not str(content).strip():
            raise GenerationError("Chat endpoint returned empty content.")
        usage = data.get("usage") or {}
        counts = {
            key: int(usage[key])
            for key in ("prompt_tokens", "completion_tokens")
            if isinstance(usage.get(key), int)
        }
        return str(content).strip(), counts


__all__ = [
    "ChatMessage",
    "GenerationOptions",
    "GenerationService",
    "HTTPChatService",
    "ModelTier",
    "OpenAIChatService",
    "classify_openai_error",
    "classify_status_code",
]
