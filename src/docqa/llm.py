from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Any, Callable, Protocol

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
    wait_none,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = (
    "The inference service is rate limiting requests. "
    "Please wait 10-20 seconds and try again."
)


class LLMClientError(RuntimeError):
    pass


class RateLimitedError(LLMClientError):
    def __init__(self, message: str = RATE_LIMITED_MESSAGE) -> None:
        super().__init__(message)


class InferenceAPIError(LLMClientError):
    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


Message = dict[str, str]


class LLMClient(Protocol):
    def complete(
        self,
        *,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> str: ...


@dataclass(frozen=True)
class RetryPolicy:
    """How often a rate-limited call is attempted, and how long to wait in between.

    ``delays[i]`` is the pause before attempt ``i + 2``; when the tuple is shorter
    than the attempt budget the last entry is reused, and an empty tuple means
    retry immediately.
    """

    max_attempts: int = 1
    delays: tuple[float, ...] = ()

    def wait_strategy(self) -> wait_base:
        if not self.delays:
            return wait_none()
        return wait_chain(*(wait_fixed(delay) for delay in self.delays))


NO_RETRY = RetryPolicy()


class ChatCompletionClient:
    """Client for any provider exposing an OpenAI-style ``/chat/completions`` endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str = "",
        timeout_seconds: float | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._extra_headers = dict(extra_headers or {})

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        *,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> str:
        headers = {"Content-Type": "application/json", **self._extra_headers}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        response = httpx.post(
            f"{self._base_url}/chat/completions",
            json={
                "model": self._model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            headers=headers,
            timeout=self._timeout_seconds,
        )

        if response.status_code == 429:
            raise RateLimitedError()
        if response.status_code < 200 or response.status_code >= 300:
            body = _safe_json(response)
            raise InferenceAPIError(
                f"Inference API error: {response.status_code} - {json.dumps(body)}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise InferenceAPIError(
                "Invalid chat completion payload: body is not JSON",
                status_code=response.status_code,
            ) from exc

        return _parse_content(payload, status_code=response.status_code)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _parse_content(payload: Any, *, status_code: int) -> str:
    if not isinstance(payload, dict):
        raise InferenceAPIError(
            "Invalid chat completion payload: expected a JSON object",
            status_code=status_code,
            body=payload,
        )

    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        code = error.get("code") if isinstance(error, dict) else None
        if code in (429, "429", "rate_limit_exceeded"):
            raise RateLimitedError()
        raise InferenceAPIError(
            message or "Inference API returned an error",
            status_code=status_code,
            body=payload,
        )

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise InferenceAPIError(
            "Invalid chat completion payload: missing choices",
            status_code=status_code,
            body=payload,
        )

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise InferenceAPIError(
            "Invalid chat completion payload: missing assistant content",
            status_code=status_code,
            body=payload,
        )

    return content.strip()


def _log_retry(retry_state: RetryCallState) -> None:
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "rate limited; retrying attempt=%d in %.1fs", retry_state.attempt_number + 1, delay
    )


def complete_with_retry(
    client: LLMClient,
    *,
    messages: list[Message],
    temperature: float,
    max_tokens: int,
    policy: RetryPolicy = NO_RETRY,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    retrying = Retrying(
        retry=retry_if_exception_type(RateLimitedError),
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=policy.wait_strategy(),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(
        client.complete,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )
