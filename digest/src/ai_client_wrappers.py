"""Retry wrapper for ``AIClient`` implementations."""

from __future__ import annotations

import logging

import backoff

from ai_client import AIClient, BlockedException
from open_telemetry import Telemetry
from schemas import AIResponse

logger = logging.getLogger(__name__)


class RetryAIClient(AIClient):
    """Apply configurable retry policy to an underlying async AI client.

    Can retry based on either max_time (seconds) or max_tries (attempts).
    Refusals (``BlockedException``) are never retried.
    """

    def __init__(
        self,
        delegate: AIClient,
        telemetry: Telemetry,
        max_time: int | None = None,
        max_tries: int | None = None,
        jitter: bool = False,
    ) -> None:
        if max_time is not None and max_tries is not None:
            raise ValueError("Cannot specify both max_time and max_tries")
        if max_time is None and max_tries is None:
            max_tries = 3

        self._delegate = delegate
        self._max_time = max_time
        self._max_tries = max_tries
        self._jitter = backoff.full_jitter if jitter else None
        self._telemetry = telemetry

    async def generate_content(
        self,
        message: str,
        prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> AIResponse:
        async with self._telemetry.async_create_span("retry_generate_content"):

            async def _do_call():
                return await self._delegate.generate_content(
                    message=message,
                    prompt=prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    model=model,
                )

            backoff_kwargs = {
                "wait_gen": backoff.expo,
                "exception": Exception,
                "jitter": self._jitter,
                "giveup": lambda e: isinstance(e, BlockedException),
                "on_backoff": lambda details: logger.warning(
                    f"LLM call failed (attempt {details['tries']}), retrying in {details['wait']:.1f}s"
                ),
            }

            if self._max_time is not None:
                backoff_kwargs["max_time"] = self._max_time
            else:
                backoff_kwargs["max_tries"] = self._max_tries

            wrapped = backoff.on_exception(**backoff_kwargs)(_do_call)
            return await wrapped()


__all__ = ["RetryAIClient"]
