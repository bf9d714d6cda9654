import logging

from openai import AsyncOpenAI, PermissionDeniedError
from openai.types.chat import ChatCompletion
from opentelemetry.trace import SpanKind

from ai_client import AIClient, BlockedException
from open_telemetry import Telemetry
from schemas import AIResponse, TokenUsage

logger = logging.getLogger(__name__)


class OpenAIClient(AIClient):
    def __init__(
        self,
        api_key: str,
        model_name: str,
        telemetry: Telemetry,
        max_tokens: int = 10000,
        temperature: float = 0.7,
        base_url: str | None = None,
    ):
        if not api_key:
            raise ValueError("OpenAI API key not provided!")
        if not model_name:
            raise ValueError("OpenAI model name not provided!")

        self.model = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.telemetry = telemetry

    def _track_completion_metrics(self, completion: ChatCompletion, model_name: str) -> TokenUsage:
        usage = completion.usage
        if usage is None:
            return TokenUsage()

        token_usage = TokenUsage(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        )
        self.telemetry.track_token_usage(
            prompt_tokens=token_usage.prompt_tokens,
            completion_tokens=token_usage.completion_tokens,
            total_tokens=token_usage.total_tokens,
            attributes={"service": "OPENAI", "model": model_name},
        )
        return token_usage

    def _handle_api_exception(self, e: Exception, timer, base_attrs: dict) -> None:
        """Record the failed request and raise the matching exception."""
        is_blocked = isinstance(e, PermissionDeniedError)
        attrs = {
            **base_attrs,
            "outcome": "blocked" if is_blocked else "error",
            "error_type": type(e).__name__,
        }
        self.telemetry.metrics.llm_latency.record(timer(), attrs)
        self.telemetry.metrics.llm_requests.add(1, attrs)

        if is_blocked:
            raise BlockedException(reason=f"Content violates safety guidelines: {str(e)}") from e
        raise e

    async def generate_content(
        self,
        message: str,
        prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> AIResponse:
        model_name = model or self.model_name
        base_attrs = {"service": "OPENAI", "model": model_name}

        async with self.telemetry.async_create_span(
            "generate_content",
            kind=SpanKind.CLIENT,
            attributes=base_attrs,
        ) as span:
            messages = []
            if prompt:
                messages.append({"role": "system", "content": prompt})
            messages.append({"role": "user", "content": message})

            span.set_attribute("message_length", len(message))
            logger.info(f"OpenAI request: model={model_name}, message length={len(message)}")

            timer = self.telemetry.metrics.timer()
            try:
                completion = await self.model.chat.completions.create(
                    model=model_name,
                    messages=messages,
                    temperature=temperature if temperature is not None else self.temperature,
                    max_tokens=max_tokens or self.max_tokens,
                )
            except Exception as e:
                self._handle_api_exception(e, timer, base_attrs)

            attrs = {**base_attrs, "outcome": "success"}
            self.telemetry.metrics.llm_latency.record(timer(), attrs)
            self.telemetry.metrics.llm_requests.add(1, attrs)

            usage = self._track_completion_metrics(completion, model_name)
            content = completion.choices[0].message.content or ""

            return AIResponse(content=content, model=completion.model or model_name, usage=usage)
