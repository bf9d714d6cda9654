from abc import ABC, abstractmethod

from schemas import AIResponse


class BlockedException(RuntimeError):
    """Raised when an AI provider refuses to generate content."""

    def __init__(self, *, reason: str):
        super().__init__(reason)
        self.reason = reason


class AIClient(ABC):
    @abstractmethod
    async def generate_content(
        self,
        message: str,
        prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> AIResponse:
        pass
