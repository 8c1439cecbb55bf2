"""Text generation contract shared by every LLM provider.

Providers only implement stream(); buffering, live streaming to a sink and
error wrapping live in StreamingGenerator.generate().
"""

from typing import Iterator, Optional, Protocol, TextIO, Tuple, Type


class GenerationError(Exception):
    """Raised when a provider fails to produce text."""


class TextGenerator(Protocol):
    def generate(self, prompt: str, sink: Optional[TextIO] = None) -> str:
        ...


class StreamingGenerator:
    provider = "llm"
    # Exceptions a provider SDK raises for API or transport failures
    api_errors: Tuple[Type[BaseException], ...] = ()

    def __init__(self, model: str, system_prompt: str, max_tokens: int = 0):
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens

    def stream(self, prompt: str) -> Iterator[str]:
        raise NotImplementedError

    def generate(self, prompt: str, sink: Optional[TextIO] = None) -> str:
        """
        Run a completion for prompt.
        If sink is given, chunks are written to it as they arrive (debug use);
        the full text is returned either way.
        """
        parts = []
        try:
            for chunk in self.stream(prompt):
                if not chunk:
                    continue
                if sink is not None:
                    sink.write(chunk)
                    sink.flush()
                parts.append(chunk)
        except self.api_errors as e:
            raise GenerationError(f"failed to generate content from {self.provider}: {e}") from e

        text = "".join(parts).strip()
        if not text:
            raise GenerationError(f"{self.provider} returned an empty completion")
        return text

    def __repr__(self):
        return f"{self.__class__.__name__}(model={self.model!r})"
