"""Provider-specific generators.

Each class only knows how to open a streaming completion with its SDK;
create_generator() is the single place that looks at LLM_PROVIDER.
"""

import json
from typing import Callable, Dict, Iterator, Optional

import anthropic
import httpx
import openai
from google.api_core import exceptions as google_exceptions
from openai import OpenAI

from ..config import Settings, SUPPORTED_PROVIDERS
from ..log import get_logger
from .client import StreamingGenerator, TextGenerator
from .prompts import resolve_system_prompt

logger = get_logger("llm")


class OpenAIGenerator(StreamingGenerator):
    provider = "OpenAI"
    api_errors = (openai.OpenAIError,)

    def __init__(self, api_key: str, model: str, system_prompt: str, max_tokens: int = 0, client: Optional[OpenAI] = None):
        super().__init__(model, system_prompt, max_tokens)
        self.client = client or OpenAI(api_key=api_key)

    def stream(self, prompt: str) -> Iterator[str]:
        options = {}
        if self.max_tokens > 0:
            options["max_completion_tokens"] = self.max_tokens
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            stream=True,
            **options,
        )
        for chunk in response:
            if chunk.choices:
                yield chunk.choices[0].delta.content or ""


class AnthropicGenerator(StreamingGenerator):
    provider = "Anthropic"
    api_errors = (anthropic.AnthropicError,)

    def __init__(self, api_key: str, model: str, system_prompt: str, max_tokens: int = 1024, client: Optional[anthropic.Anthropic] = None):
        super().__init__(model, system_prompt, max_tokens)
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def stream(self, prompt: str) -> Iterator[str]:
        with self.client.messages.stream(
            model=self.model,
            max_tokens=self.max_tokens,
            system=self.system_prompt,
            messages=[{"role": "user", "content": prompt}],
        ) as stream:
            for text in stream.text_stream:
                yield text


class GoogleAIGenerator(StreamingGenerator):
    provider = "GoogleAI"
    # chunk.text raises ValueError when a candidate was blocked
    api_errors = (google_exceptions.GoogleAPIError, ValueError)

    def __init__(self, api_key: str, model: str, system_prompt: str, max_tokens: int = 0, client=None):
        super().__init__(model, system_prompt, max_tokens)
        if client is None:
            # deferred: the SDK emits a FutureWarning on import
            import google.generativeai as genai

            genai.configure(api_key=api_key)
            client = genai.GenerativeModel(model, system_instruction=system_prompt)
        self.client = client

    def stream(self, prompt: str) -> Iterator[str]:
        generation_config = {}
        if self.max_tokens > 0:
            generation_config["max_output_tokens"] = self.max_tokens
        response = self.client.generate_content(prompt, generation_config=generation_config, stream=True)
        for chunk in response:
            yield chunk.text


class OllamaGenerator(StreamingGenerator):
    provider = "Ollama"
    api_errors = (httpx.HTTPError, ValueError)

    def __init__(self, model: str, base_url: str, system_prompt: str, timeout: float = 120.0, client: Optional[httpx.Client] = None):
        super().__init__(model, system_prompt)
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def stream(self, prompt: str) -> Iterator[str]:
        body = {
            "model": self.model,
            "stream": True,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        # Ollama streams newline-delimited JSON objects
        with self.client.stream("POST", "/api/chat", json=body) as resp:
            resp.raise_for_status()
            for line in resp.iter_lines():
                if not line:
                    continue
                data = json.loads(line)
                if data.get("error"):
                    raise ValueError(data["error"])
                yield data.get("message", {}).get("content", "")
                if data.get("done"):
                    break


def _openai(settings: Settings, system_prompt: str) -> TextGenerator:
    return OpenAIGenerator(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, system_prompt, settings.OPENAI_MAX_TOKENS)


def _ollama(settings: Settings, system_prompt: str) -> TextGenerator:
    return OllamaGenerator(settings.OLLAMA_MODEL, settings.OLLAMA_BASE_URL, system_prompt)


def _anthropic(settings: Settings, system_prompt: str) -> TextGenerator:
    return AnthropicGenerator(settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_MODEL, system_prompt, settings.ANTHROPIC_MAX_TOKENS)


def _googleai(settings: Settings, system_prompt: str) -> TextGenerator:
    return GoogleAIGenerator(settings.GOOGLEAI_API_KEY, settings.GOOGLEAI_MODEL, system_prompt, settings.GOOGLEAI_MAX_TOKENS)


FACTORIES: Dict[str, Callable[[Settings, str], TextGenerator]] = {
    "openai": _openai,
    "ollama": _ollama,
    "anthropic": _anthropic,
    "googleai": _googleai,
}


def create_generator(settings: Settings) -> TextGenerator:
    """Build the generator selected by LLM_PROVIDER."""
    factory = FACTORIES.get(settings.LLM_PROVIDER)
    if factory is None:
        raise ValueError(
            f"unsupported LLM provider: {settings.LLM_PROVIDER!r} (expected one of {', '.join(SUPPORTED_PROVIDERS)})"
        )
    generator = factory(settings, resolve_system_prompt(settings))
    logger.info(f"Using {generator!r} via {settings.LLM_PROVIDER}")
    return generator
