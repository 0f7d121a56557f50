from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from npcdialogue.config import Settings

log = logging.getLogger(__name__)


class Provider(Enum):
    GEMINI = ("gemini", "Gemini", "{base_url}/models/{model}:generateContent")
    OLLAMA = ("ollama", "Ollama", "{base_url}/api/generate")
    OPENROUTER = ("openrouter", "OpenRouter", "{base_url}/chat/completions")

    def __init__(self, identifier: str, label: str, endpoint_template: str) -> None:
        self.identifier = identifier
        self.label = label
        self.endpoint_template = endpoint_template

    @classmethod
    def from_identifier(cls, identifier: str) -> Provider:
        normalized = (identifier or "").strip().lower()
        for provider in cls:
            if provider.identifier == normalized:
                return provider
        raise ValueError(f"unknown_provider identifier={identifier!r}")


class ProviderAdapter(ABC):
    """Stateless translation between a plain-text prompt and one backend's JSON schema."""

    provider: Provider

    @property
    @abstractmethod
    def model(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def base_url(self) -> str:
        raise NotImplementedError

    def endpoint(self) -> str:
        return self.provider.endpoint_template.format(base_url=self.base_url, model=self.model)

    @abstractmethod
    def encode(self, prompt: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def _extract(self, parsed: Any) -> Any:
        raise NotImplementedError

    def decode(self, body: str) -> str:
        """Return the first candidate utterance in ``body``, or "" when there is none.

        Malformed JSON and missing fields are treated the same as an empty reply;
        no parse error escapes this method.
        """
        try:
            parsed = json.loads(body)
            text = self._extract(parsed)
        except (ValueError, TypeError, KeyError, IndexError, AttributeError, RecursionError):
            log.debug("provider_decode_failed provider=%s", self.provider.identifier, exc_info=True)
            return ""
        if not isinstance(text, str):
            return ""
        return text.strip()


class GeminiAdapter(ProviderAdapter):
    provider = Provider.GEMINI

    def __init__(self, settings: Settings) -> None:
        self._model = settings.gemini_model
        self._base_url = settings.gemini_base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        return self._base_url

    def encode(self, prompt: str) -> dict[str, Any]:
        return {"contents": [{"parts": [{"text": prompt}]}]}

    def _extract(self, parsed: Any) -> Any:
        candidates = parsed.get("candidates") or []
        if not candidates:
            return ""
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        if not parts:
            return ""
        return parts[0].get("text")


class OllamaAdapter(ProviderAdapter):
    provider = Provider.OLLAMA

    def __init__(self, settings: Settings) -> None:
        self._model = settings.ollama_model
        self._base_url = settings.ollama_base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        return self._base_url

    def encode(self, prompt: str) -> dict[str, Any]:
        return {"model": self.model, "prompt": prompt, "stream": False}

    def _extract(self, parsed: Any) -> Any:
        return parsed.get("response")


class OpenRouterAdapter(ProviderAdapter):
    provider = Provider.OPENROUTER

    def __init__(self, settings: Settings) -> None:
        self._model = settings.openrouter_model
        self._base_url = settings.openrouter_base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        return self._base_url

    def encode(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _extract(self, parsed: Any) -> Any:
        choices = parsed.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content")


ADAPTER_TYPES: dict[Provider, type[ProviderAdapter]] = {
    Provider.GEMINI: GeminiAdapter,
    Provider.OLLAMA: OllamaAdapter,
    Provider.OPENROUTER: OpenRouterAdapter,
}


def build_adapters(settings: Settings) -> dict[Provider, ProviderAdapter]:
    return {provider: adapter_type(settings) for provider, adapter_type in ADAPTER_TYPES.items()}


def encode_for(adapters: dict[Provider, ProviderAdapter], provider: Provider, prompt: str) -> dict[str, Any]:
    """Build the request payload for ``provider``; an empty dict means no adapter handles it."""
    adapter = adapters.get(provider)
    if adapter is None:
        return {}
    return adapter.encode(prompt)
