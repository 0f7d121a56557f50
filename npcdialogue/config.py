from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    dev_mode: bool = os.getenv("DEV_MODE", "0") == "1"
    llm_provider: str = os.getenv("LLM_PROVIDER", "gemini").strip().lower()
    llm_api_key: str | None = os.getenv("LLM_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-pro")
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    ).rstrip("/")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama2")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/")
    openrouter_model: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-3.5-turbo")
    openrouter_base_url: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1").rstrip("/")
    llm_connect_timeout_seconds: float = _env_float("LLM_CONNECT_TIMEOUT_SECONDS", 30.0)
    llm_read_timeout_seconds: float = _env_float("LLM_READ_TIMEOUT_SECONDS", 30.0)
    dialogue_workers: int = _env_int("DIALOGUE_WORKERS", 4)

    def __post_init__(self) -> None:
        for name in ("llm_connect_timeout_seconds", "llm_read_timeout_seconds"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a finite positive number, got {value!r}")
        if self.dialogue_workers < 1:
            raise ValueError("dialogue_workers must be at least 1")

    @property
    def llm_timeout(self) -> tuple[float, float]:
        return (self.llm_connect_timeout_seconds, self.llm_read_timeout_seconds)

    def redacted(self) -> dict[str, object]:
        return {
            "dev_mode": self.dev_mode,
            "llm_provider": self.llm_provider,
            "llm_api_key_set": bool(self.llm_api_key),
            "gemini_model": self.gemini_model,
            "gemini_base_url": self.gemini_base_url,
            "ollama_model": self.ollama_model,
            "ollama_base_url": self.ollama_base_url,
            "openrouter_model": self.openrouter_model,
            "openrouter_base_url": self.openrouter_base_url,
            "llm_connect_timeout_seconds": self.llm_connect_timeout_seconds,
            "llm_read_timeout_seconds": self.llm_read_timeout_seconds,
            "dialogue_workers": self.dialogue_workers,
        }


def configure_logging(dev_mode: bool) -> None:
    level = logging.DEBUG if dev_mode else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
