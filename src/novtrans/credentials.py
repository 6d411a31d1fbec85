from __future__ import annotations

import os
from typing import Mapping, Protocol

from .models import Provider

DEFAULT_KEY_IDENTIFIERS: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GOOGLE: "GEMINI_API_KEY",
    Provider.DEEPSEEK: "DEEPSEEK_API_KEY",
    Provider.OPENROUTER: "OPENROUTER_API_KEY",
    Provider.CUSTOM: "CUSTOM_LLM_API_KEY",
}


class CredentialStore(Protocol):
    def get(self, key: str) -> str | None: ...


class EnvCredentialStore:
    """Looks secrets up in the process environment."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def get(self, key: str) -> str | None:
        value = self._environ.get(key)
        if value is None or not value.strip():
            return None
        return value.strip()


class MappingCredentialStore:
    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def get(self, key: str) -> str | None:
        value = self._values.get(key)
        return value.strip() if value and value.strip() else None


def key_identifier_for(provider: Provider, explicit: str | None = None) -> str | None:
    if explicit:
        return explicit
    return DEFAULT_KEY_IDENTIFIERS.get(provider)
