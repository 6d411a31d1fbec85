from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import Provider, ProviderConfig, TranslationConfig

LINE_COUNT_POLICIES = {"off", "warn", "strict"}
MAX_PREVIOUS_CONTEXT_CHAPTERS = 5


@dataclass(frozen=True)
class LLMSettings:
    provider: str = "mock"  # see models.Provider
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    # Name of the environment variable / credential key holding the API key.
    api_key_env: str | None = None
    temperature: float = 0.3
    max_tokens: int = 8192
    timeout_s: float = 120.0
    stream: bool = True
    site_url: str | None = None
    app_name: str | None = None

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(
            provider=Provider(self.provider),
            api_key_identifier=self.api_key_env,
            base_url=self.base_url,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_s=self.timeout_s,
            site_url=self.site_url,
            app_name=self.app_name,
        )


@dataclass(frozen=True)
class AppConfig:
    llm: LLMSettings = field(default_factory=LLMSettings)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    project_name: str = "Untitled"
    source_language: str = "Japanese"
    target_language: str = "English"
    glossary_path: str | None = None
    preset_path: str | None = None
    pricing_path: str | None = None
    pricing_currency: str = "USD"
    log_path: str | None = None


def _resolve_optional_path(base_dir: Path, value: Any) -> str | None:
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    path = Path(raw)
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)


def _normalize_choice(value: Any, *, field_name: str, allowed: set[str], default: str) -> str:
    raw = str(default if value is None else value).strip().lower()
    if raw not in allowed:
        allowed_list = ", ".join(sorted(allowed))
        raise ValueError(f"Invalid value for {field_name}: {raw!r}. Allowed: {allowed_list}")
    return raw


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def load_config(path: str | Path) -> AppConfig:
    cfg_path = Path(path)
    data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {cfg_path}")
    base_dir = cfg_path.parent

    llm_data = data.get("llm", {}) or {}
    llm = LLMSettings(
        provider=_normalize_choice(
            llm_data.get("provider"),
            field_name="llm.provider",
            allowed={p.value for p in Provider},
            default="mock",
        ),
        model=str(llm_data.get("model", "gpt-4o-mini")),
        base_url=_optional_str(llm_data.get("base_url")),
        api_key_env=_optional_str(llm_data.get("api_key_env")),
        temperature=float(llm_data.get("temperature", 0.3)),
        max_tokens=int(llm_data.get("max_tokens", 8192)),
        timeout_s=float(llm_data.get("timeout_s", 120.0)),
        stream=bool(llm_data.get("stream", True)),
        site_url=_optional_str(llm_data.get("site_url")),
        app_name=_optional_str(llm_data.get("app_name")),
    )

    tr_data = data.get("translation", {}) or {}
    context_count = int(tr_data.get("previous_context_chapter_count", 1))
    if not 1 <= context_count <= MAX_PREVIOUS_CONTEXT_CHAPTERS:
        raise ValueError(
            "translation.previous_context_chapter_count must be between 1 and "
            f"{MAX_PREVIOUS_CONTEXT_CHAPTERS}, got {context_count}"
        )
    translation = TranslationConfig(
        force_line_count_sync=bool(tr_data.get("force_line_count_sync", False)),
        include_previous_context=bool(tr_data.get("include_previous_context", False)),
        previous_context_chapter_count=context_count,
        line_count_policy=_normalize_choice(
            tr_data.get("line_count_policy"),
            field_name="translation.line_count_policy",
            allowed=LINE_COUNT_POLICIES,
            default="warn",
        ),
    )

    return AppConfig(
        llm=llm,
        translation=translation,
        project_name=str(data.get("project_name", "Untitled")),
        source_language=str(data.get("source_language", "Japanese")),
        target_language=str(data.get("target_language", "English")),
        glossary_path=_resolve_optional_path(base_dir, data.get("glossary_path")),
        preset_path=_resolve_optional_path(base_dir, data.get("preset_path")),
        pricing_path=_resolve_optional_path(base_dir, data.get("pricing_path")),
        pricing_currency=str(data.get("pricing_currency", "USD")),
        log_path=_resolve_optional_path(base_dir, data.get("log_path")),
    )
