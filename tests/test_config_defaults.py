from __future__ import annotations

from pathlib import Path

import pytest

from novtrans.config import AppConfig, LLMSettings, load_config
from novtrans.models import Provider, TranslationConfig


def test_llm_settings_defaults():
    cfg = LLMSettings()
    assert cfg.provider == "mock"
    assert cfg.temperature == 0.3
    assert cfg.max_tokens == 8192
    assert cfg.stream is True


def test_translation_config_defaults():
    cfg = TranslationConfig()
    assert cfg.force_line_count_sync is False
    assert cfg.include_previous_context is False
    assert cfg.previous_context_chapter_count == 1
    assert cfg.line_count_policy == "warn"


def test_load_config_minimal_uses_defaults(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("llm:\n  provider: mock\n", encoding="utf-8")

    cfg = load_config(config_path)
    assert cfg == AppConfig()


def test_load_config_full(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "project_name: Demo\n"
        "source_language: Korean\n"
        "target_language: English\n"
        "glossary_path: glossary.yaml\n"
        "log_path: logs/run.log\n"
        "llm:\n"
        "  provider: OpenRouter\n"
        "  model: some/model\n"
        "  api_key_env: MY_ROUTER_KEY\n"
        "  temperature: 0.7\n"
        "  app_name: novtrans\n"
        "translation:\n"
        "  force_line_count_sync: true\n"
        "  include_previous_context: true\n"
        "  previous_context_chapter_count: 3\n"
        "  line_count_policy: STRICT\n",
        encoding="utf-8",
    )

    cfg = load_config(config_path)
    assert cfg.project_name == "Demo"
    assert cfg.glossary_path == str((tmp_path / "glossary.yaml").resolve())
    assert Path(cfg.log_path).name == "run.log"
    assert cfg.translation.line_count_policy == "strict"
    assert cfg.translation.previous_context_chapter_count == 3

    provider_config = cfg.llm.provider_config()
    assert provider_config.provider is Provider.OPENROUTER
    assert provider_config.api_key_identifier == "MY_ROUTER_KEY"
    assert provider_config.temperature == 0.7
    assert provider_config.app_name == "novtrans"


@pytest.mark.parametrize(
    "body",
    [
        "llm:\n  provider: nope\n",
        "translation:\n  line_count_policy: sometimes\n",
        "translation:\n  previous_context_chapter_count: 9\n",
    ],
)
def test_load_config_rejects_invalid_values(tmp_path, body):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(config_path)
