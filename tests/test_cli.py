from __future__ import annotations

from pathlib import Path

import yaml

from novtrans import cli
from novtrans.models import GlossaryCategory, GlossaryEntry


def _write_config(path: Path, extra: str = "") -> None:
    path.write_text(
        "source_language: Japanese\n"
        "target_language: English\n"
        "llm:\n"
        "  provider: mock\n"
        "  model: mock\n" + extra,
        encoding="utf-8",
    )


def test_cli_translate_writes_chapter_outputs(tmp_path, capsys):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, "glossary_path: glossary.yaml\n")
    (tmp_path / "glossary.yaml").write_text(
        "- original_term: Aria\n  translation: アリア\n  category: character\n", encoding="utf-8"
    )
    ch1 = tmp_path / "ch01.txt"
    ch2 = tmp_path / "ch02.txt"
    ch1.write_text("Aria woke up.\nIt was raining.", encoding="utf-8")
    ch2.write_text("Second chapter.", encoding="utf-8")
    out_dir = tmp_path / "out"

    rc = cli.main(["translate", str(ch1), str(ch2), "-c", str(cfg_path), "-o", str(out_dir), "--force-line-sync"])

    assert rc == 0
    assert (out_dir / "ch01.english.txt").read_text(encoding="utf-8") == "Aria woke up.\nIt was raining."
    assert (out_dir / "ch02.english.txt").read_text(encoding="utf-8") == "Second chapter."
    out = capsys.readouterr().out
    assert "Chapters: 2/2" in out
    assert "Words: 8/8" in out


def test_cli_count_tokens_uses_local_estimate(tmp_path, capsys):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path)
    text_path = tmp_path / "t.txt"
    text_path.write_text("one two three", encoding="utf-8")

    assert cli.main(["count-tokens", str(text_path), "-c", str(cfg_path)]) == 0
    assert capsys.readouterr().out.strip() == "4"


def test_cli_reports_unsupported_capability(tmp_path, capsys):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path)
    assert cli.main(["models", "-c", str(cfg_path)]) == 1
    assert "not implemented" in capsys.readouterr().err


def test_cli_extract_glossary_writes_only_new_terms(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, "glossary_path: glossary.yaml\n")
    (tmp_path / "glossary.yaml").write_text("- original_term: Aria\n  translation: アリア\n", encoding="utf-8")
    src = tmp_path / "src.txt"
    dst = tmp_path / "dst.txt"
    src.write_text("アリアは江戸へ行った。", encoding="utf-8")
    dst.write_text("Aria went to Edo.", encoding="utf-8")
    captured: dict[str, object] = {}

    class _FakeClient:
        def extract_glossary(self, prompt, model, config=None):  # noqa: ANN001
            captured["prompt"] = prompt
            return [
                GlossaryEntry("aria", "アリア", GlossaryCategory.CHARACTER),
                GlossaryEntry("Edo", "江戸", GlossaryCategory.PLACE, context_description="old Tokyo"),
            ]

    monkeypatch.setattr(cli, "build_llm_client", lambda config: _FakeClient())
    out_path = tmp_path / "new_terms.yaml"

    rc = cli.main(
        [
            "extract-glossary",
            "-c",
            str(cfg_path),
            "--source",
            str(src),
            "--translation",
            str(dst),
            "-o",
            str(out_path),
            "--category",
            "place",
        ]
    )

    assert rc == 0
    data = yaml.safe_load(out_path.read_text(encoding="utf-8"))
    assert data == {
        "entries": [
            {"original_term": "Edo", "translation": "江戸", "category": "place", "context_description": "old Tokyo"}
        ]
    }
    assert "- Aria -> アリア" in str(captured["prompt"])
    assert "following categories: place." in str(captured["prompt"])
