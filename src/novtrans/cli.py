from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from .config import AppConfig, load_config
from .errors import LLMServiceError, TranslationError
from .glossary import glossary_to_records, load_glossary
from .llm import build_llm_client
from .models import GlossaryCategory, TranslationProject
from .pipeline import translate_text_files
from .prompts import build_glossary_extraction_prompt
from .usage import UsageTotals


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="novtrans", description="LLM novel translator with glossary and version tracking.")
    sub = p.add_subparsers(dest="cmd", required=True)

    t = sub.add_parser("translate", help="Translate plain-text chapter files.")
    t.add_argument("inputs", nargs="+", help="Chapter text files, in chapter order.")
    t.add_argument("--config", "-c", required=True, help="Path to YAML config")
    t.add_argument("--output-dir", "-o", required=True, help="Directory for translated chapters")
    t.add_argument("--model", default=None, help="Override llm.model from config.")
    t.add_argument("--no-stream", action="store_true", help="Use non-streaming requests.")
    t.add_argument("--force-line-sync", action="store_true", help="Enable line-count sync markers.")
    t.add_argument("--log", default=None, help="Write a log file to this path.")

    c = sub.add_parser("count-tokens", help="Count prompt tokens for a text file.")
    c.add_argument("input", help="Text file")
    c.add_argument("--config", "-c", required=True, help="Path to YAML config")
    c.add_argument("--model", default=None, help="Override llm.model from config.")

    m = sub.add_parser("models", help="List models offered by the configured provider.")
    m.add_argument("--config", "-c", required=True, help="Path to YAML config")

    g = sub.add_parser("extract-glossary", help="Ask the model for new glossary terms from a translated pair.")
    g.add_argument("--config", "-c", required=True, help="Path to YAML config")
    g.add_argument("--source", required=True, help="Source text file")
    g.add_argument("--translation", required=True, help="Translated text file")
    g.add_argument("--output", "-o", required=True, help="Where to write extracted entries (YAML)")
    g.add_argument(
        "--category",
        action="append",
        choices=[c.value for c in GlossaryCategory],
        default=None,
        help="Restrict extraction to a category (repeatable).",
    )
    g.add_argument("--query", default="", help="Additional instruction for the model.")
    g.add_argument("--no-context", action="store_true", help="Ask for empty context descriptions.")
    return p


def _with_model(cfg: AppConfig, model: str | None) -> AppConfig:
    if model is None:
        return cfg
    return replace(cfg, llm=replace(cfg.llm, model=model))


def _print_summary(project: TranslationProject, usage: UsageTotals) -> None:
    stats = project.stats
    snap = usage.snapshot()
    print(f"Chapters: {stats.completed_chapters}/{stats.total_chapters}")
    print(f"Words: {stats.translated_words}/{stats.total_words}")
    print(f"Tokens: {stats.total_tokens_used} (in={snap['input_tokens']}, out={snap['output_tokens']})")
    print(f"Average time: {stats.average_translation_time:.2f}s")
    print(f"Estimated cost: {stats.estimated_cost:.6f} {snap['currency']}")


def _run(args: argparse.Namespace) -> int:
    cfg = _with_model(load_config(args.config), getattr(args, "model", None))

    if args.cmd == "translate":
        if args.no_stream:
            cfg = replace(cfg, llm=replace(cfg.llm, stream=False))
        if args.force_line_sync:
            cfg = replace(cfg, translation=replace(cfg.translation, force_line_count_sync=True))
        if args.log is not None:
            cfg = replace(cfg, log_path=str(args.log))
        project, usage = translate_text_files([Path(p) for p in args.inputs], Path(args.output_dir), cfg)
        _print_summary(project, usage)
        return 0

    client = build_llm_client(cfg.llm.provider_config())

    if args.cmd == "count-tokens":
        text = Path(args.input).read_text(encoding="utf-8")
        print(client.count_tokens(text, cfg.llm.model))
        return 0

    if args.cmd == "models":
        for name in client.fetch_available_models():
            print(name)
        return 0

    if args.cmd == "extract-glossary":
        existing = load_glossary(cfg.glossary_path) if cfg.glossary_path else []
        categories = [GlossaryCategory(c) for c in args.category] if args.category else None
        prompt = build_glossary_extraction_prompt(
            Path(args.source).read_text(encoding="utf-8"),
            Path(args.translation).read_text(encoding="utf-8"),
            existing,
            cfg.source_language,
            cfg.target_language,
            categories=categories,
            additional_query=args.query,
            fill_context=not args.no_context,
        )
        entries = client.extract_glossary(prompt, cfg.llm.model, cfg.llm.provider_config())
        known = {e.original_term.lower() for e in existing}
        fresh = [e for e in entries if e.original_term.lower() not in known]
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            yaml.safe_dump({"entries": glossary_to_records(fresh)}, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        print(f"Extracted {len(fresh)} new term(s): {out_path}")
        return 0

    print(f"Unknown command: {args.cmd}", file=sys.stderr)
    return 2


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return _run(args)
    except (LLMServiceError, TranslationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
