from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import yaml

from . import line_sync
from .models import GlossaryCategory, GlossaryEntry, GlossaryMatch, PromptPreset, TranslationConfig

DEFAULT_PROMPT_TEMPLATE = """You are an expert novel translator. Your task is to translate the following text from {{SOURCE_LANGUAGE}} to {{TARGET_LANGUAGE}}.
Preserve the original tone, style, and formatting, including line breaks.
Do not add any markers such as "Translation:" or any kind of prelude text at the beginning of the translation, just present the translated content directly.
{{GLOSSARY}}
Now, translate the following text:
--- TEXT TO TRANSLATE START ---
{{TEXT}}
--- TEXT TO TRANSLATE END ---"""

GLOSSARY_DIRECTIVE = "CRITICAL: You MUST use the following translations for specific terms. Do not deviate from them."
GLOSSARY_START = "--- GLOSSARY START ---"
GLOSSARY_END = "--- GLOSSARY END ---"

EXAMPLE_DIRECTIVE = "Here is an example of the desired translation style and format. Follow it carefully."

PREVIOUS_CONTEXT_DIRECTIVE = (
    "For consistency, here is the translation of the preceding chapter(s). "
    "Use it only as a reference for names, tone, and style. Do not translate or repeat it."
)
PREVIOUS_CONTEXT_SEPARATOR = "\n\n---\n\n"

# Substituted values are never rescanned, so text containing "{{...}}" stays literal.
_PLACEHOLDER_RE = re.compile(r"\{\{(SOURCE_LANGUAGE|TARGET_LANGUAGE|TEXT|GLOSSARY)\}\}")


def build_glossary_block(matches: Iterable[GlossaryMatch]) -> str:
    """Render matched entries as a categorized glossary block, or "" when nothing matched."""
    unique: dict[str, GlossaryEntry] = {}
    for match in matches:
        unique.setdefault(match.entry.id, match.entry)
    if not unique:
        return ""

    by_category: dict[GlossaryCategory, list[GlossaryEntry]] = {}
    for entry in unique.values():
        by_category.setdefault(entry.category, []).append(entry)

    body = ""
    for category in sorted(by_category, key=lambda c: c.display_name):
        body += f"[{category.display_name}]\n"
        for entry in sorted(by_category[category], key=lambda e: e.original_term):
            line = f"{entry.original_term} -> {entry.translation}"
            if entry.context_description:
                line += f" | Context: {entry.context_description}"
            body += line + "\n"
        body += "\n"

    block = f"{GLOSSARY_DIRECTIVE}\n{GLOSSARY_START}\n{body}".strip()
    return f"{block}\n{GLOSSARY_END}\n\n"


def build_example_block(preset: PromptPreset | None, config: TranslationConfig) -> str | None:
    if preset is None or not preset.provide_example or not preset.example_raw_text:
        return None
    raw = preset.example_raw_text
    translated = preset.example_translated_text
    if config.force_line_count_sync:
        raw = line_sync.encode(raw)
        translated = line_sync.encode(translated)
    return (
        f"{EXAMPLE_DIRECTIVE}\n"
        "--- EXAMPLE START ---\n"
        f"[Source]:\n{raw}\n\n"
        f"[Translation]:\n{translated}\n"
        "--- EXAMPLE END ---"
    )


def build_previous_context_block(previous_context: str | None) -> str | None:
    text = (previous_context or "").strip()
    if not text:
        return None
    return (
        f"{PREVIOUS_CONTEXT_DIRECTIVE}\n"
        "--- PREVIOUS CONTEXT START ---\n"
        f"{text}\n"
        "--- PREVIOUS CONTEXT END ---"
    )


def build_translation_prompt(
    text: str,
    matches: Iterable[GlossaryMatch],
    source_language: str,
    target_language: str,
    preset: PromptPreset | None,
    config: TranslationConfig,
    previous_context: str | None = None,
) -> str:
    """Compose the request prompt. Pure: no I/O and no mutation of inputs."""
    components: list[str] = []

    example = build_example_block(preset, config)
    if example is not None:
        components.append(example)

    context_block = build_previous_context_block(previous_context)
    if context_block is not None:
        components.append(context_block)

    template = preset.prompt if preset is not None and preset.prompt else DEFAULT_PROMPT_TEMPLATE
    glossary_block = build_glossary_block(matches)

    if config.force_line_count_sync:
        components.append(line_sync.LINE_SYNC_INSTRUCTION)
        text = line_sync.encode(text)

    values = {
        "SOURCE_LANGUAGE": source_language,
        "TARGET_LANGUAGE": target_language,
        "TEXT": text,
        "GLOSSARY": glossary_block,
    }
    main = _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
    if "{{GLOSSARY}}" not in template and glossary_block:
        main = glossary_block + main
    components.append(main)

    return "\n\n".join(components).strip()


def build_glossary_extraction_prompt(
    source_text: str,
    translated_text: str,
    existing_glossary: Iterable[GlossaryEntry],
    source_language: str,
    target_language: str,
    categories: Iterable[GlossaryCategory] | None = None,
    additional_query: str = "",
    fill_context: bool = True,
) -> str:
    existing = "\n".join(f"- {e.original_term} -> {e.translation}" for e in existing_glossary)
    all_categories = list(GlossaryCategory)
    wanted = list(categories) if categories is not None else all_categories
    allowed = ", ".join(c.value for c in all_categories)

    rules = [
        '**DO NOT** extract terms that are already present in the "Existing Glossary" list.',
        "Focus on proper nouns, unique concepts, or recurring objects. Avoid common words.",
        "The `contextDescription` should be concise and based *only* on the provided texts.",
        'You **MUST** return your findings as a JSON object. This object must contain a single key, "entries", '
        "which holds an array of glossary objects.",
        'Each object in the "entries" array **MUST** conform to this schema:\n'
        "    - `originalTerm` (string, required): The term in the source language.\n"
        "    - `translation` (string, required): The term in the target language.\n"
        f"    - `category` (string, enum, required): The category of the term. Must be one of: {allowed}.\n"
        "    - `contextDescription` (string, optional): A brief explanation.",
        'If no new terms are found, you **MUST** return an empty array like this: `{"entries": []}`.',
    ]
    if len(wanted) < len(all_categories):
        rules.append(
            "Only extract terms belonging to the following categories: " + ", ".join(c.value for c in wanted) + "."
        )
    if not fill_context:
        rules.append("The `contextDescription` field for all extracted items **MUST** be an empty string.")
    if additional_query.strip():
        rules.append(f"Follow this additional instruction carefully: {additional_query.strip()}")

    numbered = "\n".join(f"{i}.  {rule}" for i, rule in enumerate(rules, start=1))
    return (
        "You are a linguistic expert tasked with expanding a glossary for a novel translation project. "
        "Analyze the provided source text and its professional translation. Identify new, important, or "
        "recurring terms (such as characters, places, special abilities, items, or concepts) that are NOT "
        "already in the existing glossary list.\n\n---\n\n"
        f"**CRITICAL INSTRUCTIONS:**\n{numbered}\n\n---\n\n"
        f"**EXISTING GLOSSARY (DO NOT EXTRACT THESE):**\n{existing or 'None'}\n\n---\n\n"
        f"**SOURCE TEXT ({source_language}):**\n{source_text}\n\n---\n\n"
        f"**TRANSLATED TEXT ({target_language}):**\n{translated_text}\n\n---\n\n"
        'Now, provide the JSON object with the "entries" key.'
    )


def load_prompt_preset(path: str | Path) -> PromptPreset:
    preset_path = Path(path)
    data = yaml.safe_load(preset_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Prompt preset must be a mapping: {preset_path}")
    example = data.get("example", {}) or {}
    return PromptPreset(
        name=str(data.get("name", preset_path.stem)),
        prompt=str(data.get("prompt", "") or ""),
        provide_example=bool(data.get("provide_example", bool(example))),
        example_raw_text=str(example.get("source", "") or ""),
        example_translated_text=str(example.get("translation", "") or ""),
    )
