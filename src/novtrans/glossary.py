from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, Pattern

import yaml

from .errors import ResponseDecodingError
from .models import GlossaryCategory, GlossaryEntry, GlossaryMatch


def _compile_term_pattern(term: str) -> Pattern[str]:
    # Offsets from re are always positions in the original text, even when
    # case folding would change the string length.
    return re.compile(re.escape(term), flags=re.IGNORECASE)


class GlossaryMatcher:
    """Naive case-insensitive substring scanner over glossary terms."""

    def __init__(self) -> None:
        self._patterns: dict[str, Pattern[str]] = {}

    def _pattern(self, term: str) -> Pattern[str]:
        pat = self._patterns.get(term)
        if pat is None:
            pat = _compile_term_pattern(term)
            self._patterns[term] = pat
        return pat

    def _scan(self, text: str, entry: GlossaryEntry, term: str, alias: str | None) -> list[GlossaryMatch]:
        return [
            GlossaryMatch(entry=entry, start=m.start(), end=m.end(), matched_alias=alias)
            for m in self._pattern(term).finditer(text)
        ]

    def detect_terms(self, text: str, glossary: Iterable[GlossaryEntry]) -> list[GlossaryMatch]:
        if not text:
            return []
        matches: list[GlossaryMatch] = []
        for entry in glossary:
            if not entry.is_active:
                continue
            original = entry.original_term
            if original:
                matches.extend(self._scan(text, entry, original, None))
            for alias in entry.aliases:
                if not alias:
                    continue
                # An alias spelled like the original term reports as the original.
                reported = None if alias.lower() == original.lower() else alias
                matches.extend(self._scan(text, entry, alias, reported))
        matches.sort(key=lambda m: m.start)
        return matches

    def detect_translations(self, text: str, glossary: Iterable[GlossaryEntry]) -> list[GlossaryMatch]:
        if not text:
            return []
        matches: list[GlossaryMatch] = []
        for entry in glossary:
            if not entry.is_active or not entry.translation.strip():
                continue
            matches.extend(self._scan(text, entry, entry.translation, None))
        matches.sort(key=lambda m: m.start)
        return matches


def unique_entries(matches: Iterable[GlossaryMatch]) -> list[GlossaryEntry]:
    seen: set[str] = set()
    out: list[GlossaryEntry] = []
    for match in matches:
        if match.entry.id in seen:
            continue
        seen.add(match.entry.id)
        out.append(match.entry)
    return out


def _pick(record: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def entry_from_record(record: dict[str, Any]) -> GlossaryEntry | None:
    original = str(_pick(record, "original_term", "originalTerm", "source", default="")).strip()
    translation = str(_pick(record, "translation", "target", default="")).strip()
    if not original:
        return None
    aliases_raw = _pick(record, "aliases", default=[]) or []
    if isinstance(aliases_raw, str):
        aliases_raw = [aliases_raw]
    aliases = [str(a).strip() for a in aliases_raw if str(a).strip()]
    return GlossaryEntry(
        original_term=original,
        translation=translation,
        category=GlossaryCategory.parse(_pick(record, "category", default="other")),
        context_description=str(_pick(record, "context_description", "contextDescription", default="")).strip(),
        aliases=aliases,
        is_active=bool(_pick(record, "is_active", "isActive", default=True)),
        usage_count=int(_pick(record, "usage_count", "usageCount", default=0)),
    )


def load_glossary(path: str | Path) -> list[GlossaryEntry]:
    """Load glossary entries from a YAML/JSON file.

    Accepts either a top-level list of entry mappings or a mapping with an
    `entries` (or `glossary`) list.
    """
    glossary_path = Path(path)
    text = glossary_path.read_text(encoding="utf-8")
    if glossary_path.suffix.strip().lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("entries", data.get("glossary", []))
    if not isinstance(data, list):
        raise ValueError(f"Glossary file must contain a list of entries: {glossary_path}")
    entries: list[GlossaryEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        entry = entry_from_record(item)
        if entry is not None:
            entries.append(entry)
    return entries


def glossary_to_records(entries: Iterable[GlossaryEntry]) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for entry in entries:
        record: dict[str, Any] = {
            "original_term": entry.original_term,
            "translation": entry.translation,
            "category": entry.category.value,
        }
        if entry.context_description:
            record["context_description"] = entry.context_description
        if entry.aliases:
            record["aliases"] = list(entry.aliases)
        if not entry.is_active:
            record["is_active"] = False
        if entry.usage_count:
            record["usage_count"] = entry.usage_count
        records.append(record)
    return records


def _strip_code_fence(text: str) -> str:
    m = re.match(r"^```[A-Za-z0-9_-]*\s*\n(.*)\n```\s*$", text, flags=re.DOTALL)
    return m.group(1) if m else text


def parse_glossary_response(text: str) -> list[GlossaryEntry]:
    """Decode a model's glossary-extraction answer into entries.

    The answer may be a JSON array or an object holding the array under any key.
    """
    raw = _strip_code_fence((text or "").strip())
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ResponseDecodingError(f"Glossary response is not valid JSON: {e}") from e

    items: Any = data
    if isinstance(data, dict):
        items = data.get("entries")
        if not isinstance(items, list):
            items = next((v for v in data.values() if isinstance(v, list)), [])
    if not isinstance(items, list):
        raise ResponseDecodingError(f"Unexpected glossary response schema: {type(data).__name__}")

    entries: list[GlossaryEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        entry = entry_from_record(item)
        if entry is not None:
            entries.append(entry)
    return entries
