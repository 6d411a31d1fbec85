from __future__ import annotations

import pytest

from novtrans.errors import ResponseDecodingError
from novtrans.glossary import (
    GlossaryMatcher,
    glossary_to_records,
    load_glossary,
    parse_glossary_response,
    unique_entries,
)
from novtrans.models import GlossaryCategory, GlossaryEntry


def _entry(original: str, translation: str, category=GlossaryCategory.OTHER, **kwargs) -> GlossaryEntry:  # noqa: ANN001,ANN003
    return GlossaryEntry(original_term=original, translation=translation, category=category, **kwargs)


def test_detect_terms_returns_matches_in_text_order():
    sword = _entry("Sword", "剣", GlossaryCategory.OBJECT)
    aria = _entry("Aria", "アリア", GlossaryCategory.CHARACTER)
    matches = GlossaryMatcher().detect_terms("Aria drew her Sword", [sword, aria])

    assert [(m.entry.original_term, m.start, m.end) for m in matches] == [("Aria", 0, 4), ("Sword", 14, 19)]
    assert all(m.matched_alias is None for m in matches)


def test_detect_terms_is_case_insensitive_and_non_overlapping():
    entry = _entry("aa", "x")
    matches = GlossaryMatcher().detect_terms("AAAa aA", [entry])
    assert [(m.start, m.end) for m in matches] == [(0, 2), (2, 4), (5, 7)]


def test_detect_terms_reports_alias_and_skips_empty_aliases():
    entry = _entry("Kirito", "Kirito-EN", aliases=["", "Kirigaya", "KIRITO"])
    matches = GlossaryMatcher().detect_terms("Kirigaya, also known as Kirito.", [entry])

    by_start = [(m.start, m.matched_alias) for m in matches]
    assert (0, "Kirigaya") in by_start
    assert (24, None) in by_start
    starts = [m.start for m in matches]
    assert starts == sorted(starts)


def test_detect_terms_skips_inactive_entries():
    active = _entry("Aria", "A")
    inactive = _entry("Sword", "S", is_active=False)
    matches = GlossaryMatcher().detect_terms("Aria drew her Sword", [active, inactive])
    assert [m.entry.id for m in matches] == [active.id]


def test_detect_terms_keeps_overlapping_matches_of_different_entries():
    long_entry = _entry("Dark Lord", "Maou")
    short_entry = _entry("Lord", "Sama")
    matches = GlossaryMatcher().detect_terms("The Dark Lord", [long_entry, short_entry])
    assert len(matches) == 2
    assert len(unique_entries(matches)) == 2


def test_detect_translations_scans_translation_and_skips_blank():
    hero = _entry("Aria", "Ария")
    blank = _entry("Sword", "   ")
    inactive = _entry("Shield", "Щит", is_active=False)
    matches = GlossaryMatcher().detect_translations("ария и Щит", [hero, blank, inactive])
    assert [(m.entry.id, m.start, m.matched_alias) for m in matches] == [(hero.id, 0, None)]


def test_matcher_ignores_empty_text():
    assert GlossaryMatcher().detect_terms("", [_entry("a", "b")]) == []


def test_unique_entries_preserves_first_occurrence_order():
    a = _entry("a", "1")
    b = _entry("b", "2")
    matches = GlossaryMatcher().detect_terms("b a b a", [a, b])
    assert [e.id for e in unique_entries(matches)] == [b.id, a.id]


def test_parse_glossary_response_accepts_object_or_array():
    obj = '{"entries": [{"originalTerm": "Aria", "translation": "アリア", "category": "character"}]}'
    arr = '[{"originalTerm": "Edo", "translation": "江戸", "category": "place", "contextDescription": "city"}]'
    other_key = '{"terms": [{"originalTerm": "Ki", "translation": "気", "category": "nonsense"}]}'

    (aria,) = parse_glossary_response(obj)
    assert aria.category is GlossaryCategory.CHARACTER
    (edo,) = parse_glossary_response(arr)
    assert edo.context_description == "city"
    (ki,) = parse_glossary_response(other_key)
    assert ki.category is GlossaryCategory.OTHER


def test_parse_glossary_response_handles_fences_and_blank():
    fenced = '```json\n{"entries": []}\n```'
    assert parse_glossary_response(fenced) == []
    assert parse_glossary_response("  ") == []


def test_parse_glossary_response_rejects_invalid_json():
    with pytest.raises(ResponseDecodingError):
        parse_glossary_response("not json at all")


def test_load_glossary_yaml_and_roundtrip_records(tmp_path):
    path = tmp_path / "glossary.yaml"
    path.write_text(
        "entries:\n"
        "  - original_term: Aria\n"
        "    translation: アリア\n"
        "    category: character\n"
        "    aliases: [Ari]\n"
        "  - original_term: Old Name\n"
        "    translation: X\n"
        "    is_active: false\n"
        "  - translation: missing original\n",
        encoding="utf-8",
    )
    entries = load_glossary(path)
    assert [e.original_term for e in entries] == ["Aria", "Old Name"]
    assert entries[0].aliases == ["Ari"]
    assert entries[1].is_active is False

    records = glossary_to_records(entries)
    assert records[0]["category"] == "character"
    assert records[1]["is_active"] is False
