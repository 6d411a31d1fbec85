from __future__ import annotations

from novtrans.glossary import GlossaryMatcher
from novtrans.line_sync import LINE_SYNC_INSTRUCTION
from novtrans.models import GlossaryCategory, GlossaryEntry, PromptPreset, TranslationConfig
from novtrans.prompts import (
    DEFAULT_PROMPT_TEMPLATE,
    build_glossary_block,
    build_glossary_extraction_prompt,
    build_translation_prompt,
    load_prompt_preset,
)

GLOSSARY = [
    GlossaryEntry("Sword", "剣", GlossaryCategory.OBJECT),
    GlossaryEntry("Aria", "アリア", GlossaryCategory.CHARACTER, context_description="the heroine"),
    GlossaryEntry("Bram", "ブラム", GlossaryCategory.CHARACTER),
]


def _matches(text: str):  # noqa: ANN202
    return GlossaryMatcher().detect_terms(text, GLOSSARY)


def test_glossary_block_groups_sorts_and_dedups():
    block = build_glossary_block(_matches("Bram saw Aria. Aria drew her Sword. Sword!"))
    assert block == (
        "CRITICAL: You MUST use the following translations for specific terms. Do not deviate from them.\n"
        "--- GLOSSARY START ---\n"
        "[Character]\n"
        "Aria -> アリア | Context: the heroine\n"
        "Bram -> ブラム\n"
        "\n"
        "[Object]\n"
        "Sword -> 剣\n"
        "--- GLOSSARY END ---\n\n"
    )


def test_glossary_block_empty_without_matches():
    assert build_glossary_block([]) == ""


def test_template_placeholder_replaced_with_empty_glossary():
    preset = PromptPreset(prompt="Translate {{TEXT}} with {{GLOSSARY}}")
    prompt = build_translation_prompt("hi", [], "Japanese", "English", preset, TranslationConfig())
    assert prompt == "Translate hi with"
    assert "GLOSSARY START" not in prompt


def test_glossary_prepended_when_template_has_no_placeholder():
    preset = PromptPreset(prompt="From {{SOURCE_LANGUAGE}} to {{TARGET_LANGUAGE}}: {{TEXT}}")
    text = "Aria drew her Sword"
    prompt = build_translation_prompt(text, _matches(text), "Japanese", "English", preset, TranslationConfig())
    assert prompt.startswith("CRITICAL: You MUST use")
    assert prompt.endswith("--- GLOSSARY END ---\n\nFrom Japanese to English: Aria drew her Sword")


def test_default_template_used_for_empty_preset_prompt():
    prompt = build_translation_prompt("abc", [], "Korean", "English", PromptPreset(prompt=""), TranslationConfig())
    assert prompt.startswith("You are an expert novel translator.")
    assert "from Korean to English" in prompt
    assert "--- TEXT TO TRANSLATE START ---\nabc\n--- TEXT TO TRANSLATE END ---" in prompt
    assert "{{" not in prompt
    assert prompt == build_translation_prompt("abc", [], "Korean", "English", None, TranslationConfig())


def test_substitution_is_single_pass():
    preset = PromptPreset(prompt="{{TEXT}} / {{SOURCE_LANGUAGE}}")
    prompt = build_translation_prompt("literal {{SOURCE_LANGUAGE}}", [], "JA", "EN", preset, TranslationConfig())
    assert prompt == "literal {{SOURCE_LANGUAGE}} / JA"


def test_line_sync_adds_instruction_and_encodes_text():
    preset = PromptPreset(prompt="{{TEXT}}")
    config = TranslationConfig(force_line_count_sync=True)
    prompt = build_translation_prompt("a\n\nb", [], "JA", "EN", preset, config)
    assert prompt == f"{LINE_SYNC_INSTRUCTION}\n\n[L1] a\n[L2] \n[L3] b"


def test_example_block_comes_first_and_is_encoded_under_line_sync():
    preset = PromptPreset(
        prompt="{{TEXT}}",
        provide_example=True,
        example_raw_text="src1\nsrc2",
        example_translated_text="tr1\ntr2",
    )
    prompt = build_translation_prompt("x", [], "JA", "EN", preset, TranslationConfig(force_line_count_sync=True))
    example, instruction, body = prompt.split("\n\n")
    assert example.startswith("Here is an example of the desired translation style and format.")
    assert "[Source]:\n[L1] src1\n[L2] src2\n\n[Translation]:\n[L1] tr1\n[L2] tr2" in example
    assert instruction == LINE_SYNC_INSTRUCTION
    assert body == "[L1] x"


def test_example_block_skipped_when_disabled():
    preset = PromptPreset(prompt="{{TEXT}}", provide_example=False, example_raw_text="src")
    assert build_translation_prompt("x", [], "JA", "EN", preset, TranslationConfig()) == "x"


def test_previous_context_block_precedes_body():
    preset = PromptPreset(prompt="{{TEXT}}")
    prompt = build_translation_prompt("x", [], "JA", "EN", preset, TranslationConfig(), previous_context="Earlier.")
    assert "--- PREVIOUS CONTEXT START ---\nEarlier.\n--- PREVIOUS CONTEXT END ---" in prompt
    assert prompt.endswith("\n\nx")


def test_build_is_deterministic():
    text = "Bram and Aria and the Sword"
    args = (text, _matches(text), "JA", "EN", None, TranslationConfig(force_line_count_sync=True))
    assert build_translation_prompt(*args) == build_translation_prompt(*args)
    assert "{{GLOSSARY}}" in DEFAULT_PROMPT_TEMPLATE


def test_glossary_extraction_prompt_rules():
    prompt = build_glossary_extraction_prompt(
        "源テキスト",
        "Source text",
        GLOSSARY[:1],
        "Japanese",
        "English",
        categories=[GlossaryCategory.CHARACTER, GlossaryCategory.PLACE],
        additional_query="Prefer romaji.",
        fill_context=False,
    )
    assert "- Sword -> 剣" in prompt
    assert "Only extract terms belonging to the following categories: character, place." in prompt
    assert "**MUST** be an empty string" in prompt
    assert "Follow this additional instruction carefully: Prefer romaji." in prompt
    assert "**SOURCE TEXT (Japanese):**\n源テキスト" in prompt

    full = build_glossary_extraction_prompt("a", "b", [], "JA", "EN")
    assert "EXISTING GLOSSARY (DO NOT EXTRACT THESE):**\nNone" in full
    assert "Only extract terms" not in full


def test_load_prompt_preset(tmp_path):
    path = tmp_path / "preset.yaml"
    path.write_text(
        "name: Light novel\n"
        "prompt: 'Translate {{TEXT}}'\n"
        "example:\n"
        "  source: 'こんにちは'\n"
        "  translation: 'Hello'\n",
        encoding="utf-8",
    )
    preset = load_prompt_preset(path)
    assert preset.name == "Light novel"
    assert preset.provide_example is True
    assert preset.example_translated_text == "Hello"
