from __future__ import annotations

from novtrans.line_sync import LINE_SYNC_INSTRUCTION, count_lines, decode, encode


def test_encode_marks_every_line_including_empty_ones():
    assert encode("Hello\n\nWorld") == "[L1] Hello\n[L2] \n[L3] World"


def test_decode_restores_encoded_text():
    for text in ["Hello\n\nWorld", "", "single", "\n\n", "trailing newline\n", "  indented\n\tTabbed"]:
        assert decode(encode(text)) == text


def test_decode_tolerates_missing_space_after_marker():
    assert decode("[L1]Hello\n[L2]\n[L3] World") == "Hello\n\nWorld"


def test_decode_strips_only_one_space_after_marker():
    assert decode("[L1]  indented") == " indented"


def test_decode_leaves_unmarked_lines_alone():
    text = "no marker\n[X1] not a marker\nmid [L2] line"
    assert decode(text) == text


def test_decode_handles_multi_digit_indices():
    assert decode("[L10] ten\n[L11] eleven") == "ten\neleven"


def test_count_lines():
    assert count_lines("") == 0
    assert count_lines("a") == 1
    assert count_lines("a\n\nb") == 3
    assert count_lines("a\n") == 2


def test_instruction_mentions_marker_convention():
    assert "[L1]" in LINE_SYNC_INSTRUCTION
    assert "Empty lines must be preserved" in LINE_SYNC_INSTRUCTION
    assert "in the source.\n\nExample:\n[L1] source text -> [L1] translation text" in LINE_SYNC_INSTRUCTION
