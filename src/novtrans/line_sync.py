from __future__ import annotations

import re

MARKER_RE = re.compile(r"^\[L\d+\] ?")

LINE_SYNC_INSTRUCTION = (
    "CRITICAL INSTRUCTION: The following text has been formatted with line markers (e.g., [L1], [L2]). "
    "You MUST translate the text for each line and reproduce the exact same line markers in your output. "
    "Empty lines must be preserved. The number of lines in your translation must exactly match the number "
    "of lines in the source.\n\n"
    "Example:\n"
    "[L1] source text -> [L1] translation text\n"
    "[L2] -> [L2]\n"
    "[L3] source text -> [L3] translation text"
)


def encode(text: str) -> str:
    """Prefix every line with a 1-based `[Li] ` marker; empty lines keep their marker."""
    lines = text.split("\n")
    return "\n".join(f"[L{i}] {line}" for i, line in enumerate(lines, start=1))


def decode(text: str) -> str:
    """Strip a leading marker from each line. Lines without one pass through unchanged."""
    return "\n".join(MARKER_RE.sub("", line, count=1) for line in text.split("\n"))


def count_lines(text: str) -> int:
    if not text:
        return 0
    return len(text.split("\n"))
