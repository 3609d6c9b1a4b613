"""
Colour lookup table files.

Whitespace-separated rows of ``label name r g b a`` with 0-255 channels;
blank lines and ``#`` comments are skipped.
"""

import os
from typing import Iterable, Optional, Callable

from core import ColorTable


def parse_colortable(lines: Iterable[str]) -> ColorTable:
    """Build a ColorTable from LUT text lines."""
    table = ColorTable()
    for lineno, raw in enumerate(lines, start=1):
        line = raw.split('#', 1)[0].strip()
        if not line:
            continue
        fields = line.split()
        if len(fields) < 6:
            raise ValueError(f"Line {lineno}: expected 'label name r g b a', got {raw.strip()!r}")
        try:
            label = int(fields[0])
            r, g, b, a = (float(v) / 255.0 for v in fields[-4:])
        except ValueError as exc:
            raise ValueError(f"Line {lineno}: {exc}") from exc
        table.add(label, label, r, g, b, a)
    return table


class ColorTableLoader:
    """Reads a colour lookup table file."""

    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> ColorTable:
        if not os.path.exists(source):
            raise FileNotFoundError(f"Path does not exist: {source}")
        with open(source, encoding='utf-8') as fh:
            table = parse_colortable(fh)
        print(f"[Loader] Loaded {len(table)} colour table entries from {source}")
        if callback:
            callback(100, "Colour table loaded.")
        return table
