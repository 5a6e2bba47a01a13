from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class NormalizedRow:
    """One grid row: the original cells plus flattened forms for matching.

    ``text`` keeps the source casing, ``upper`` is only for label and pattern
    matching.
    """

    index: int
    cells: Tuple[str, ...]
    text: str
    upper: str

    def cell(self, col: int) -> str:
        return self.cells[col] if 0 <= col < len(self.cells) else ""


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_row(index: int, row: Iterable[object]) -> NormalizedRow:
    cells = tuple(_cell_text(v) for v in row)
    text = " ".join(cells)
    return NormalizedRow(index=index, cells=cells, text=text, upper=text.upper())


def normalize_grid(grid: Sequence[Iterable[object]]) -> List[NormalizedRow]:
    return [normalize_row(i, row) for i, row in enumerate(grid)]
