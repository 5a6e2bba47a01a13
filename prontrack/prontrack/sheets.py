from __future__ import annotations

import csv
import io
import logging
import zipfile
from datetime import date, datetime, time
from pathlib import Path
from typing import List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import StructuralParseError

logger = logging.getLogger(__name__)

Grid = List[List[str]]

XLSX_SUFFIXES = {".xlsx", ".xlsm"}
TEXT_SUFFIXES = {".csv", ".txt"}

REEXPORT_HINT = (
    "Open the file in your spreadsheet program and save it as an .xlsx workbook "
    "(or .csv) before importing."
)


def cell_to_text(value: object) -> str:
    """Render a cell the way the spreadsheet displays it."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%d/%m/%Y")
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S" if value.second else "%H:%M")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_xlsx(path: Path) -> Grid:
    try:
        wb = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise StructuralParseError(f"could not read workbook {path.name}: {e}. {REEXPORT_HINT}") from e
    try:
        ws = wb.worksheets[0]
        return [[cell_to_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def read_csv(path: Path) -> Grid:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise StructuralParseError(f"could not read {path.name}: {e}. {REEXPORT_HINT}") from e
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=";,\t")
    except csv.Error:
        dialect = csv.excel
    return [list(row) for row in csv.reader(io.StringIO(text), dialect)]


def load_grid(path: str | Path) -> Grid:
    """Read the first sheet of a schedule export into rows of display strings."""
    p = Path(path)
    if not p.exists():
        raise StructuralParseError(f"file not found: {p}")
    suffix = p.suffix.lower()
    if suffix in XLSX_SUFFIXES:
        grid = read_xlsx(p)
    elif suffix in TEXT_SUFFIXES:
        grid = read_csv(p)
    else:
        raise StructuralParseError(f"unsupported file type {suffix or '(none)'}. {REEXPORT_HINT}")
    logger.info("loaded %d rows from %s", len(grid), p.name)
    return grid
