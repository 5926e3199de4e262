"""
indexatlas.spreadsheets — Row readers for the WHR and OECD workbooks.

File-format plumbing only: these functions turn .xlsx sheets into the row
shapes the extractors consume. No filtering beyond skipping empty rows,
no aggregation, no renaming of countries.

Requires: openpyxl
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import openpyxl

from indexatlas.constants import (
    OECD_CODE_COLUMN,
    OECD_COUNTRY_COLUMN,
    OECD_DIMENSION_KEYS,
    OECD_FIRST_DIMENSION_COLUMN,
    OECD_HEADER_OFFSET,
    OECD_REGION_COLUMN,
    OECD_SHEET_NAME,
)
from indexatlas.extractors import OecdRow, _cell_number


def _cell(row: tuple[Any, ...], index: int) -> Any:
    return row[index] if index < len(row) else None


def read_whr_rows(path: Path) -> list[dict[str, Any]]:
    """Read the first sheet of the WHR workbook as header-keyed dict rows.

    Rows whose cells are all empty are skipped.
    """
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        names = [str(h).strip() if h is not None else "" for h in header]

        out: list[dict[str, Any]] = []
        for row in rows:
            if all(c is None or (isinstance(c, str) and not c.strip()) for c in row):
                continue
            out.append({
                name: _cell(row, i)
                for i, name in enumerate(names)
                if name
            })
        return out
    finally:
        wb.close()


def read_oecd_rows(
    path: Path,
    sheet: str = OECD_SHEET_NAME,
    header_offset: int = OECD_HEADER_OFFSET,
) -> list[OecdRow]:
    """Read TL2 region rows from the OECD Regional Well-Being workbook.

    Data starts after ``header_offset`` leading rows. Columns are fixed:
    1 country, 2 region, 3 region code, 4..14 the 11 dimension scores.
    Rows without a region code are skipped. Non-numeric scores → None.

    Raises KeyError if the sheet does not exist.
    """
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet not in wb.sheetnames:
            raise KeyError(f"Worksheet '{sheet}' not found in {path.name}")
        ws = wb[sheet]

        out: list[OecdRow] = []
        for row in ws.iter_rows(min_row=header_offset + 1, values_only=True):
            code = _cell(row, OECD_CODE_COLUMN)
            if code is None or not str(code).strip():
                continue
            country = _cell(row, OECD_COUNTRY_COLUMN)
            region = _cell(row, OECD_REGION_COLUMN)
            out.append(OecdRow(
                country=str(country).strip() if country is not None else "",
                region=str(region).strip() if region is not None else "",
                code=str(code).strip(),
                scores={
                    dim: _cell_number(_cell(row, OECD_FIRST_DIMENSION_COLUMN + i))
                    for i, dim in enumerate(OECD_DIMENSION_KEYS)
                },
            ))
        return out
    finally:
        wb.close()
