"""Decode delimited-text and spreadsheet downloads into lists of row dicts."""

import io
import logging
import re
import zipfile
from typing import Dict, List, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

Row = Dict[str, str]


def _frame_to_rows(df: pd.DataFrame) -> List[Row]:
    df = df.dropna(how="all").fillna("")
    df.columns = [str(col).strip() for col in df.columns]
    rows: List[Row] = []
    for record in df.to_dict(orient="records"):
        row = {key: str(value).strip() for key, value in record.items()}
        if any(row.values()):
            rows.append(row)
    return rows


def read_csv_rows(text: str) -> List[Row]:
    """Parse CSV text with a header row; every value is returned as a trimmed string."""
    text = text.lstrip("\ufeff")
    if not text.strip():
        return []
    df = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    return _frame_to_rows(df)


def read_xlsx_rows(
    content: bytes,
    *,
    header_row: int = 0,
    sheet_pattern: Optional[str] = None,
) -> List[Row]:
    """Parse the first matching worksheet of an XLSX workbook.

    `header_row` is the zero-based row holding the column names, so title
    banners above it are skipped. When `sheet_pattern` matches no sheet name
    the first sheet is used.
    """
    try:
        workbook = pd.ExcelFile(io.BytesIO(content), engine="openpyxl")
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        # a zip without the workbook parts raises KeyError from openpyxl
        raise ValueError(f"not an XLSX workbook: {exc}") from exc
    sheet_name = workbook.sheet_names[0]
    if sheet_pattern:
        regex = re.compile(sheet_pattern, re.IGNORECASE)
        sheet_name = next((name for name in workbook.sheet_names if regex.search(name)), sheet_name)

    df = workbook.parse(sheet_name=sheet_name, header=header_row, dtype=str)
    logger.debug("Parsed sheet %r with %d rows", sheet_name, len(df))
    return _frame_to_rows(df)
