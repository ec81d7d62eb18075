"""
Read uploaded activity spreadsheets into display records.

Exports arrive as CSV (comma or semicolon, UTF-8 or Latin-1) or XLSX. Cells
are turned into strings the field mapper understands: Excel dates become
"dd/mm/yyyy", Excel times "HH:MM:SS", whole-number floats lose their ".0".
Empty cells are left out of the record.
"""
import io
import math
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, BinaryIO, List, Optional

import pandas as pd

from fieldops.mapping import field_mapper as fm
from fieldops.models.activity import ActivityRecord

KNOWN_COLUMNS = {
    fm.COL_RECURSO,
    fm.COL_NUMERO_OS1,
    fm.COL_NUMERO_OS,
    fm.COL_CONTRATO,
    fm.COL_DATA,
    fm.COL_STATUS,
    fm.COL_TIPO,
    fm.COL_DURACAO,
}

CSV_SEPARATORS = [",", ";"]
CSV_ENCODINGS = ["utf-8-sig", "latin1"]


class SpreadsheetError(ValueError):
    """Raised when an upload cannot be read as an activity spreadsheet."""


def _looks_like_activities(df: pd.DataFrame) -> bool:
    columns = {str(c).strip() for c in df.columns}
    return bool(columns & KNOWN_COLUMNS)


def _read_csv(raw: bytes) -> pd.DataFrame:
    for sep in CSV_SEPARATORS:
        for enc in CSV_ENCODINGS:
            try:
                df = pd.read_csv(io.BytesIO(raw), sep=sep, encoding=enc, dtype=str)
            except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError):
                continue
            if _looks_like_activities(df):
                return df
    raise SpreadsheetError("Não foi possível ler o CSV (separador/encoding inesperado).")


def _read_excel(raw: bytes) -> pd.DataFrame:
    try:
        df = pd.read_excel(io.BytesIO(raw), dtype=object, engine="openpyxl")
    except Exception as exc:
        raise SpreadsheetError(f"Não foi possível ler a planilha: {exc}") from exc
    if not _looks_like_activities(df):
        raise SpreadsheetError("A planilha não tem as colunas de atividades esperadas.")
    return df


def _cell_to_str(value: Any) -> Optional[str]:
    if value is None or value is pd.NA:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (pd.Timestamp, datetime, date)):
        if pd.isna(value):
            return None
        return value.strftime("%d/%m/%Y")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    s = str(value).strip()
    return s or None


def dataframe_to_records(df: pd.DataFrame) -> List[ActivityRecord]:
    """Convert a DataFrame to display records, dropping empty cells and rows."""
    df = df.rename(columns=lambda c: str(c).strip())
    records: List[ActivityRecord] = []
    for row in df.to_dict(orient="records"):
        record = {}
        for column, value in row.items():
            text = _cell_to_str(value)
            if text is not None:
                record[column] = text
        if record:
            records.append(record)
    return records


def read_activity_file(stream: BinaryIO, filename: str) -> List[ActivityRecord]:
    """
    Parse an uploaded spreadsheet.

    Args:
        stream: Binary file-like object with the upload contents.
        filename: Original file name; its extension selects the reader.

    Returns:
        Display records in file order.

    Raises:
        SpreadsheetError: unsupported extension or unreadable contents.
    """
    suffix = Path(filename).suffix.lower()
    raw = stream.read()
    if suffix == ".csv":
        df = _read_csv(raw)
    elif suffix in (".xlsx", ".xlsm"):
        df = _read_excel(raw)
    else:
        raise SpreadsheetError(f"Formato não suportado: {suffix or filename}")
    return dataframe_to_records(df)
