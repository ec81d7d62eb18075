"""
Field mapper between the spreadsheet (display) schema and the storage schema.

Uploaded spreadsheets use Portuguese column headers and Brazilian formats
("26/01/2026", "01:17"). The `atividades` table uses snake_case columns and
canonical types (ISO dates, integer minutes, HH:MM:SS strings, floats).

Records can pass through the mapper more than once (load -> display ->
re-upload), so every conversion here is a no-op on input that is already in
its target format:

  iso_to_br_date("26/01/2026")  -> "26/01/2026"
  br_to_iso_date("2026-01-26")  -> "2026-01-26"

Numeric values that do not parse are treated as missing data: the field is
absent (None), never zero and never an exception.

No DB access here; everything returns plain dicts so it is easy to test.
"""
import math
from typing import Any, Dict, Optional, Union

from fieldops.models.activity import (
    MISSING_DATE,
    STORED_COLUMNS,
    ActivityRecord,
    StoredActivity,
)

# ── Display columns ───────────────────────────────────────────────────────────

COL_RECURSO = "Recurso"
COL_NUMERO_OS1 = "Número da OS1"
COL_NUMERO_OS = "Número da WO"
COL_CONTRATO = "Contrato"
COL_DATA = "Data"
COL_STATUS = "Status da Atividade"
COL_TIPO = "Tipo de Atividade"
COL_COD_BAIXA = "Cód de Baixa 1"
COL_INTERVALO = "Intervalo de Tempo"
COL_DURACAO = "Duração"
COL_LATITUDE = "Latitude"
COL_LONGITUDE = "Longitude"
COL_COORD_Y = "Coordenada Y"  # older exports: Y = latitude
COL_COORD_X = "Coordenada X"  # older exports: X = longitude
COL_CIDADE = "Cidade"
COL_CIDADE_LOWER = "cidade"
COL_BAIRRO = "Bairro"
COL_DESLOCAMENTO = "Tempo de Deslocamento"
COL_CONTADOR_LOG = "Contador Log"
COL_TECNICO_REFERENCIA = "Técnico Referência"

# Plain text columns: display name -> storage column
_TEXT_COLUMNS = {
    COL_RECURSO: "recurso",
    COL_NUMERO_OS1: "numero_os1",
    COL_NUMERO_OS: "numero_os",
    COL_CONTRATO: "contrato",
    COL_STATUS: "status_atividade",
    COL_TIPO: "tipo_atividade",
    COL_COD_BAIXA: "cod_baixa_1",
    COL_INTERVALO: "intervalo_tempo",
    COL_BAIRRO: "bairro",
    COL_CONTADOR_LOG: "contador_log",
    COL_TECNICO_REFERENCIA: "tecnico_referencia",
}


# ── Dates ─────────────────────────────────────────────────────────────────────

def iso_to_br_date(value: Optional[str]) -> str:
    """Convert "YYYY-MM-DD" (optionally with a time suffix) to "dd/mm/yyyy".

    Values already containing "/" are returned unchanged. Values of any other
    unexpected shape are returned stripped but otherwise untouched.
    """
    if value is None:
        return ""
    s = str(value).strip()
    if not s or "/" in s:
        return s

    date_part = s.split("T")[0].split(" ")[0]
    parts = date_part.split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return s
    year, month, day = parts
    return f"{int(day):02d}/{int(month):02d}/{int(year):04d}"


def br_to_iso_date(value: Optional[str]) -> str:
    """Convert "dd/mm/yyyy" (or "d/m/yy") to "YYYY-MM-DD".

    A two-digit year means 2000 + yy. Values without "/" are assumed to be
    ISO already and are returned unchanged.
    """
    if value is None:
        return ""
    s = str(value).strip()
    if not s or "/" not in s:
        return s

    # Exports sometimes carry a time: "26/01/2026 08:15"
    parts = s.split(" ")[0].split("/")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return s
    day, month, year = (int(p) for p in parts)
    if len(parts[2]) <= 2:
        year += 2000
    return f"{year:04d}-{month:02d}-{day:02d}"


# ── Durations ─────────────────────────────────────────────────────────────────

def time_format_to_minutes(value: Union[str, int, None]) -> Optional[int]:
    """Parse "HH:MM[:SS]" (hours*60 + minutes) or bare minutes into an int.

    Seconds are dropped. Returns None when the value does not parse or is
    negative.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    s = str(value).strip()
    if not s:
        return None

    if ":" in s:
        parts = s.split(":")
        if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
            return None
        return int(parts[0]) * 60 + int(parts[1])

    try:
        minutes = int(s)
    except ValueError:
        number = _parse_float(s)
        if number is None:
            return None
        minutes = int(number)
    return minutes if minutes >= 0 else None


def minutes_to_time_format(value: Union[str, int, None]) -> str:
    """Canonical storage form for durations: "HH:MM:SS" ("" when absent).

    >>> minutes_to_time_format("90")
    '01:30:00'
    """
    minutes = time_format_to_minutes(value)
    if minutes is None:
        return ""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}:00"


def time_format_to_display(value: Optional[str]) -> str:
    """Convert "HH:MM:SS" to "HH:MM" (seconds truncated).

    "HH:MM" passes through; bare minutes are rendered as "HH:MM" too.
    """
    if value is None:
        return ""
    s = str(value).strip()
    if not s:
        return ""
    if ":" in s:
        parts = s.split(":")
        if len(parts) >= 2:
            return f"{parts[0].strip().zfill(2)}:{parts[1].strip().zfill(2)}"
        return s
    canonical = minutes_to_time_format(s)
    if not canonical:
        return s
    return time_format_to_display(canonical)


# ── Numbers ───────────────────────────────────────────────────────────────────

def _parse_float(value: Any) -> Optional[float]:
    """Parse a float, accepting a decimal comma. Parse failure -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        s = str(value).strip()
        if not s:
            return None
        if "," in s and "." not in s:
            s = s.replace(",", ".")
        try:
            number = float(s)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(value)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    if not s.strip():
        return None
    return s


# ── Record conversion ─────────────────────────────────────────────────────────

def to_display(stored: StoredActivity) -> ActivityRecord:
    """
    Convert a storage-schema row into a display record.

    Total: never raises. Missing values render as "".

    Args:
        stored: Row from the `atividades` table (extra keys are ignored).

    Returns:
        Dict keyed by display column names.
    """
    record: Dict[str, str] = {}
    for display_name, column in _TEXT_COLUMNS.items():
        value = stored.get(column)
        record[display_name] = "" if value is None else str(value)

    data = stored.get("data_atividade")
    record[COL_DATA] = "" if data in (None, MISSING_DATE) else iso_to_br_date(data)

    duracao = stored.get("duracao_minutos")
    record[COL_DURACAO] = (
        "" if duracao is None else time_format_to_display(minutes_to_time_format(duracao))
    )
    record[COL_DESLOCAMENTO] = time_format_to_display(stored.get("tempo_de_deslocamento"))

    record[COL_LATITUDE] = _format_number(stored.get("latitude"))
    record[COL_LONGITUDE] = _format_number(stored.get("longitude"))

    cidade = stored.get("cidade") or ""
    record[COL_CIDADE] = cidade
    record[COL_CIDADE_LOWER] = cidade
    return record


def to_stored(record: ActivityRecord) -> StoredActivity:
    """
    Convert a display record (one spreadsheet row) into a storage row.

    Accepts both historical coordinate headers (Latitude/Longitude and
    Coordenada Y/Coordenada X) and both casings of the city header.

    Args:
        record: Dict keyed by display column names.

    Returns:
        Dict with every storage column present; absent values are None.
    """
    stored: Dict[str, Any] = {column: None for column in STORED_COLUMNS}

    for display_name, column in _TEXT_COLUMNS.items():
        stored[column] = _text(record.get(display_name))

    stored["data_atividade"] = br_to_iso_date(record.get(COL_DATA)) or None
    stored["duracao_minutos"] = time_format_to_minutes(record.get(COL_DURACAO))
    stored["tempo_de_deslocamento"] = (
        minutes_to_time_format(record.get(COL_DESLOCAMENTO)) or None
    )

    stored["latitude"] = _parse_float(
        _text(record.get(COL_LATITUDE)) or record.get(COL_COORD_Y)
    )
    stored["longitude"] = _parse_float(
        _text(record.get(COL_LONGITUDE)) or record.get(COL_COORD_X)
    )
    stored["cidade"] = _text(record.get(COL_CIDADE)) or _text(record.get(COL_CIDADE_LOWER))
    return stored
