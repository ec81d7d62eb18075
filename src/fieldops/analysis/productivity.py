"""
Per-technician productivity for the dashboard bar chart.

Each activity is classified from its "Status da Atividade" text into one of
four buckets. A technician's productivity is the share of their activities
classified as productive.
"""
import unicodedata
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from fieldops.mapping.field_mapper import COL_RECURSO, COL_STATUS
from fieldops.models.activity import ActivityRecord

STATUS_PRODUCTIVE = "Produtiva"
STATUS_UNPRODUCTIVE = "Improdutiva"
STATUS_CANCELLED = "Cancelado"
STATUS_PENDING = "Pendente"

STATUS_COLORS = {
    STATUS_PRODUCTIVE: "#228B22",
    STATUS_UNPRODUCTIVE: "#FF0000",
    STATUS_CANCELLED: "#8B4513",
    STATUS_PENDING: "#f5a623",
}

# Productivity bands for the percentage label
BAND_HIGH = 80.0
BAND_LOW = 40.0
COLOR_HIGH = "#43e97b"
COLOR_MID = "#ffc107"
COLOR_LOW = "#ef4444"

UNKNOWN_TECHNICIAN = "Sem técnico"
SHORT_NAME_WORDS = 2


def _norm(s: Optional[str]) -> str:
    """Trim + lower + strip accents."""
    s = (s or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in s if not unicodedata.combining(ch))


def classify_status(status: Optional[str]) -> str:
    """
    Map a free-text activity status to a dashboard bucket.

    Order matters: "não concluído" must be tested before "concluído".
    """
    key = _norm(status)
    if not key:
        return STATUS_PENDING
    if "cancel" in key:
        return STATUS_CANCELLED
    if any(marker in key for marker in ("nao concluid", "nao realizad", "improdutiv")):
        return STATUS_UNPRODUCTIVE
    if any(marker in key for marker in ("concluid", "realizad", "finalizad", "produtiv")):
        return STATUS_PRODUCTIVE
    return STATUS_PENDING


def productivity_color(productivity: float) -> str:
    if productivity >= BAND_HIGH:
        return COLOR_HIGH
    if productivity < BAND_LOW:
        return COLOR_LOW
    return COLOR_MID


@dataclass(frozen=True)
class BarItem:
    name: str           # short label (first words of the name)
    full_name: str
    value: int          # productive activities
    total: int          # all activities
    productivity: float  # percent, 0-100
    color: str


def _short_name(full_name: str) -> str:
    return " ".join(full_name.split()[:SHORT_NAME_WORDS])


def technician_productivity(records: Iterable[ActivityRecord]) -> List[BarItem]:
    """
    Build one bar per technician, most productive activities first.

    Args:
        records: Display records (the dashboard's working set).

    Returns:
        BarItems sorted by productive count desc, then name.
    """
    totals: Dict[str, int] = {}
    productive: Dict[str, int] = {}
    for record in records:
        name = (record.get(COL_RECURSO) or "").strip() or UNKNOWN_TECHNICIAN
        totals[name] = totals.get(name, 0) + 1
        if classify_status(record.get(COL_STATUS)) == STATUS_PRODUCTIVE:
            productive[name] = productive.get(name, 0) + 1

    items = []
    for name, total in totals.items():
        value = productive.get(name, 0)
        pct = (value / total) * 100 if total else 0.0
        items.append(
            BarItem(
                name=_short_name(name),
                full_name=name,
                value=value,
                total=total,
                productivity=round(pct, 1),
                color=productivity_color(pct),
            )
        )
    items.sort(key=lambda item: (-item.value, item.full_name))
    return items


def move_bar(items: List[BarItem], drag_index: int, hover_index: int) -> List[BarItem]:
    """Return a copy with the item at drag_index moved to hover_index."""
    reordered = list(items)
    if not (0 <= drag_index < len(reordered)):
        raise IndexError(f"drag_index {drag_index} out of range")
    hover_index = max(0, min(hover_index, len(reordered) - 1))
    moved = reordered.pop(drag_index)
    reordered.insert(hover_index, replace(moved))
    return reordered


def bar_width_percent(item: BarItem, items: List[BarItem]) -> float:
    """Bar length relative to the largest value (never divides by zero)."""
    max_value = max([i.value for i in items] + [1])
    return (item.value / max_value) * 100
