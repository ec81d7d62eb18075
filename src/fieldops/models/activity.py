"""Activity models: the storage-schema table and the display/storage type aliases."""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import UniqueConstraint, func
from sqlmodel import Field, SQLModel

# One spreadsheet row keyed by its (Portuguese) display column names.
ActivityRecord = Dict[str, Optional[str]]

# One row keyed by storage column names, values in canonical types.
StoredActivity = Dict[str, Any]

# Natural identity of an activity; the store enforces uniqueness on it.
KEY_COLUMNS = ("numero_os1", "numero_os", "contrato", "data_atividade")
CONFLICT_TARGET = ",".join(KEY_COLUMNS)

# Sentinel for records without a date, so they still collapse on the key.
MISSING_DATE = "1900-01-01"


class Atividade(SQLModel, table=True):
    """
    One technician activity (work order visit).

    The four key columns are NOT NULL with defaults: an upsert conflict
    target must be a real composite unique constraint over the columns,
    not an expression index over COALESCE(...), or batched upserts are
    rejected.
    """

    __tablename__ = "atividades"
    __table_args__ = (
        UniqueConstraint(*KEY_COLUMNS, name="atividades_composite_key"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # Composite identity
    numero_os1: str = Field(default="")
    numero_os: str = Field(default="")
    contrato: str = Field(default="")
    data_atividade: str = Field(default=MISSING_DATE, index=True)  # YYYY-MM-DD

    recurso: Optional[str] = None
    status_atividade: Optional[str] = None
    tipo_atividade: Optional[str] = None
    cod_baixa_1: Optional[str] = None
    intervalo_tempo: Optional[str] = None
    duracao_minutos: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    cidade: Optional[str] = None
    bairro: Optional[str] = None
    tempo_de_deslocamento: Optional[str] = None  # HH:MM:SS
    contador_log: Optional[str] = None
    tecnico_referencia: Optional[str] = None

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"server_default": func.now()},
    )


# Columns the client writes; id and created_at belong to the store.
STORED_COLUMNS = tuple(
    name for name in Atividade.model_fields if name not in ("id", "created_at")
)
