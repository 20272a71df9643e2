# guia_api/db_models.py

from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from typing import Optional
from datetime import datetime, timezone


TAX_VARIANTS = (
  "20", "18", "18ALC", "175", "175ALC", "17", "17ALC", "12", "0", "22",
  "21", "19", "20ALC", "19ALC", "205", "195", "195ALC", "23", "225",
)

# PRECO_FABRICA_20, PRECO_MAXIMO_20, PRECO_FABRICA_18, ...
PRICE_FIELDS = tuple(
  f"{kind}_{variant}" for variant in TAX_VARIANTS for kind in ("PRECO_FABRICA", "PRECO_MAXIMO")
)

TEXT_FIELDS = (
  "ID_PRODUTO", "EAN", "REGISTRO_MS", "NOME", "APRESENTACAO", "LABORATORIO",
  "PRINCIPIO_ATIVO", "ID_STATUS", "CLASSE_TERAPEUTICA", "TIPO_PRODUTO",
  "REGIME_PRECO", "LISTA", "TARJA", "NCM", "CAP", "CONFAZ87", "ICMS0",
  "RESTRICAO_HOSPITALAR",
)


def _utcnow():
  return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
  """
  Timestamp stored as UTC and always read back timezone-aware.
  SQLite has no timezone storage and returns naive values, PostgreSQL returns aware ones.
  """
  impl = DateTime
  cache_ok = True

  def process_bind_param(self, value, dialect):
    if value is not None and value.tzinfo is not None:
      value = value.astimezone(timezone.utc)
    return value

  def process_result_value(self, value, dialect):
    if value is not None and value.tzinfo is None:
      value = value.replace(tzinfo=timezone.utc)
    return value


class ProdutoBase(SQLModel):
  """Columns shared by the table model and the API payloads"""
  ID_PRODUTO: Optional[str] = None
  EAN: str = Field(unique=True, index=True)
  REGISTRO_MS: Optional[str] = Field(default=None, index=True)
  NOME: Optional[str] = None
  APRESENTACAO: Optional[str] = None
  LABORATORIO: Optional[str] = None
  PRINCIPIO_ATIVO: Optional[str] = None
  ID_STATUS: Optional[str] = Field(default=None, index=True)

  # Classification codes
  CLASSE_TERAPEUTICA: Optional[str] = None
  TIPO_PRODUTO: Optional[str] = None
  REGIME_PRECO: Optional[str] = None
  LISTA: Optional[str] = None
  TARJA: Optional[str] = None
  NCM: Optional[str] = None
  CAP: Optional[str] = None
  CONFAZ87: Optional[str] = None
  ICMS0: Optional[str] = None
  RESTRICAO_HOSPITALAR: Optional[str] = None

  # Prices by ICMS rate ("ALC" = areas de livre comercio)
  PRECO_FABRICA_20: float = 0.0
  PRECO_MAXIMO_20: float = 0.0
  PRECO_FABRICA_18: float = 0.0
  PRECO_MAXIMO_18: float = 0.0
  PRECO_FABRICA_18ALC: float = 0.0
  PRECO_MAXIMO_18ALC: float = 0.0
  PRECO_FABRICA_175: float = 0.0
  PRECO_MAXIMO_175: float = 0.0
  PRECO_FABRICA_175ALC: float = 0.0
  PRECO_MAXIMO_175ALC: float = 0.0
  PRECO_FABRICA_17: float = 0.0
  PRECO_MAXIMO_17: float = 0.0
  PRECO_FABRICA_17ALC: float = 0.0
  PRECO_MAXIMO_17ALC: float = 0.0
  PRECO_FABRICA_12: float = 0.0
  PRECO_MAXIMO_12: float = 0.0
  PRECO_FABRICA_0: float = 0.0
  PRECO_MAXIMO_0: float = 0.0
  PRECO_FABRICA_22: float = 0.0
  PRECO_MAXIMO_22: float = 0.0
  PRECO_FABRICA_21: float = 0.0
  PRECO_MAXIMO_21: float = 0.0
  PRECO_FABRICA_19: float = 0.0
  PRECO_MAXIMO_19: float = 0.0
  PRECO_FABRICA_20ALC: float = 0.0
  PRECO_MAXIMO_20ALC: float = 0.0
  PRECO_FABRICA_19ALC: float = 0.0
  PRECO_MAXIMO_19ALC: float = 0.0
  PRECO_FABRICA_205: float = 0.0
  PRECO_MAXIMO_205: float = 0.0
  PRECO_FABRICA_195: float = 0.0
  PRECO_MAXIMO_195: float = 0.0
  PRECO_FABRICA_195ALC: float = 0.0
  PRECO_MAXIMO_195ALC: float = 0.0
  PRECO_FABRICA_23: float = 0.0
  PRECO_MAXIMO_23: float = 0.0
  PRECO_FABRICA_225: float = 0.0
  PRECO_MAXIMO_225: float = 0.0

  DATA_VIGENCIA: Optional[datetime] = Field(default=None, sa_type=UTCDateTime(timezone=True))


class Produto(ProdutoBase, table=True):
  """Model for the produtos table"""
  __tablename__ = "produtos"
  __table_args__ = {"extend_existing": True}

  id: Optional[int] = Field(default=None, primary_key=True)
  created_at: datetime = Field(default_factory=_utcnow, sa_type=UTCDateTime(timezone=True))
  updated_at: datetime = Field(default_factory=_utcnow, sa_type=UTCDateTime(timezone=True))


# Every column the import is allowed to write
PRODUTO_COLUMNS = tuple(c.name for c in Produto.__table__.columns if c.name != "id")
