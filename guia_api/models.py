# guia_api/models.py

from pydantic import BaseModel, ConfigDict, Field, create_model, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional, get_args
from datetime import datetime, timezone

from guia_api.db_models import Produto, ProdutoBase

REQUIRED_FIELDS = (
  "ID_PRODUTO", "EAN", "REGISTRO_MS", "NOME", "APRESENTACAO", "LABORATORIO", "PRINCIPIO_ATIVO",
)


class ProdutoCreate(ProdutoBase):
  """POST /api/products payload"""
  ID_PRODUTO: str
  EAN: str
  REGISTRO_MS: str
  NOME: str
  APRESENTACAO: str
  LABORATORIO: str
  PRINCIPIO_ATIVO: str

  @field_validator(*REQUIRED_FIELDS, mode="before")
  @classmethod
  def not_blank(cls, value):
    if value is None:
      raise ValueError("must not be empty")
    value = str(value).strip()
    if not value:
      raise ValueError("must not be empty")
    return value


# Columns the table declares NOT NULL (EAN and the prices)
NON_NULLABLE_FIELDS = tuple(
  name for name, field in ProdutoBase.model_fields.items() if type(None) not in get_args(field.annotation)
)


def _reject_null(cls, value):
  if value is None:
    raise ValueError("must not be null")
  return value


# PUT /api/products/{id} payload: every column may be omitted, unknown keys rejected
ProdutoUpdate = create_model(
  "ProdutoUpdate",
  __config__=ConfigDict(extra="forbid"),
  __validators__={"reject_null": field_validator(*NON_NULLABLE_FIELDS, mode="before")(_reject_null)},
  **{name: (Optional[field.annotation], None) for name, field in ProdutoBase.model_fields.items()},
)


class PaginatedProdutos(BaseModel):
  pagina: int
  total_paginas: int
  data: List[Produto]


class GuiaPage(BaseModel):
  """Envelope returned by the Guia da Farmacia API"""
  pagina: Optional[int] = None
  total_paginas: Optional[int] = None
  total_itens: Optional[int] = None
  total_data: Optional[int] = None
  data_atualizacao: Optional[str] = None
  # None when the upstream 'data' field was missing or not a list
  data: Optional[List[Dict[str, Any]]] = None


class ImportSummary(BaseModel):
  """Progress and outcome of one import run (never persisted)"""
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
  end_time: Optional[datetime] = None
  pages_processed: int = 0
  total_pages: int = 0
  products_imported: int = 0
  status: Literal["in_progress", "completed", "failed"] = "in_progress"
  errors: List[str] = Field(default_factory=list)


class ImportResponse(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  message: str
  was_empty: bool
  summary: ImportSummary
