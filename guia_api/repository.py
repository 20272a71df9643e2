# guia_api/repository.py

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, delete

from guia_api.db_models import Produto, PRODUTO_COLUMNS, PRICE_FIELDS
from guia_api.exceptions import Outcome
from guia_api.logger import get_logger

log = get_logger(__name__)

# Columns kept from the existing row when an upsert hits an EAN that is already stored
_PRESERVED_ON_CONFLICT = {"id", "created_at", "EAN"}

SEARCHABLE_FIELDS = ("NOME", "APRESENTACAO", "LABORATORIO")


def _dialect_insert(session: Session):
  """INSERT construct supporting ON CONFLICT for the bound database"""
  dialect = session.get_bind().dialect.name
  if dialect == "postgresql":
    from sqlalchemy.dialects.postgresql import insert
  elif dialect == "sqlite":
    from sqlalchemy.dialects.sqlite import insert
  else:
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")
  return insert


def _to_row(record: Dict[str, Any], now: datetime) -> Dict[str, Any]:
  """Project a normalized record onto the table columns; unknown upstream keys are dropped"""
  row = {col: record.get(col) for col in PRODUTO_COLUMNS}
  for field in PRICE_FIELDS:
    if row[field] is None:
      row[field] = 0.0
  row["created_at"] = row["created_at"] or now
  row["updated_at"] = row["updated_at"] or now
  return row


def upsert_batch(session: Session, records: Sequence[Dict[str, Any]], chunk_size: int = 100) -> Outcome[int]:
  """
  Insert or overwrite products keyed on EAN.

  Records without a validity date (or without an EAN) are dropped before writing.
  When the same EAN appears more than once in the batch, the last one wins.
  All chunks are written in a single transaction.

  Returns:
    Outcome[int]: number of records written, or the store error
  """
  log.info(f"[DB] Processing batch of {len(records)} products")

  valid = []
  for record in records:
    if record.get("DATA_VIGENCIA") is None:
      log.warning(f"[DB] Invalid date for product: {record.get('EAN')}")
    elif not record.get("EAN"):
      log.warning(f"[DB] Missing EAN for product: {record.get('ID_PRODUTO')}")
    else:
      valid.append(record)

  if len(valid) != len(records):
    log.warning(f"[DB] Filtered out {len(records) - len(valid)} products with invalid date or EAN")

  # Deduplicate on the conflict key, keeping the last occurrence
  now = datetime.now(timezone.utc)
  by_ean = {}
  for record in valid:
    by_ean[record["EAN"]] = _to_row(record, now)
  rows = list(by_ean.values())

  if not rows:
    return Outcome.success(0)

  try:
    insert = _dialect_insert(session)
    table = Produto.__table__
    for start in range(0, len(rows), chunk_size):
      statement = insert(table).values(rows[start:start + chunk_size])
      statement = statement.on_conflict_do_update(
        index_elements=[table.c.EAN],
        set_={col: statement.excluded[col] for col in PRODUTO_COLUMNS if col not in _PRESERVED_ON_CONFLICT},
      )
      session.exec(statement)
    session.commit()
  except (SQLAlchemyError, NotImplementedError) as e:
    log.error(f"[DB] Upsert failed: {e}")
    session.rollback()
    return Outcome.failure(f"Upsert error: {e}")

  log.info(f"[DB] Processed {len(rows)} products")
  return Outcome.success(len(rows))


def count_products(session: Session) -> int:
  return session.exec(select(func.count()).select_from(Produto)).one()


def is_store_empty(session: Session) -> bool:
  """True when the produtos table holds no rows"""
  count = count_products(session)
  log.info(f"[DB] Current table count: {count}")
  return count == 0


def get_by_ean(session: Session, ean: str) -> Optional[Produto]:
  return session.exec(select(Produto).where(Produto.EAN == ean)).first()


def list_by_registro(session: Session, registro_ms: str) -> List[Produto]:
  statement = select(Produto).where(Produto.REGISTRO_MS == registro_ms).order_by(Produto.id)
  return list(session.exec(statement).all())


def list_by_status(session: Session, id_status: str) -> List[Produto]:
  statement = select(Produto).where(Produto.ID_STATUS == id_status).order_by(Produto.id)
  return list(session.exec(statement).all())


def search_by_field(session: Session, field: str, term: str) -> List[Produto]:
  """Case-insensitive substring match on NOME, APRESENTACAO or LABORATORIO"""
  if field not in SEARCHABLE_FIELDS:
    raise ValueError(f"Field '{field}' is not searchable")

  column = getattr(Produto, field)
  # Escape LIKE wildcards typed by the client
  pattern = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
  statement = select(Produto).where(column.ilike(f"%{pattern}%", escape="\\")).order_by(Produto.id)
  return list(session.exec(statement).all())


def create_product(session: Session, data: Dict[str, Any]) -> Produto:
  """Insert one product. IntegrityError propagates on a duplicate EAN."""
  product = Produto(**data)
  session.add(product)
  try:
    session.commit()
  except SQLAlchemyError:
    session.rollback()
    raise
  session.refresh(product)
  return product


def update_product(session: Session, product_id: int, changes: Dict[str, Any]) -> Optional[Produto]:
  """Apply the given column changes. Returns None when the id does not exist."""
  product = session.get(Produto, product_id)
  if product is None:
    return None

  for key, value in changes.items():
    setattr(product, key, value)
  if "updated_at" not in changes:
    product.updated_at = datetime.now(timezone.utc)

  session.add(product)
  try:
    session.commit()
  except SQLAlchemyError:
    session.rollback()
    raise
  session.refresh(product)
  return product


def delete_product(session: Session, product_id: int) -> int:
  """Delete by primary key, returns the number of rows removed"""
  try:
    result = session.exec(delete(Produto).where(Produto.id == product_id))
    session.commit()
  except SQLAlchemyError:
    session.rollback()
    raise
  return result.rowcount


def get_page(session: Session, page: int, page_size: int = 50) -> Dict[str, Any]:
  """Offset pagination ordered by id; total_paginas is computed from a separate count"""
  total = count_products(session)
  statement = select(Produto).order_by(Produto.id).offset((page - 1) * page_size).limit(page_size)
  return {
    "pagina": page,
    "total_paginas": math.ceil(total / page_size),
    "data": list(session.exec(statement).all()),
  }


def iter_product_windows(session: Session, window: int = 1000) -> Iterator[List[Produto]]:
  """Yield the whole table in fixed-size windows ordered by id"""
  offset = 0
  while True:
    statement = select(Produto).order_by(Produto.id).offset(offset).limit(window)
    rows = list(session.exec(statement).all())
    if not rows:
      return
    yield rows
    if len(rows) < window:
      return
    offset += window
