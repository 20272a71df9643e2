# tests/conftest.py

import os

# Must be set before guia_api modules read their configuration
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from datetime import datetime, timezone
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import guia_api.database as database
from guia_api.db_models import Produto


@pytest.fixture
def engine(monkeypatch):
  """In-memory SQLite shared by every session of a test"""
  test_engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
  SQLModel.metadata.create_all(test_engine)
  monkeypatch.setattr(database, "engine", test_engine)
  yield test_engine
  test_engine.dispose()


@pytest.fixture
def session(engine):
  with Session(engine) as s:
    yield s


@pytest.fixture
def session_factory(engine):
  return lambda: Session(engine)


@pytest.fixture
def make_record():
  """Builds an already-normalized product record"""
  def _make(ean: str, **overrides):
    record = {
      "ID_PRODUTO": f"ID-{ean}",
      "EAN": ean,
      "REGISTRO_MS": "1000000000001",
      "NOME": "DIPIRONA SODICA",
      "APRESENTACAO": "500MG COM CT BL AL PLAS INC X 10",
      "LABORATORIO": "EMS",
      "PRINCIPIO_ATIVO": "DIPIRONA MONOIDRATADA",
      "ID_STATUS": "1",
      "PRECO_FABRICA_18": 10.5,
      "PRECO_MAXIMO_18": 14.52,
      "DATA_VIGENCIA": datetime(2024, 4, 1, tzinfo=timezone.utc),
    }
    record.update(overrides)
    return record
  return _make


@pytest.fixture
def add_products(session, make_record):
  """Insert `count` products directly, EANs 7890000000001, 7890000000002, ..."""
  def _add(count: int, **overrides):
    products = []
    for i in range(1, count + 1):
      data = make_record(f"789{i:010d}", **overrides)
      products.append(Produto(**data))
    session.add_all(products)
    session.commit()
    return products
  return _add
