# tests/test_repository.py

import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

import guia_api.repository as repo
from guia_api.db_models import Produto


def test_upsert_same_ean_keeps_one_row_with_latest_values(session, make_record):
  first = repo.upsert_batch(session, [make_record("7890000000001", NOME="OLD NAME", PRECO_FABRICA_18=1.0)])
  second = repo.upsert_batch(session, [make_record("7890000000001", NOME="NEW NAME", PRECO_FABRICA_18=2.0)])

  assert first.ok and first.value == 1
  assert second.ok and second.value == 1

  rows = session.exec(select(Produto)).all()
  assert len(rows) == 1
  assert rows[0].NOME == "NEW NAME"
  assert rows[0].PRECO_FABRICA_18 == 2.0


def test_upsert_keeps_id_and_created_at_of_existing_row(session, make_record):
  created = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
  later = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
  repo.upsert_batch(session, [make_record("7890000000001", created_at=created, updated_at=created)])
  original_id = session.exec(select(Produto)).one().id

  repo.upsert_batch(session, [make_record("7890000000001", created_at=later, updated_at=later)])
  session.expire_all()

  row = session.exec(select(Produto)).one()
  assert row.id == original_id
  assert row.created_at == created
  assert row.updated_at == later


def test_timestamps_are_read_back_in_utc(session, make_record):
  brasilia = timezone(timedelta(hours=-3))
  repo.upsert_batch(session, [make_record("7890000000001", updated_at=datetime(2024, 6, 1, 5, 0, tzinfo=brasilia))])
  session.expire_all()

  row = session.exec(select(Produto)).one()
  assert row.DATA_VIGENCIA == datetime(2024, 4, 1, tzinfo=timezone.utc)
  assert row.DATA_VIGENCIA.tzinfo is not None
  assert row.updated_at == datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
  assert row.updated_at.utcoffset() == timedelta(0)


def test_upsert_never_persists_null_validity_date(session, make_record):
  result = repo.upsert_batch(session, [
    make_record("7890000000001"),
    make_record("7890000000002", DATA_VIGENCIA=None),
    make_record("", NOME="NO EAN"),
  ])

  assert result.ok
  assert result.value == 1
  eans = [row.EAN for row in session.exec(select(Produto)).all()]
  assert eans == ["7890000000001"]


def test_upsert_duplicate_ean_in_batch_last_wins(session, make_record):
  result = repo.upsert_batch(session, [
    make_record("7890000000001", NOME="FIRST"),
    make_record("7890000000001", NOME="SECOND"),
  ])

  assert result.value == 1
  assert session.exec(select(Produto)).one().NOME == "SECOND"


def test_upsert_ignores_unknown_columns_and_chunks(session, make_record):
  records = [make_record(f"789{i:010d}", UNKNOWN_UPSTREAM_FIELD="x") for i in range(1, 251)]

  result = repo.upsert_batch(session, records, chunk_size=100)

  assert result.ok
  assert result.value == 250
  assert repo.count_products(session) == 250


def test_upsert_empty_batch_is_success(session):
  result = repo.upsert_batch(session, [])
  assert result.ok
  assert result.value == 0


def test_upsert_store_error_returns_failure(make_record):
  # No tables created: every statement fails
  broken = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
  with Session(broken) as session:
    result = repo.upsert_batch(session, [make_record("7890000000001")])

  assert not result.ok
  assert "Upsert error" in result.error


def test_is_store_empty(session, add_products):
  assert repo.is_store_empty(session) is True
  add_products(1)
  assert repo.is_store_empty(session) is False


def test_search_by_field_is_case_insensitive_substring(session, add_products):
  add_products(2)
  extra = Produto(EAN="123", NOME="Paracetamol Infantil", LABORATORIO="Medley")
  session.add(extra)
  session.commit()

  assert [p.EAN for p in repo.search_by_field(session, "NOME", "cetamol")] == ["123"]
  assert len(repo.search_by_field(session, "NOME", "dipirona")) == 2
  assert [p.EAN for p in repo.search_by_field(session, "LABORATORIO", "MEDL")] == ["123"]


def test_search_by_field_escapes_wildcards(session, add_products):
  add_products(3)
  assert repo.search_by_field(session, "NOME", "%") == []
  assert repo.search_by_field(session, "NOME", "_") == []


def test_search_by_field_rejects_other_columns(session):
  with pytest.raises(ValueError):
    repo.search_by_field(session, "EAN", "789")


def test_get_page_second_page_of_120(session, add_products):
  products = add_products(120)

  page = repo.get_page(session, 2, page_size=50)

  assert page["pagina"] == 2
  assert page["total_paginas"] == 3
  assert len(page["data"]) == 50
  assert [p.id for p in page["data"]] == [p.id for p in products[50:100]]


def test_get_page_empty_table(session):
  page = repo.get_page(session, 1, page_size=50)
  assert page["total_paginas"] == 0
  assert page["data"] == []


@pytest.mark.parametrize("count, sizes", [
  (0, []),
  (999, [999]),
  (2000, [1000, 1000]),
  (2001, [1000, 1000, 1]),
])
def test_iter_product_windows(session, add_products, count, sizes):
  add_products(count)

  windows = list(repo.iter_product_windows(session, window=1000))

  assert [len(w) for w in windows] == sizes
  ids = [p.id for w in windows for p in w]
  assert len(ids) == len(set(ids)) == count


def test_update_and_delete_product(session, add_products):
  product = add_products(1)[0]

  updated = repo.update_product(session, product.id, {"NOME": "RENAMED"})
  assert updated.NOME == "RENAMED"
  assert repo.update_product(session, 9999, {"NOME": "X"}) is None

  assert repo.delete_product(session, product.id) == 1
  assert repo.delete_product(session, product.id) == 0
  assert repo.get_by_ean(session, product.EAN) is None
