# guia_api/database.py

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import make_url
import os
from guia_api.config import DATABASE_CONFIG
from guia_api.logger import get_logger

log = get_logger(__name__)


def build_engine(url: str, echo: bool = False):
  """Create engine for the given URL (sqlite locally, postgresql on the managed service)"""
  connect_args = {}
  if make_url(url).get_backend_name() == "sqlite":
    connect_args["check_same_thread"] = False
  return create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(DATABASE_CONFIG.url, DATABASE_CONFIG.echo)


def init_db():
  """Creates the produtos table if missing"""
  from guia_api.db_models import Produto

  url = make_url(DATABASE_CONFIG.url)
  if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
    # Ensure the db directory exists
    db_dir = os.path.dirname(url.database)
    if db_dir:
      os.makedirs(db_dir, exist_ok=True)

  SQLModel.metadata.create_all(engine, tables=[Produto.__table__], checkfirst=True)
  log.info(f"Initialized database ({url.get_backend_name()})")


def get_session():
  """Create new session on the produtos database"""
  return Session(engine)


def get_db():
  """FastAPI dependency: one session per request"""
  session = get_session()
  try:
    yield session
  finally:
    session.close()
