# guia_api/main.py

import itertools
from fastapi import FastAPI, Depends, HTTPException, Path, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from typing import List
from guia_api.config import API_CONFIG, SCHEDULER_CONFIG
from guia_api.database import init_db, get_db, get_session
from guia_api.db_models import Produto
from guia_api.models import ImportResponse, PaginatedProdutos, ProdutoCreate, ProdutoUpdate
from guia_api.importer import run_import
from guia_api.export import export_products_zip
from guia_api.scheduler import ImportScheduler
import guia_api.repository as repo

from guia_api.logger import configure_logging, get_logger
configure_logging()

log = get_logger(__name__)
log.info("FastAPI application is starting...")


def scheduled_import():
  return run_import()


@asynccontextmanager
async def lifespan(app: FastAPI):
  # Application startup
  init_db()

  scheduler = None
  if SCHEDULER_CONFIG.enabled:
    scheduler = ImportScheduler(scheduled_import)
    scheduler.start()

  yield

  if scheduler:
    scheduler.shutdown()


app = FastAPI(title="Guia Produtos API",
              lifespan=lifespan,
              description="REST API over the Guia da Farmacia product catalog with periodic upstream import.",
              version="1.0.0")

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _require(value: str, field: str) -> str:
  """Trim a path parameter, rejecting blank values with a 400"""
  value = value.strip()
  if not value:
    raise RequestValidationError([
      {"loc": ("path", field), "msg": "must not be empty", "type": "value_error"}
    ])
  return value


def _check_store_empty() -> bool:
  """Informational only: a failed count is reported as 'not empty' and the import still runs"""
  session = None
  try:
    session = get_session()
    return repo.is_store_empty(session)
  except Exception as e:
    log.error(f"[API] Could not check whether the table is empty: {e}")
    return False
  finally:
    if session is not None:
      session.close()


def _is_ean_taken(session: Session, ean, product_id: int = None) -> bool:
  """True when another row already holds this EAN"""
  if not ean:
    return False
  existing = repo.get_by_ean(session, ean)
  return existing is not None and existing.id != product_id


@app.get("/api/import", response_model=ImportResponse)
def import_data():
  """
  Run a full import synchronously and return its summary.
  'wasEmpty' tells whether the table had no rows before the import started.
  """
  log.info("/api/import endpoint called")
  was_empty = _check_store_empty()
  try:
    summary = run_import()
  except Exception as e:
    log.error(f"[API] Import failed: {e}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Import process failed", "details": str(e)})

  return ImportResponse(message="Import process completed", was_empty=was_empty, summary=summary)


@app.get("/api/products/export")
def export_products():
  """Download every product as produtos.zip (one CSV inside)"""
  log.info("/api/products/export endpoint called")
  stream = export_products_zip(get_session, window=API_CONFIG.export_page_size)

  # Pull the first chunk here so a store failure can still become a 500
  try:
    first_chunk = next(stream)
  except StopIteration:
    first_chunk = b""
  except Exception as e:
    log.error(f"[API] Export failed before streaming: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to export products")

  return StreamingResponse(
    itertools.chain([first_chunk], stream),
    media_type="application/zip",
    headers={"Content-Disposition": "attachment; filename=produtos.zip"},
  )


@app.get("/api/products/ean/{ean}", response_model=Produto)
def get_product_by_ean(ean: str, session: Session = Depends(get_db)):
  ean = _require(ean, "ean")
  try:
    product = repo.get_by_ean(session, ean)
  except SQLAlchemyError as e:
    log.error(f"[API] Lookup by EAN '{ean}' failed: {e}")
    raise HTTPException(status_code=500, detail="Failed to fetch product")

  if product is None:
    raise HTTPException(status_code=404, detail="Product not found")
  return product


@app.get("/api/products/registro/{registroMS}", response_model=List[Produto])
def get_products_by_registro(registroMS: str, session: Session = Depends(get_db)):
  registro_ms = _require(registroMS, "registroMS")
  try:
    products = repo.list_by_registro(session, registro_ms)
  except SQLAlchemyError as e:
    log.error(f"[API] Lookup by REGISTRO_MS '{registro_ms}' failed: {e}")
    raise HTTPException(status_code=500, detail="Failed to fetch products")

  if not products:
    raise HTTPException(status_code=404, detail="Products not found")
  return products


def _search(session: Session, field: str, term: str) -> List[Produto]:
  try:
    products = repo.search_by_field(session, field, term)
  except SQLAlchemyError as e:
    log.error(f"[API] Search on {field} for '{term}' failed: {e}")
    raise HTTPException(status_code=500, detail="Failed to fetch products")

  if not products:
    raise HTTPException(status_code=404, detail="Products not found")
  return products


@app.get("/api/products/nome/{nome}", response_model=List[Produto])
def get_products_by_nome(nome: str, session: Session = Depends(get_db)):
  return _search(session, "NOME", _require(nome, "nome"))


@app.get("/api/products/apresentacao/{apresentacao}", response_model=List[Produto])
def get_products_by_apresentacao(apresentacao: str, session: Session = Depends(get_db)):
  return _search(session, "APRESENTACAO", _require(apresentacao, "apresentacao"))


@app.get("/api/products/laboratorio/{laboratorio}", response_model=List[Produto])
def get_products_by_laboratorio(laboratorio: str, session: Session = Depends(get_db)):
  return _search(session, "LABORATORIO", _require(laboratorio, "laboratorio"))


@app.get("/api/products/status/{id_status}", response_model=List[Produto])
def get_products_by_status(id_status: str, session: Session = Depends(get_db)):
  id_status = _require(id_status, "id_status")
  try:
    products = repo.list_by_status(session, id_status)
  except SQLAlchemyError as e:
    log.error(f"[API] Lookup by ID_STATUS '{id_status}' failed: {e}")
    raise HTTPException(status_code=500, detail="Failed to fetch products")

  if not products:
    raise HTTPException(status_code=404, detail="Products not found")
  return products


@app.get("/api/products/paginado/{pagina}", response_model=PaginatedProdutos)
def get_products_page(
  pagina: int = Path(..., ge=1, description="1-based page number"),
  session: Session = Depends(get_db)
  ):
  """Products ordered by id, 50 per page"""
  try:
    return repo.get_page(session, pagina, page_size=API_CONFIG.page_size)
  except SQLAlchemyError as e:
    log.error(f"[API] Pagination (page {pagina}) failed: {e}")
    raise HTTPException(status_code=500, detail="Failed to fetch products")


@app.post("/api/products", response_model=Produto, status_code=201)
def create_product(payload: ProdutoCreate, session: Session = Depends(get_db)):
  try:
    product = repo.create_product(session, payload.model_dump())
  except IntegrityError as e:
    if _is_ean_taken(session, payload.EAN):
      log.warning(f"[API] Duplicate EAN '{payload.EAN}': {e.orig}")
      raise HTTPException(status_code=409, detail="Product with this EAN already exists")
    log.error(f"[API] Create failed for EAN '{payload.EAN}': {e.orig}")
    raise HTTPException(status_code=500, detail="Failed to create product")
  except SQLAlchemyError as e:
    log.error(f"[API] Create failed for EAN '{payload.EAN}': {e}")
    raise HTTPException(status_code=500, detail="Failed to create product")

  log.info(f"[API] Created product id={product.id} EAN={product.EAN}")
  return product


@app.put("/api/products/{id}", response_model=Produto)
def update_product(id: int, payload: ProdutoUpdate, session: Session = Depends(get_db)):
  changes = payload.model_dump(exclude_unset=True)
  if not changes:
    raise RequestValidationError([
      {"loc": ("body",), "msg": "no fields to update", "type": "value_error"}
    ])
  if "EAN" in changes and not (changes["EAN"] or "").strip():
    raise RequestValidationError([
      {"loc": ("body", "EAN"), "msg": "must not be empty", "type": "value_error"}
    ])

  try:
    product = repo.update_product(session, id, changes)
  except IntegrityError as e:
    if _is_ean_taken(session, changes.get("EAN"), product_id=id):
      log.warning(f"[API] Update of product {id} to duplicate EAN '{changes['EAN']}': {e.orig}")
      raise HTTPException(status_code=409, detail="Product with this EAN already exists")
    log.error(f"[API] Update of product {id} violates a constraint: {e.orig}")
    raise HTTPException(status_code=500, detail="Failed to update product")
  except SQLAlchemyError as e:
    log.error(f"[API] Update failed for product {id}: {e}")
    raise HTTPException(status_code=500, detail="Failed to update product")

  if product is None:
    raise HTTPException(status_code=404, detail="Product not found")
  return product


@app.delete("/api/products/{id}", status_code=204)
def delete_product(id: int, session: Session = Depends(get_db)):
  try:
    deleted = repo.delete_product(session, id)
  except SQLAlchemyError as e:
    log.error(f"[API] Delete failed for product {id}: {e}")
    raise HTTPException(status_code=500, detail="Failed to delete product")

  log.info(f"[API] Delete product {id}: {deleted} row(s) removed")
  return Response(status_code=204)


@app.get("/")
def root():
  return {"messages": "Guia Produtos API - endpoints: /api/import, /api/products/export, /api/products/{ean|registro|nome|apresentacao|laboratorio|status}/..., /api/products/paginado/{pagina}"}


@app.get("/health")
def healthcheck():
  return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
  errors = [
    {"field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body", "message": err.get("msg")}
    for err in exc.errors()
  ]
  log.info(f"Validation failed for {request.method} {request.url.path}: {errors}")
  return JSONResponse(status_code=400, content={"errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
  return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
  log.error(f"Global Exception Unhandled Exception: {exc}", exc_info=True)
  return JSONResponse(
    status_code=500,
    content={"error": "Internal server error"},
  )
