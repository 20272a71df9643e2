# guia_api/guia_client.py

import requests
import time
from datetime import datetime, timezone
from typing import Any, Dict
from pydantic import ValidationError

from guia_api.config import GUIA_CONFIG, GuiaConfig
from guia_api.models import GuiaPage
from guia_api.normalize import normalize_item
from guia_api.exceptions import Outcome
import guia_api.exceptions as ex
from guia_api.logger import get_logger

# Get the logger for this module. Its name will be 'guia_api.guia_client'.
log = get_logger(__name__)

headers = {
  "Content-Type": "application/x-www-form-urlencoded",
  "Accept": "application/json",
}

# Shared session; retries are handled by fetch_page with a fixed delay
session = requests.session()


def fetch_page(page: int, http=None, sleep=time.sleep, config: GuiaConfig = GUIA_CONFIG) -> Outcome[GuiaPage]:
  """
  Fetch one page of the Guia da Farmacia catalog and normalize its items.

  The first attempt is followed by up to `config.max_retries` retries spaced
  `config.retry_delay` seconds apart. Never raises: after the last attempt the
  failure is returned as Outcome.failure so callers can tell it apart from a
  page that legitimately has no items.

  Args:
    page (int): 1-based page number
    http: requests-compatible session (defaults to the module session)
    sleep: delay function, injectable for tests

  Returns:
    Outcome[GuiaPage]: page envelope with normalized items, or the failure reason
  """
  http = http or session
  attempts = config.max_retries + 1
  last_error = None

  for attempt in range(1, attempts + 1):
    log.info(f"[GUIA] Fetching page {page} (attempt {attempt} of {attempts})")
    try:
      payload = _request_page(http, page, config)
      guia_page = _build_page(payload)
    except ex.GuiaApiError as e:
      last_error = str(e)
      log.error(f"[GUIA] Failed to fetch page {page}: {e}")
      if attempt < attempts:
        log.info(f"[GUIA] Retry {attempt} of {config.max_retries} for page {page} in {config.retry_delay}s")
        sleep(config.retry_delay)
      continue

    log.info(
      f"[GUIA] Page {guia_page.pagina} of {guia_page.total_paginas} received "
      f"({len(guia_page.data) if guia_page.data is not None else 'no'} items, "
      f"{guia_page.total_itens} total, updated {guia_page.data_atualizacao})"
    )
    return Outcome.success(guia_page)

  log.error(f"[GUIA] Max retries reached for page {page}")
  return Outcome.failure(f"Failed to fetch page {page} after {attempts} attempts: {last_error}")


def _request_page(http, page: int, config: GuiaConfig) -> Dict[str, Any]:
  """Single POST to the upstream API, translating requests errors into GuiaApiError"""
  form = {
    "cnpj_sh": config.cnpj_sh,
    "cnpj_cpf": config.cnpj_cpf,
    "email": config.email,
    "senha": config.senha,
    "pagina": page,
  }

  response = None
  try:
    response = http.post(config.url, data=form, headers=headers, timeout=config.request_timeout)
    response.raise_for_status()
  except requests.exceptions.Timeout as e:
    raise ex.GuiaTimeoutError(f"Request timed out for page {page}: {e}")
  except requests.exceptions.ConnectionError as e:
    raise ex.GuiaConnectionError(f"Connection error for page {page}: {e}")
  except requests.exceptions.HTTPError as e:
    status_code = response.status_code if response is not None else None
    raise ex.GuiaHTTPError(status_code=status_code, message=f"Returned HTTP {status_code} for page {page}")
  except requests.exceptions.RequestException as e:
    raise ex.GuiaApiError(f"Request failed for page {page}: {e}")

  try:
    payload = response.json()
  except ValueError as e:
    raise ex.GuiaResponseError(f"Invalid JSON for page {page}: {e}")

  if not payload or not isinstance(payload, dict):
    raise ex.GuiaResponseError("Empty response data")
  return payload


def _build_page(payload: Dict[str, Any]) -> GuiaPage:
  items = payload.get("data")
  now = datetime.now(timezone.utc)

  if isinstance(items, list):
    normalized = [normalize_item(item, now) for item in items if isinstance(item, dict)]
    if len(normalized) != len(items):
      log.warning(f"[GUIA] Ignored {len(items) - len(normalized)} malformed items")
  else:
    log.warning(f"[GUIA] Response has no item list (data is {type(items).__name__})")
    normalized = None

  updated = payload.get("data_atualizacao")
  try:
    return GuiaPage(
      pagina=payload.get("pagina"),
      total_paginas=payload.get("total_paginas"),
      total_itens=payload.get("total_itens"),
      total_data=payload.get("total_data"),
      data_atualizacao=str(updated) if updated is not None else None,
      data=normalized,
    )
  except ValidationError as e:
    raise ex.GuiaResponseError(f"Unexpected envelope: {e}")
