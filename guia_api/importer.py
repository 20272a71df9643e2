# guia_api/importer.py

import time
from datetime import datetime, timezone
from typing import Callable

from guia_api.config import IMPORT_CONFIG, ImportConfig
from guia_api.database import get_session
from guia_api.guia_client import fetch_page
from guia_api.models import ImportSummary
from guia_api.repository import upsert_batch
from guia_api.logger import get_logger

log = get_logger(__name__)


def run_import(
    fetch: Callable = fetch_page,
    session_factory: Callable = get_session,
    sleep: Callable[[float], None] = time.sleep,
    config: ImportConfig = IMPORT_CONFIG,
) -> ImportSummary:
  """
  Import the whole Guia da Farmacia catalog page by page.

  The run ends 'completed' after the last page (or an empty page), and 'failed'
  when the first fetch fails, the item list is malformed, a retry budget runs out
  or something unexpected is raised. A failed fetch after products were imported
  is retried on the same page up to `max_fetch_retries` times; a failed upsert is
  retried (fetching the page again) up to `max_upsert_retries` times.

  Args:
    fetch: page fetcher returning Outcome[GuiaPage]
    session_factory: returns a new database session
    sleep: delay function, injectable for tests

  Returns:
    ImportSummary: always returned, whatever the outcome
  """
  summary = ImportSummary()
  log.info(f"[Import] Starting Guia da Farmacia import at {summary.start_time.isoformat()}")

  current_page = 1
  total_pages = None
  fetch_failures = 0
  upsert_failures = 0

  try:
    while True:
      log.info(f"[Import] Processing page {current_page}", extra={"page": current_page})
      fetched = fetch(current_page)

      if not fetched.ok:
        if summary.products_imported == 0:
          log.error("[Import] No successful imports yet, ending process")
          summary.status = "failed"
          summary.errors.append("Failed to fetch initial data")
          break

        fetch_failures += 1
        if fetch_failures > config.max_fetch_retries:
          log.error(f"[Import] Giving up on page {current_page} after {fetch_failures} failed fetches")
          summary.status = "failed"
          summary.errors.append(f"Failed to fetch page {current_page}: {fetched.error}")
          break

        log.warning(
          f"[Import] Fetch of page {current_page} failed after previous pages succeeded, "
          f"retry {fetch_failures} of {config.max_fetch_retries} in {config.fetch_retry_delay}s",
          extra={"page": current_page, "attempt": fetch_failures},
        )
        sleep(config.fetch_retry_delay)
        continue
      fetch_failures = 0

      page = fetched.value
      # Set total pages on first successful response
      if total_pages is None and page.total_paginas is not None:
        total_pages = page.total_paginas
        summary.total_pages = total_pages
        log.info(f"[Import] Total pages to process: {total_pages}")

      products = page.data
      if products is None:
        log.error(f"[Import] Invalid products array in response for page {current_page}")
        summary.status = "failed"
        summary.errors.append("Invalid products data structure")
        break

      if not products:
        log.info(f"[Import] Received empty products array on page {current_page}, ending import")
        summary.status = "completed"
        break

      log.info(f"[Import] Processing {len(products)} products from page {current_page}")
      session = session_factory()
      try:
        written = upsert_batch(session, products, chunk_size=config.upsert_chunk_size)
      finally:
        session.close()

      if not written.ok:
        upsert_failures += 1
        summary.errors.append(f"Failed to process page {current_page}: {written.error}")
        if upsert_failures > config.max_upsert_retries:
          log.error(f"[Import] Giving up on page {current_page} after {upsert_failures} failed upserts")
          summary.status = "failed"
          break

        log.warning(
          f"[Import] Failed to process page {current_page}, "
          f"retry {upsert_failures} of {config.max_upsert_retries} in {config.upsert_retry_delay}s",
          extra={"page": current_page, "attempt": upsert_failures},
        )
        sleep(config.upsert_retry_delay)
        continue
      upsert_failures = 0

      summary.products_imported += written.value
      summary.pages_processed = current_page
      log.info(f"[Import] Progress: {summary.products_imported} total products imported")
      log.info(
        f"[Import] Page {current_page} of {total_pages} completed",
        extra={"page": current_page, "written": written.value},
      )

      if total_pages is not None and current_page >= total_pages:
        log.info("[Import] Reached last page, ending import")
        summary.status = "completed"
        break

      current_page += 1

      # Rate limiting
      sleep(config.page_delay)

  except Exception as e:
    log.error(f"[Import] Unexpected error during import: {e}", exc_info=True)
    summary.status = "failed"
    summary.errors.append(f"Unexpected error: {e}")

  summary.end_time = datetime.now(timezone.utc)
  log.info(
    f"[Import] Import process finished with status '{summary.status}': "
    f"{summary.pages_processed}/{summary.total_pages} pages, {summary.products_imported} products, "
    f"{len(summary.errors)} errors"
  )
  return summary
