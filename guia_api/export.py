# guia_api/export.py

import zipfile
from typing import Callable, Iterator, List

import pandas as pd

from guia_api.database import get_session
from guia_api.db_models import Produto
from guia_api.repository import iter_product_windows
from guia_api.logger import get_logger

log = get_logger(__name__)

CSV_FILENAME = "produtos.csv"
CSV_COLUMNS = list(Produto.__table__.columns.keys())


class _StreamSink:
  """Write-only, non-seekable buffer; zipfile then emits data descriptors instead of seeking back"""

  def __init__(self):
    self._chunks: List[bytes] = []

  def write(self, data) -> int:
    self._chunks.append(bytes(data))
    return len(data)

  def flush(self):
    pass

  def drain(self) -> bytes:
    data = b"".join(self._chunks)
    self._chunks.clear()
    return data


def _rows_to_csv(rows: List[Produto], header: bool) -> bytes:
  frame = pd.DataFrame([row.model_dump() for row in rows], columns=CSV_COLUMNS)
  return frame.to_csv(index=False, header=header).encode("utf-8")


def export_products_zip(session_factory: Callable = get_session, window: int = 1000) -> Iterator[bytes]:
  """
  Stream every product as a ZIP archive holding a single CSV file.

  The table is read in `window`-row pages only when the consumer asks for the
  next chunk, so a slow client never causes the whole table to be loaded.
  """
  sink = _StreamSink()
  session = session_factory()
  total = 0

  try:
    with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
      with archive.open(CSV_FILENAME, mode="w", force_zip64=True) as csv_file:
        header_written = False
        for rows in iter_product_windows(session, window=window):
          csv_file.write(_rows_to_csv(rows, header=not header_written))
          header_written = True
          total += len(rows)
          chunk = sink.drain()
          if chunk:
            yield chunk

        if not header_written:
          # Empty table still gets the header line
          csv_file.write(_rows_to_csv([], header=True))

    # Central directory is written when the archive closes
    yield sink.drain()
  finally:
    session.close()

  log.info(f"[EXPORT] Streamed {total} products to {CSV_FILENAME}")
