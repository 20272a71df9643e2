# guia_api/normalize.py

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from guia_api.db_models import PRICE_FIELDS, TEXT_FIELDS
from guia_api.logger import get_logger

log = get_logger(__name__)


def convert_date(date_str: Optional[str]) -> Optional[datetime]:
  """
  Convert a DD/MM/YYYY string to midnight UTC of that calendar date.

  Returns None for missing input, anything that is not three numeric
  '/'-separated parts, or a date that does not exist (e.g. 31/02/2024).
  """
  if not date_str or not isinstance(date_str, str):
    return None

  parts = date_str.strip().split("/")
  if len(parts) != 3 or not all(p.strip().isdecimal() for p in parts):
    log.debug(f"[NORMALIZE] Malformed date: '{date_str}'")
    return None

  day, month, year = (int(p) for p in parts)
  try:
    return datetime(year, month, day, tzinfo=timezone.utc)
  except ValueError as e:
    log.warning(f"[NORMALIZE] Failed to convert date '{date_str}': {e}")
    return None


def parse_locale_decimal(value: Any) -> float:
  """
  Parse a pt-BR formatted number ("1.234,56") into a float.
  Missing or unparseable values become 0.
  """
  if value is None or isinstance(value, bool):
    return 0.0

  if isinstance(value, (int, float)):
    number = float(value)
  else:
    text = str(value).strip()
    if not text:
      return 0.0
    if "," in text:
      # Dots are thousands separators when a decimal comma is present
      text = text.replace(".", "").replace(",", ".")
    try:
      number = float(text)
    except ValueError:
      return 0.0

  if not math.isfinite(number):
    return 0.0
  return number


def normalize_item(item: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
  """Returns a copy of an upstream product with dates, prices and audit stamps converted"""
  now = now or datetime.now(timezone.utc)
  product = dict(item)

  product["DATA_VIGENCIA"] = convert_date(item.get("DATA_VIGENCIA"))
  product["created_at"] = now
  product["updated_at"] = now

  for field in PRICE_FIELDS:
    product[field] = parse_locale_decimal(item.get(field))

  for field in TEXT_FIELDS:
    value = product.get(field)
    if value is not None and not isinstance(value, str):
      product[field] = str(value)

  return product
