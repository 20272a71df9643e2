# guia_api/exceptions.py

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class GuiaApiError(Exception):
  """All upstream (Guia da Farmacia) errors"""
  pass

class GuiaTimeoutError(GuiaApiError):
  """Request timeout error raise"""
  pass

class GuiaConnectionError(GuiaApiError):
  """Connection error raise"""

class GuiaHTTPError(GuiaApiError):
  """HTTP status code 400-499 or 500-599 raise"""
  def __init__(self, status_code: int, message: str = None):
    self.status_code = status_code
    self.message = message or f"HTTP error {status_code}"
    super().__init__(self.message)

class GuiaResponseError(GuiaApiError):
  """Body is empty or not a JSON envelope"""
  pass


@dataclass(frozen=True)
class Outcome(Generic[T]):
  """
  Result of an operation that reports failure instead of raising.
  A successful outcome may still carry an empty value (e.g. a page with no items),
  so callers check `ok` rather than the truthiness of `value`.
  """
  value: Optional[T] = None
  error: Optional[str] = None

  @property
  def ok(self) -> bool:
    return self.error is None

  @classmethod
  def success(cls, value: T) -> "Outcome[T]":
    return cls(value=value)

  @classmethod
  def failure(cls, reason: str) -> "Outcome[T]":
    return cls(error=reason or "unknown error")
