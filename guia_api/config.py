# guia_api/config.py

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
  value = os.getenv(name)
  if value is None:
    return default
  return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DatabaseConfig:
  """Connection settings for the produtos store"""
  url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///db/produtos.db"))
  echo: bool = field(default_factory=lambda: _env_bool("DATABASE_ECHO", False))


@dataclass
class GuiaConfig:
  """Credentials and request behaviour for the Guia da Farmacia API"""
  url: str = field(default_factory=lambda: os.getenv("GUIA_URL", ""))
  cnpj_sh: str = field(default_factory=lambda: os.getenv("GUIA_CNPJ_SH", ""))
  cnpj_cpf: str = field(default_factory=lambda: os.getenv("GUIA_CNPJ_CPF", ""))
  email: str = field(default_factory=lambda: os.getenv("GUIA_EMAIL", ""))
  senha: str = field(default_factory=lambda: os.getenv("GUIA_SENHA", ""))

  request_timeout: float = 30.0
  # Extra attempts after the first one fails
  max_retries: int = 3
  retry_delay: float = 2.0


@dataclass
class ImportConfig:
  """Pacing and retry budgets of the import loop"""
  page_delay: float = 1.0
  fetch_retry_delay: float = 5.0
  upsert_retry_delay: float = 2.0
  max_fetch_retries: int = field(default_factory=lambda: int(os.getenv("IMPORT_MAX_FETCH_RETRIES", "5")))
  max_upsert_retries: int = field(default_factory=lambda: int(os.getenv("IMPORT_MAX_UPSERT_RETRIES", "3")))
  upsert_chunk_size: int = 100


@dataclass
class SchedulerConfig:
  """Periodic import trigger (every 7 days at 03:00)"""
  enabled: bool = field(default_factory=lambda: _env_bool("SCHEDULER_ENABLED", True))
  timezone: str = field(default_factory=lambda: os.getenv("SCHEDULER_TIMEZONE", "America/Sao_Paulo"))
  day: str = "*/7"
  hour: int = 3
  minute: int = 0


@dataclass
class ApiConfig:
  page_size: int = 50
  export_page_size: int = 1000


# Global instances
DATABASE_CONFIG = DatabaseConfig()
GUIA_CONFIG = GuiaConfig()
IMPORT_CONFIG = ImportConfig()
SCHEDULER_CONFIG = SchedulerConfig()
API_CONFIG = ApiConfig()
