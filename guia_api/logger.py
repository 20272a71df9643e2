# guia_api/logger.py

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
import json
from datetime import datetime, timezone


# Attributes every LogRecord carries; anything else was passed through `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


# Custom JSON Formatter
class JsonFormatter(logging.Formatter):
  def format(self, record):
    log_record = {
      "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
      "level": record.levelname,
      "logger": record.name,
      "message": record.getMessage(),
      "file": record.pathname,
      "line": record.lineno,
      "function": record.funcName
    }

    # Structured context, e.g. log.info("...", extra={"page": 3})
    for key, value in record.__dict__.items():
      if key not in _RESERVED_ATTRS and not key.startswith("_"):
        log_record[key] = value

    if record.exc_info:
      log_record["exception"] = self.formatException(record.exc_info)

    return json.dumps(log_record, default=str, ensure_ascii=False)


json_formatter = JsonFormatter()


def root_level(env, level_name):
  """DEBUG outside production, else LOG_LEVEL (INFO when the name is unknown)"""
  if env in ("testing", "development"):
    return logging.DEBUG
  level = logging.getLevelName((level_name or "INFO").upper())
  return level if isinstance(level, int) else logging.INFO


def configure_logging():
  ENV = os.getenv("APP_ENV", "development")

  LOG_DIR = "logs"
  APP_LOG_FILE = os.path.join(LOG_DIR, "app.log")
  TEST_LOG_FILE = os.path.join(LOG_DIR, "test.log")

  os.makedirs(LOG_DIR, exist_ok=True)

  # Root logger
  logger = logging.getLogger()
  logger.setLevel(root_level(ENV, os.getenv("LOG_LEVEL")))

  # Clear previous handler
  if logger.hasHandlers():
    logger.handlers.clear()

  # --- Console (stdout) logger ---
  console_handler = logging.StreamHandler(sys.stdout)
  console_handler.setFormatter(json_formatter)
  console_handler.setLevel(logging.ERROR) # stdout ERROR messages
  logger.addHandler(console_handler)

  # File logging for testing stage test.log, others app.log
  if ENV == "testing":
    file_handler = RotatingFileHandler(TEST_LOG_FILE, maxBytes=1*1024*1024, backupCount=1, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
  else:
    file_handler = RotatingFileHandler(APP_LOG_FILE, maxBytes=5*1024*1024, backupCount=3, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
  file_handler.setFormatter(json_formatter)
  logger.addHandler(file_handler)

  # Quieter third party loggers
  logging.getLogger("apscheduler").setLevel(logging.WARNING)
  logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name):
  """
  Returns a logger object with specific name.
  Before call this function configure_logging() must be called.
  """
  return logging.getLogger(name)
