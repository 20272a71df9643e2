# /run.py

import subprocess
import json
import os
import sys

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def run_fastapi():
  subprocess.run([sys.executable, "-m", "uvicorn", "guia_api.main:app", "--host", "0.0.0.0", "--port", os.getenv("PORT", "8000")], cwd=BASE_DIR)

def run_import_once():
  from guia_api.logger import configure_logging
  from guia_api.database import init_db
  from guia_api.importer import run_import

  configure_logging()
  init_db()
  summary = run_import()
  print(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2))
  return 0 if summary.status == "completed" else 1

if __name__ == "__main__":

  if len(sys.argv) > 1 and sys.argv[1] == "import":
    sys.exit(run_import_once())

  run_fastapi()
