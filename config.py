"""RingSim settings. Read once at import; override through the environment."""

import os
from pathlib import Path

ROOT = Path(__file__).parent

DB_URL = os.environ.get("RINGSIM_DB_URL", f"sqlite:///{ROOT / 'ringsim.db'}")
LOG_LEVEL = os.environ.get("RINGSIM_LOG_LEVEL", "INFO")
LOG_DIR = Path(os.environ.get("RINGSIM_LOG_DIR", str(ROOT / "logs")))

HOST = os.environ.get("RINGSIM_HOST", "127.0.0.1")
PORT = int(os.environ.get("RINGSIM_PORT", "5000"))

# Seed for the demo roster built by run.py
SEED = int(os.environ.get("RINGSIM_SEED", "42"))
