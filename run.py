#!/usr/bin/env python3
"""Start the RingSim server with a fresh seeded database."""

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).parent
sys.path.insert(0, str(ROOT))

import config
from logging_config import setup_logging

setup_logging(config.LOG_LEVEL, config.LOG_DIR)
logger = logging.getLogger("run")

# Remove old DB for a fresh start
if config.DB_URL.startswith("sqlite:///"):
    db_file = Path(config.DB_URL[len("sqlite:///"):])
    if db_file.exists():
        os.remove(db_file)

from api.app import create_app
import api.services as svc
from simulation.seed import seed_all

# Create app (this calls init_db, creating tables + session factory)
app = create_app(config.DB_URL)

with svc._SessionFactory() as session:
    summary = seed_all(session, seed=config.SEED)
    logger.info("Seeded %d wrestlers, %d rules and %d titles",
                summary["wrestlers"], summary["rules"], summary["titles"])

logger.info("Starting server at http://%s:%d", config.HOST, config.PORT)
app.run(host=config.HOST, port=config.PORT, debug=False)
