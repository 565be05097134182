#!/usr/bin/env python3
"""
Main entrypoint: bootstrap the database, start the digest scheduler and serve the web app.
Run with: python run.py
Or run web only: python -m web_app
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure app loggers (deadlines.api, contact_service, ...) emit to the same stream as uvicorn
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from config import load as load_config
from database import init_database
from slack_digest import start_digest_scheduler, stop_digest_scheduler

logger = logging.getLogger("run")


def main() -> None:
    config = load_config()
    if config.storage_mode == "database":
        path = init_database(Path(config.database_path) if config.database_path else None)
        logger.info("Database ready at %s", path)

    if config.digest_cron.strip():
        start_digest_scheduler()

    import uvicorn
    try:
        uvicorn.run(
            "web_app:app",
            host="0.0.0.0",
            port=config.web_ui_port,
            reload=False,
        )
    finally:
        stop_digest_scheduler()


if __name__ == "__main__":
    main()
