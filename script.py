"""DB-IP Pipeline - Notebook-friendly script.

Checks db-ip.com for a new monthly "IP to City Lite" release and, when the
local DuckDB database holds a different version, loads the new one.

This script is designed to be run in Jupyter notebooks or similar environments.
Modify the settings below to configure the pipeline.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dbip_pipeline.pipeline import RunMode, execute
from dbip_pipeline.settings import load_settings

# ============================================================================
# CONFIGURATION - Modify these settings as needed
# ============================================================================

# Path to config.yaml file
CONFIG_PATH = Path("config.yaml")

# Raise errors with a traceback instead of logging them
DEBUG = True

# Enable verbose/debug logging
VERBOSE = False

# ============================================================================

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if VERBOSE else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    """Run the DB-IP pipeline with configured settings."""
    settings = load_settings(CONFIG_PATH)
    logger.info("Loaded config from %s", CONFIG_PATH)

    return execute(settings, mode=RunMode.DEBUG if DEBUG else RunMode.NORMAL)


if __name__ == "__main__":
    raise SystemExit(main())
