#!/usr/bin/env python
"""Run database migrations at container startup"""
import os
import sys
import logging
from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from feeddiff.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("migrations")


def run_migrations():
    """Run all pending migrations"""
    try:
        logger.info("Starting database migrations...")

        alembic_ini = os.path.join(os.path.dirname(__file__), '..', 'alembic.ini')
        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.sync_database_url)

        command.upgrade(alembic_cfg, "head")

        logger.info("All migrations applied successfully")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Migrations failed: {e}", exc_info=True)
        return False


if __name__ == "__main__":
    success = run_migrations()
    if not success:
        sys.exit(1)
