import logging
import sys
import os
import json
from datetime import datetime, timezone
from feeddiff.core.config import settings

APP_LOGGER = "feeddiff"


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "props"):
            log_record.update(record.props)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def setup_logging():
    """Configure logging with both file and console output"""
    logger = logging.getLogger(APP_LOGGER)
    if getattr(logger, "_feeddiff_configured", False):
        return logger

    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    file_handler = logging.FileHandler(os.path.join(log_dir, 'feeddiff.log'))
    file_handler.setLevel(log_level)
    file_handler.setFormatter(JSONFormatter())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    # Application modules log under "feeddiff.*" and end up here
    logger.setLevel(log_level)
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.propagate = False

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger._feeddiff_configured = True
    logger.info(f"Logging system initialized. Log file: {os.path.join(log_dir, 'feeddiff.log')}")

    return logger
