import logging
import os
from logging.handlers import RotatingFileHandler

from .config import load_settings

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    settings = load_settings()
    logger = logging.getLogger(f"order_flow.{name}")
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # an empty ORDER_FLOW_LOG_DIR keeps records in-process only
    if settings.log_dir and not any(
        isinstance(h, RotatingFileHandler) for h in logger.handlers
    ):
        os.makedirs(settings.log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(settings.log_dir, settings.log_file),
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=5,
        )
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    return logger
