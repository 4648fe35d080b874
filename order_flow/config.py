"""Environment driven settings for the order flow tracker."""

from __future__ import annotations

import os
from dataclasses import dataclass

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

ENV = os.getenv("ORDER_FLOW_ENV", "DEMO").upper()

DATABASE_PATH = os.getenv("ORDER_FLOW_DB", "order_flow.sqlite3")

# Logging
LOG_DIR = os.getenv("ORDER_FLOW_LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.getenv("ORDER_FLOW_LOG_FILE", "order_flow.log")
LOG_LEVEL = os.getenv("ORDER_FLOW_LOG_LEVEL", "INFO").upper()

# Move rules
MIN_JUSTIFICATION_LENGTH = int(os.getenv("ORDER_FLOW_MIN_JUSTIFICATION", "5"))
DEFAULT_ACTOR = os.getenv("ORDER_FLOW_DEFAULT_ACTOR", "current_user")


@dataclass(frozen=True, slots=True)
class Settings:
    """Snapshot of the configuration values used by the service layer."""

    env: str = ENV
    database_path: str = DATABASE_PATH
    log_dir: str = LOG_DIR
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    min_justification_length: int = MIN_JUSTIFICATION_LENGTH
    default_actor: str = DEFAULT_ACTOR

    @property
    def is_demo(self) -> bool:
        return self.env == "DEMO"


def load_settings() -> Settings:
    """Re-read the environment, e.g. after a test patched it."""

    return Settings(
        env=os.getenv("ORDER_FLOW_ENV", "DEMO").upper(),
        database_path=os.getenv("ORDER_FLOW_DB", "order_flow.sqlite3"),
        log_dir=os.getenv("ORDER_FLOW_LOG_DIR", os.path.join(BASE_DIR, "logs")),
        log_file=os.getenv("ORDER_FLOW_LOG_FILE", "order_flow.log"),
        log_level=os.getenv("ORDER_FLOW_LOG_LEVEL", "INFO").upper(),
        min_justification_length=int(os.getenv("ORDER_FLOW_MIN_JUSTIFICATION", "5")),
        default_actor=os.getenv("ORDER_FLOW_DEFAULT_ACTOR", "current_user"),
    )


__all__ = ["Settings", "load_settings"]
