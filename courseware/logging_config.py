"""Logging setup and the per-request content log configuration.

Handlers receive a :class:`LogConfig` through :func:`get_log_config` instead of
reading a process-wide debug flag, so verbosity can be swapped per app (or per
test) without touching module state.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .settings.config import Settings, settings


@dataclass(frozen=True)
class LogConfig:
    enabled: bool = False
    verbosity: int = 0
    logger_name: str = "courseware.content"

    @classmethod
    def from_settings(cls, cfg: Settings) -> "LogConfig":
        return cls(enabled=cfg.APP_ENV == "local", verbosity=int(cfg.DEBUG_LEVEL or 0))

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def debug(self, message: str, **context: Any) -> None:
        """Verbose content trace; silent unless enabled and verbosity > 1."""
        if not self.enabled or self.verbosity <= 1:
            return
        self.logger.info("%s %s", message, json.dumps(context, default=str))

    def info(self, message: str, **context: Any) -> None:
        if not self.enabled:
            return
        self.logger.info("%s %s", message, json.dumps(context, default=str))


def get_log_config() -> LogConfig:
    return LogConfig.from_settings(settings)


def configure_logging(cfg: Settings = settings) -> None:
    level = getattr(logging, str(cfg.LOG_LEVEL or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
