"""Logging setup for the gridscout CLI.

Console and rotating-file handlers share one formatter that masks secret
values (bot token, API hash) read from the environment, including inside
formatted tracebacks.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Iterable, List, Mapping, Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MASK = "***"
DEFAULT_SECRET_VARS = ("BOT_TOKEN", "API_HASH")
DEFAULT_LOG_PATH = "logs/gridscout.log"


class RedactingFormatter(logging.Formatter):
    def __init__(
        self,
        secrets: Iterable[str],
        fmt: str = LOG_FORMAT,
        datefmt: Optional[str] = DATE_FORMAT,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so a secret that contains another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text

    def format(self, record: logging.LogRecord) -> str:
        return self.redact(super().format(record))


def secret_values(redact_config: Mapping, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Values of the configured secret variables that are actually set."""

    if not redact_config.get("enabled", True):
        return []
    environ = os.environ if environ is None else environ
    names = redact_config.get("patterns", DEFAULT_SECRET_VARS)
    return [environ[name] for name in names if environ.get(name)]


def build_handlers(config: Mapping, formatter: logging.Formatter, root: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", DEFAULT_LOG_PATH)
        if not os.path.isabs(path):
            path = os.path.join(root, path)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
                backupCount=int(file_cfg.get("backup_count", 5)),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: Optional[Mapping], root: str) -> Optional[int]:
    """Install handlers on the root logger.

    Returns the active level, or None when logging is disabled or no handler
    is configured.
    """

    config = config or {}
    if not config.get("enabled", True):
        return None

    load_dotenv()
    level = logging.getLevelName(str(config.get("level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    formatter = RedactingFormatter(secret_values(config.get("redact", {})))
    handlers = build_handlers(config, formatter, root)
    if not handlers:
        return None

    logging.basicConfig(level=level, handlers=handlers, force=True)
    return level
