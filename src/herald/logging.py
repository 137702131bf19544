"""Centralized logging configuration for Herald.

All entry points (CLI, server) should call configure_logging() early.

Logging Levels:
- DEBUG: Per-message dispatch details, discarded races, HTTP payload shapes
- INFO: Sends, ticks with work, retention sweeps, lifecycle changes
- WARNING: Degraded channel listings, skipped overlapping ticks
- ERROR: Failed deliveries and tick-level failures

Slack credentials and incoming-webhook URLs are redacted from every record
before any handler sees it.
"""

import logging
import os
import re
from dataclasses import dataclass, field

DEFAULT_REDACT_PATTERNS: list[str] = [
    # Slack bot/user/app/refresh tokens
    r"\b(xox[abeoprs]-[A-Za-z0-9-]{10,})\b",
    r"\b(xapp-[A-Za-z0-9-]{10,})\b",
    # Incoming webhook URLs carry their secret in the path
    r"https://hooks\.slack\.com/(services/[A-Za-z0-9/_-]+)",
    # ENV-style assignments: CLIENT_SECRET=value
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD)\s*[=:]\s*([^\s\"']{8,})",
    # Bearer tokens in headers
    r"\bBearer\s+([A-Za-z0-9._\-+=]{12,})\b",
]


@dataclass
class SecretRedactor:
    """Redacts sensitive information from log messages.

    Matches keep their first and last four characters so operators can still
    tell two tokens apart.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [re.compile(p) for p in DEFAULT_REDACT_PATTERNS]

    def redact(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        result = text
        for pattern in self.patterns:
            result = pattern.sub(self._mask_match, result)
        return result

    def _mask_match(self, match: re.Match[str]) -> str:
        full = match.group(0)
        token = match.group(1) if match.lastindex else full

        if "..." in token:
            return full
        if len(token) < 12:
            return full.replace(token, "***")

        masked = f"{token[:4]}...{token[-4:]}"
        return full.replace(token, masked)


class RedactingFilter(logging.Filter):
    """Logging filter that rewrites records with secrets masked."""

    def __init__(self, redactor: SecretRedactor | None = None) -> None:
        super().__init__()
        self._redactor = redactor or SecretRedactor()

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._redactor.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ComponentFormatter(logging.Formatter):
    """Formatter that extracts component name from logger path.

    - herald.scheduling.dispatcher -> scheduling
    - herald.slack.client -> slack
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = record.name.split(".")
        if len(parts) >= 2 and parts[0] == "herald":
            record.component = parts[1]
        else:
            record.component = parts[0]
        return super().format(record)


# Third-party loggers that are too noisy at INFO level
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "uvicorn.access",
    "aiosqlite",
    "sqlalchemy.engine",
]


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
) -> None:
    """Configure logging for Herald.

    Call this once at application startup (CLI or server).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses HERALD_LOG_LEVEL env var or INFO.
        use_rich: Use Rich handler for colorful output (server mode).
    """
    if level is None:
        level = os.environ.get("HERALD_LOG_LEVEL", "INFO").upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = "INFO"

    log_level = getattr(logging, level)

    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handler.addFilter(RedactingFilter())

    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # Route uvicorn through our handler so its records are redacted too
    for logger_name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(logger_name)
        uv_logger.handlers = [handler]
        uv_logger.propagate = False
