"""
Logging configuration with field masking for sensitive data
"""
import logging
import re
from typing import Any

from guardian.core.config import settings


# Patterns to mask in logs
MASK_PATTERNS = [
    (r'"email":\s*"[^"]*"', '"email": "***@***"'),
    (r"'email':\s*'[^']*'", "'email': '***@***'"),
    (r'"policy_number":\s*"[^"]*"', '"policy_number": "***"'),
    (r"'policy_number':\s*'[^']*'", "'policy_number': '***'"),
    (r'"phone":\s*"[^"]*"', '"phone": "***"'),
    (r"'phone':\s*'[^']*'", "'phone': '***'"),
    (r"[\w.+-]+@[\w-]+\.[\w.-]+", "***@***"),
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks sensitive fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("guardian")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
        console_handler.setFormatter(
            MaskingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application logger, so masking applies."""
    if name.startswith("guardian"):
        return logging.getLogger(name)
    return logger.getChild(name)


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Log an audit event (also persisted to database separately)."""
    logger.info(
        f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={details}"
    )
