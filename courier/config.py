"""Library configuration: environment variables and derived constants.

Loads ``BOT_TOKEN``, the API root, transport timeout, default parse mode and
logging settings from the environment via ``python-dotenv``.  All values are
resolved at import time so other modules can ``from courier.config import …``
without repeated lookups.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import logging
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── courier ──────────────────────────────────────────────────────────────────
from courier.logger import CourierLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_log_level(raw: str | None) -> int:
    """Map a level name such as ``"DEBUG"`` to its :mod:`logging` constant.

    Unknown names fall back to ``INFO``.
    """
    if not raw:
        return logging.INFO
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _parse_timeout(raw: str | None, default: float) -> tuple[float | None, bool]:
    """Parse a timeout in seconds.

    Returns ``(value, valid)``.  ``"0"`` disables the timeout (``None``);
    unparsable or negative values yield the default with ``valid=False``.
    """
    if raw is None or not raw.strip():
        return default, True
    try:
        value = float(raw)
    except ValueError:
        return default, False
    if value < 0:
        return default, False
    return (value or None), True


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN") or None
API_ROOT: str = (os.environ.get("TELEGRAM_API_ROOT") or "https://api.telegram.org").rstrip("/")
DEFAULT_PARSE_MODE: str = os.environ.get("DEFAULT_PARSE_MODE") or "HTML"
LOG_LEVEL: int = _parse_log_level(os.environ.get("LOG_LEVEL"))
LOG_DIR: str | None = os.environ.get("LOG_DIR") or None

_DEFAULT_TIMEOUT = 60.0
REQUEST_TIMEOUT, _timeout_valid = _parse_timeout(os.environ.get("REQUEST_TIMEOUT"), _DEFAULT_TIMEOUT)

# ── Logger (first initialisation decides level and file output) ─────────────
logger = CourierLogger.get_logger(LOG_LEVEL, LOG_DIR)


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.debug("Config loaded, BOT_TOKEN is set", extra={"api_root": API_ROOT})
else:
    logger.debug("Config loaded, BOT_TOKEN is NOT set", extra={"api_root": API_ROOT})

if not _timeout_valid:
    logger.warning(
        "Invalid REQUEST_TIMEOUT, using default",
        extra={"raw_value": os.environ.get("REQUEST_TIMEOUT"), "timeout": REQUEST_TIMEOUT},
    )
