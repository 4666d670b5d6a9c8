import logging
import sys

from learning_core.config import get_settings

# Libraries that are noisy at DEBUG; only their warnings are kept
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx", "httpcore")


def setup_logging():
    """Configure root logging from LOG_LEVEL; unknown level names fall back to INFO."""
    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=f"%(asctime)s - {settings.app_name} - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
