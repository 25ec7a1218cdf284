import sys

from loguru import logger

import settings

_configured = False


def setup_logger(level=None):
    global _configured
    if _configured and level is None:
        return logger

    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    )
    _configured = True
    return logger
