import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {thread.name} | {message}"


def _stderr(message) -> None:
    # resolved per message so redirected streams are honoured
    sys.stderr.write(message)


def configure_logging(level: str = "INFO", sink=None) -> None:
    logger.remove()
    logger.add(sink or _stderr, level=level.upper(), format=LOG_FORMAT)
