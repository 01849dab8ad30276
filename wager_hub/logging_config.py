import logging

from wager_hub.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore")


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a hub module at the configured ``LOG_LEVEL``.

    The first call installs the root handler and holds the HTTP client's
    per-request loggers at WARNING.
    """
    level = settings.log_level.upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        for quiet in QUIET_LOGGERS:
            logging.getLogger(quiet).setLevel(logging.WARNING)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
