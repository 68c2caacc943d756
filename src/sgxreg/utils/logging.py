import logging
import os
import sys

from ..constants import LOG_LEVEL_ENV


def get_logger():
    logger = logging.getLogger("sgxreg")
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(message)s")
        h.setFormatter(fmt)
        logger.addHandler(h)
        level = getattr(logging, os.getenv(LOG_LEVEL_ENV, "INFO").upper(), logging.INFO)
        logger.setLevel(level if isinstance(level, int) else logging.INFO)
    return logger
