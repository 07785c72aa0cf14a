import logging
import os
import sys

def setup_logger(name, level=None):
    """Sets up a console logger for the proxy.

    The level defaults to the LOG_LEVEL environment variable (INFO if unset).
    Calling this twice for the same name reuses the existing handler.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False  # Prevent duplicate logs in the Cloud Functions root logger

    return logger
