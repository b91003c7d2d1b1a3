import logging
import os

ROOT_LOGGER = "tapegrad"


def get_logger(name=ROOT_LOGGER):
    """
    Loggers live under the "tapegrad" hierarchy. The root gets a stream handler
    unless the host already configured one, and always takes its level from
    TAPEGRAD_LOG_LEVEL (default WARNING).
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.hasHandlers():
        handler = logging.StreamHandler()
        formatter = logging.Formatter('[%(asctime)s][%(levelname)s][%(name)s] %(message)s')
        handler.setFormatter(formatter)
        root.addHandler(handler)
    level_name = os.getenv("TAPEGRAD_LOG_LEVEL", "WARNING").upper()
    root.setLevel(getattr(logging, level_name, logging.WARNING))

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
