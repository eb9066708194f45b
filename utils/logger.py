"""Logging setup with console output and an optional rotating log file."""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(debug: bool = False, log_dir: str = "") -> logging.Logger:
    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger()
    logger.setLevel(level)

    if getattr(logger, "_audio_proxy_configured", False):
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # Rotating file handler (10MB per file, keep 5)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(
            os.path.join(log_dir, "server.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # werkzeug logs every request line at INFO
    logging.getLogger("werkzeug").setLevel(logging.INFO if debug else logging.WARNING)

    logger._audio_proxy_configured = True
    return logger
