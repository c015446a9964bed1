# ----------------------------------------------------------------
# Logger Setup
# ----------------------------------------------------------------
import logging
import os
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from crypto_analyzer_setup.ui import console

LOGGER_NAME = "crypto_analyzer_setup"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logger(log_file: Union[str, Path], verbose: bool = False) -> logging.Logger:
    """Set up and configure the logger."""
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = get_logger()
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()

    console_handler = RichHandler(console=console, rich_tracebacks=True)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    try:
        # Secure the log file
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")

    return logger
