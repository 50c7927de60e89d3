from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Tuple

from .config import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "mdc-installer.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(log_path: str) -> Tuple[logging.Handler, str]:
    """Open log_path, or ./mdc-installer.log when its directory cannot be created or written."""

    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Attach the installer's file and console handlers to the root logger.

    Safe to call more than once; later calls return the path chosen first.
    The caller records both the requested and the returned path in the run
    record, since they differ when the fallback kicks in.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_mdc_configured", False):
        return getattr(root, "_mdc_log_path", log_path)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    setattr(root, "_mdc_configured", True)
    setattr(root, "_mdc_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
