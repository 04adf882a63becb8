"""Console and rotating-file logging for tracker runs."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    app_name: str = "lcms_tracker",
    log_level: Union[int, str] = logging.INFO,
    log_dir: str = "logs",
) -> logging.Logger:
    """
    Route tracker logs to stdout and to ``<log_dir>/<app_name>.log``.

    Calling this again replaces the handlers from the previous call, so the CLI
    can be invoked repeatedly in one process.
    """
    log_file = Path(log_dir) / f"{app_name}.log"
    log_file.parent.mkdir(exist_ok=True, parents=True)

    root = logging.getLogger()
    root.setLevel(_resolve_level(log_level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.handlers.RotatingFileHandler(
            log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    return root
