"""Logging configuration for scripts and long-running loops."""

import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    max_kb: int = 512,
    backups: int = 3,
) -> logging.Logger:
    """Install a console handler and an optional size-rotated log file.

    Existing handlers on the root logger are removed so repeated calls do
    not duplicate output.

    Args:
        level: Level for the root logger and both handlers.
        log_file: Path of the active log file, rotated at `max_kb`.
        max_kb: Rotation size in kilobytes.
        backups: Number of rotated files to keep.

    Returns:
        The root logger.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_kb * 1024,
            backupCount=backups,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    # Matplotlib is chatty at DEBUG
    logging.getLogger("matplotlib").setLevel(max(logging.WARNING, level))
    return root_logger
