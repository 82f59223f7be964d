import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _get_log_dir() -> Path:
    # backend/everlast/logging_config.py -> backend/logs
    return Path(__file__).parent.parent / "logs"


def setup_logging(
    level=logging.INFO,
    console_output: bool = True,
    file_output: bool = False,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the `everlast` logger tree.

    Args:
        level: Logging level (int or name)
        console_output: Whether to log to console
        file_output: Whether to also write logs/everlast_<timestamp>.log
        log_dir: Override for the log directory
    """
    logger = logging.getLogger("everlast")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT)

    if console_output:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    if file_output:
        directory = log_dir or _get_log_dir()
        directory.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        handler = logging.FileHandler(directory / f"everlast_{timestamp}.log", encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
