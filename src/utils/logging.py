import logging
import sys
from pathlib import Path
from typing import Optional
from src.config.settings import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(
    name: str = "tech_content_rag",
    level: Optional[str] = None,
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """Return the named logger, attaching stdout and file handlers once.

    Args:
        name (str): Logger name
        level (Optional[str]): Level name, defaults to LOG_LEVEL
        log_dir (Optional[Path]): Directory for the log file, defaults to LOGS_DIR

    Returns:
        logging.Logger: Configured logger
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO
    logger.setLevel(log_level)
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = Path(log_dir) if log_dir is not None else settings.LOGS_DIR
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / settings.LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {log_dir}: {e}")

    return logger


logger = setup_logger()
