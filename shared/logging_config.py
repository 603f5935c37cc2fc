"""
Logging configuration for processes embedding the volume coordinator.

Log records from coordinator.* modules carry [operation][trace:..][volume:..]
prefixes; this only decides where they go and at which level.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = '[%(asctime)s] [{component}] %(levelname)s %(name)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv("COORDINATOR_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    component_name: str = "coordinator",
    level: Union[int, str, None] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Configure root logging for a coordinator process.

    Args:
        component_name: Component identifier shown in every line
        level: Level number or name; defaults to $COORDINATOR_LOG_LEVEL or INFO
        log_file: Optional file path for log output
        format_string: Custom format string (default provided)
    """
    level = _resolve_level(level)
    if format_string is None:
        format_string = DEFAULT_FORMAT.format(component=component_name.upper())

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=DATE_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string, datefmt=DATE_FORMAT))
        logging.getLogger().addHandler(file_handler)

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(max(level, logging.WARNING))

    logger = logging.getLogger(component_name)
    logger.info(f"{component_name.upper()} logging initialized (level={logging.getLevelName(level)})")
    return logger
