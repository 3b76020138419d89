"""
Group Collage - layout and composition engine
Places member photos into square, hexagonal or circular templates and
exports the arrangement as a print-ready PNG
"""

from pathlib import Path
from loguru import logger

from .config import AppConfig, get_config

__version__ = "1.0.0"

_file_sink_id = None


def setup_logging(config: AppConfig = None):
    """Configure loguru logging"""
    global _file_sink_id

    config = config or get_config()
    log_level = config.LOG_LEVEL
    log_file = config.LOG_FILE

    # Ensure logs directory exists
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    if _file_sink_id is not None:
        try:
            logger.remove(_file_sink_id)
        except ValueError:
            logger.debug(f"Log sink {_file_sink_id} was already removed")

    _file_sink_id = logger.add(
        log_file,
        rotation="1 day",
        retention="30 days",
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"
    )

    logger.info(f"Collage engine {__version__} logging to {log_file} ({log_level})")
    return _file_sink_id
