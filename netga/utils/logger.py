"""
Logging setup for netga.
"""
import logging
from pathlib import Path
from typing import Optional, Union

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_HANDLER_TAG = "_netga_handler"


def setup_logging(
    level: Union[int, str] = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the ``netga`` logger.

    Calling this more than once replaces the handlers installed by the
    previous call instead of stacking new ones.

    Args:
        level: Logging level name or number
        log_file: Optional file to mirror log output into

    Returns:
        The configured ``netga`` logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("netga")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _HANDLER_TAG, True)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_TAG, True)
        logger.addHandler(file_handler)

    return logger
