import logging
from pathlib import Path
from typing import Optional

from nfex.config.nfex_config import NFeXConfig

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(config: Optional[NFeXConfig] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``nfex`` logger from the ``logging`` configuration section.

    Args:
        config: Configuration to read; defaults to the NFeXConfig singleton
        level: Overrides ``logging.level`` when given

    Returns:
        The configured package logger
    """
    config = config or NFeXConfig()
    log_config = config.get_logging_config()

    level_name = (level or log_config.get('level') or 'INFO').upper()
    formatter = logging.Formatter(log_config.get('format') or DEFAULT_FORMAT)

    logger = logging.getLogger('nfex')
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
