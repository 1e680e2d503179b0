# app/core/logging.py

from logging import basicConfig, getLogger

from app.core.settings import get_settings

_level = get_settings().log_level

basicConfig(level=_level)
logger = getLogger("petpals")
logger.setLevel(_level)
