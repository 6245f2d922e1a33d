# promptgen/__init__.py
from loguru import logger

__version__ = "0.3.0"

# Library modules only log; sinks are configured by the front-end (see services/logging.py)
logger.disable("promptgen")
