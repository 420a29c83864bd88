"""Common utilities for the clearance service."""

from .logger import configure_logging, setup_logger
from .catalog_config import load_catalog, default_catalog

__all__ = ["configure_logging", "default_catalog", "load_catalog", "setup_logger"]
