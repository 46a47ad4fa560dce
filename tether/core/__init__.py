"""Core module - Configuration, errors, session and driver management."""

from tether.core.config import TetherConfig
from tether.core.driver_factory import create_driver

__all__ = ["TetherConfig", "create_driver"]
