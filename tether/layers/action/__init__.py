"""Action Layer - Element resolution and execution."""

from tether.layers.action.executor import ActionExecutor, ActionResult
from tether.layers.action.locator import ElementLocator
from tether.layers.action.models import ReplayAction

__all__ = ["ActionExecutor", "ActionResult", "ElementLocator", "ReplayAction"]
