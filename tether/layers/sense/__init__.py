"""Sense Layer - Page snapshot and element classification."""

from tether.layers.sense.dom_tree import ElementNode, TextNode, build_selector_map
from tether.layers.sense.tree_builder import DOMTreeBuilder

__all__ = ["DOMTreeBuilder", "ElementNode", "TextNode", "build_selector_map"]
