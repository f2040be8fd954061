"""Pluggable domain extension modules."""

from .base import ExtensionModule, ToolSpec
from .keywords import KeywordRegistry
from .registry import ExtensionRegistry
from .uk_law import uk_law_extension

__all__ = [
    "ExtensionModule",
    "ExtensionRegistry",
    "KeywordRegistry",
    "ToolSpec",
    "uk_law_extension",
]
