"""
Extension Registry

Central registry for loaded extension modules. The agent factory uses it to
discover available tools, extra stages and prompt fragments. Misconfiguration
(a missing module, colliding tool ids) fails here at construction time so it
can never surface mid-conversation.
"""

import logging
from collections.abc import Iterable
from typing import Any

from ..exceptions import ExtensionNotRegisteredError, ToolCollisionError
from .base import ExtensionModule
from .keywords import KeywordRegistry

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """
    Registry of extension modules.

    Usage:
        registry = ExtensionRegistry()
        registry.register(uk_law_extension())
        tools = registry.all_tools()
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._modules: dict[str, ExtensionModule] = {}

    def register(self, module: ExtensionModule) -> None:
        """
        Register an extension module.

        Args:
            module: Module to register.

        Raises:
            ValueError: If the module id is already registered.
        """
        if module.id in self._modules:
            raise ValueError(f"Extension '{module.id}' is already registered")
        self._modules[module.id] = module
        logger.info(
            f"🧩 Registered extension '{module.id}' v{module.version} "
            f"({len(module.tools)} tools)"
        )

    def unregister(self, module_id: str) -> bool:
        """
        Remove an extension module.

        Returns:
            True if the module was registered.
        """
        return self._modules.pop(module_id, None) is not None

    def get(self, module_id: str) -> ExtensionModule | None:
        return self._modules.get(module_id)

    def has(self, module_id: str) -> bool:
        return module_id in self._modules

    def ids(self) -> list[str]:
        return list(self._modules)

    def all(self) -> list[ExtensionModule]:
        return list(self._modules.values())

    def require(
        self,
        module_ids: Iterable[str],
        policy_name: str | None = None,
    ) -> list[ExtensionModule]:
        """
        Resolve required module ids to modules.

        Args:
            module_ids: IDs a policy depends on.
            policy_name: Policy name for error messages.

        Returns:
            Modules in the requested order.

        Raises:
            ExtensionNotRegisteredError: If any id is not registered.
        """
        modules = []
        for module_id in module_ids:
            module = self._modules.get(module_id)
            if module is None:
                raise ExtensionNotRegisteredError(module_id, policy_name)
            modules.append(module)
        return modules

    def all_tools(self, modules: Iterable[ExtensionModule] | None = None) -> dict[str, Any]:
        """
        Aggregate tools across modules into one mapping.

        Args:
            modules: Modules to aggregate (defaults to all registered).

        Returns:
            Tools keyed by identifier.

        Raises:
            ToolCollisionError: If two modules offer the same tool id.
        """
        tools: dict[str, Any] = {}
        owners: dict[str, str] = {}
        for module in self.all() if modules is None else modules:
            for tool_id, tool in module.tools.items():
                if tool_id in tools:
                    raise ToolCollisionError(tool_id, owners[tool_id], module.id)
                tools[tool_id] = tool
                owners[tool_id] = module.id
        return tools

    def setup_all(
        self,
        keywords: KeywordRegistry,
        modules: Iterable[ExtensionModule] | None = None,
    ) -> None:
        """
        Publish module vocabularies and run their setup hooks.

        Args:
            keywords: Registry receiving the keyword/pattern maps.
            modules: Modules to set up (defaults to all registered).
        """
        modules = self.all() if modules is None else list(modules)
        for module in modules:
            if module.escalation_keywords:
                keywords.register_escalation_keywords(module.id, module.escalation_keywords)
            if module.scope_keywords:
                keywords.register_scope_keywords(module.id, module.scope_keywords)
            if module.action_patterns:
                keywords.register_action_patterns(module.id, module.action_patterns)
            if module.setup is not None:
                module.setup(keywords)
        logger.info(f"🧩 Extensions set up: {[m.id for m in modules]}")

    def count(self) -> int:
        return len(self._modules)
