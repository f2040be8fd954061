"""
Keyword and pattern registries contributed by extension modules.

Three maps, each keyed by extension-module id:

- escalation topic -> keywords  (consumed by the escalation stage)
- scope id -> keywords          (consumed by the scope stage)
- action label -> pattern       (consumed by the output validator)

Populated once at boot, then merged by value when stages are built.
Modules merge in registration order; a later module overrides an earlier
one for the same key.
"""

import logging
import re
from collections.abc import Mapping, Sequence

from ..stages.base import normalize_keyword

logger = logging.getLogger(__name__)


class KeywordRegistry:
    """
    Registry of detection vocabularies, injected into stage factories.

    Usage:
        keywords = KeywordRegistry()
        keywords.register_scope_keywords("uk-law", {"GB-SCT": ["scotland"]})
        scope_map = keywords.merged_scope_keywords()
    """

    def __init__(self) -> None:
        self._escalation: dict[str, dict[str, tuple[str, ...]]] = {}
        self._scope: dict[str, dict[str, tuple[str, ...]]] = {}
        self._actions: dict[str, dict[str, re.Pattern[str]]] = {}

    def register_escalation_keywords(
        self,
        module_id: str,
        expansions: Mapping[str, Sequence[str]],
    ) -> None:
        """
        Register topic -> keyword expansions for a module.

        Args:
            module_id: Extension module id (re-registering replaces).
            expansions: Topic label to keyword list.
        """
        self._escalation[module_id] = {
            topic: tuple(normalize_keyword(kw) for kw in keywords) for topic, keywords in expansions.items()
        }
        logger.debug(f"  🔑 Escalation keywords from '{module_id}': {sorted(expansions)}")

    def register_scope_keywords(
        self,
        module_id: str,
        keywords: Mapping[str, Sequence[str]],
    ) -> None:
        """
        Register scope id -> keyword mappings for a module.

        Args:
            module_id: Extension module id (re-registering replaces).
            keywords: Scope identifier to keyword list.
        """
        self._scope[module_id] = {
            scope: tuple(normalize_keyword(kw) for kw in kws) for scope, kws in keywords.items()
        }
        logger.debug(f"  🔑 Scope keywords from '{module_id}': {sorted(keywords)}")

    def register_action_patterns(
        self,
        module_id: str,
        patterns: Mapping[str, str | re.Pattern[str]],
    ) -> None:
        """
        Register action label -> detection pattern mappings for a module.

        String patterns are compiled case-insensitively.

        Args:
            module_id: Extension module id (re-registering replaces).
            patterns: Action label to regex.
        """
        self._actions[module_id] = {
            action: pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
            for action, pattern in patterns.items()
        }
        logger.debug(f"  🔑 Action patterns from '{module_id}': {sorted(patterns)}")

    def unregister(self, module_id: str) -> None:
        """Drop every registration made by a module."""
        self._escalation.pop(module_id, None)
        self._scope.pop(module_id, None)
        self._actions.pop(module_id, None)

    def module_ids(self) -> list[str]:
        return sorted(set(self._escalation) | set(self._scope) | set(self._actions))

    def merged_escalation_keywords(self) -> dict[str, tuple[str, ...]]:
        merged: dict[str, tuple[str, ...]] = {}
        for expansions in self._escalation.values():
            merged.update(expansions)
        return merged

    def merged_scope_keywords(self) -> dict[str, tuple[str, ...]]:
        merged: dict[str, tuple[str, ...]] = {}
        for keywords in self._scope.values():
            merged.update(keywords)
        return merged

    def merged_action_patterns(self) -> dict[str, re.Pattern[str]]:
        merged: dict[str, re.Pattern[str]] = {}
        for patterns in self._actions.values():
            merged.update(patterns)
        return merged
