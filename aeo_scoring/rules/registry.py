"""Rule registry and applicability resolution."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from aeo_scoring.config import ScoringConfig
from aeo_scoring.models import DIMENSIONS, ExecutionScope, PageCategory, PageCategoryType
from aeo_scoring.rules.base import Rule, RuleContext

logger = logging.getLogger(__name__)


def _category_of(context: Any) -> Optional[PageCategoryType]:
    if context is None:
        return None
    if isinstance(context, PageCategoryType):
        return context
    if isinstance(context, PageCategory):
        return context.type
    if isinstance(context, RuleContext):
        return context.page_category.type
    raise TypeError(f"Cannot resolve page category from {type(context).__name__}")


class RuleRegistry:
    """Holds rule instances keyed by id; re-registering an id replaces it."""

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}
        self._disabled: set[str] = set()

    def register(self, rule: Rule) -> Rule:
        if not rule.id:
            raise ValueError(f"{type(rule).__name__} has no id")
        if rule.id in self._rules:
            logger.debug(f"Replacing rule {rule.id}")
        self._rules[rule.id] = rule
        return rule

    def register_rule(self, rule_cls: Type[Rule], config: ScoringConfig | None = None, **kwargs: Any) -> Rule:
        return self.register(rule_cls(config=config, **kwargs))

    def unregister(self, rule_id: str) -> bool:
        self._disabled.discard(rule_id)
        return self._rules.pop(rule_id, None) is not None

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def toggle_rule(self, rule_id: str, enabled: bool) -> bool:
        """Enable or disable a rule. Returns False for unknown ids."""
        if rule_id not in self._rules:
            return False
        if enabled:
            self._disabled.discard(rule_id)
        else:
            self._disabled.add(rule_id)
        logger.info(f"Rule {rule_id} {'enabled' if enabled else 'disabled'}")
        return True

    def is_enabled(self, rule_id: str) -> bool:
        return rule_id in self._rules and rule_id not in self._disabled

    def _ordered(self) -> List[Rule]:
        # Stable sort keeps registration order among equal priorities
        return sorted(
            (r for r in self._rules.values() if r.id not in self._disabled),
            key=lambda r: -r.priority,
        )

    def get_rules_for_dimension(
        self,
        dimension: str,
        context: RuleContext | PageCategory | PageCategoryType | None = None,
        scope: ExecutionScope = "page",
    ) -> List[Rule]:
        """Enabled rules of one dimension that apply to the page category and scope."""
        category = _category_of(context)
        return [
            r for r in self._ordered()
            if r.dimension == dimension and r.applies_to(category, scope)
        ]

    def get_all_rules(self) -> Dict[str, List[Rule]]:
        grouped: Dict[str, List[Rule]] = {d: [] for d in DIMENSIONS}
        for rule in self._ordered():
            grouped.setdefault(rule.dimension, []).append(rule)
        return grouped

    def get_domain_rules(self) -> List[Rule]:
        return [r for r in self._ordered() if r.scope == "domain"]

    def get_rule_summary(self) -> Dict[str, Any]:
        by_dimension: Dict[str, int] = {}
        by_scope: Dict[str, int] = {}
        for rule in self._rules.values():
            by_dimension[rule.dimension] = by_dimension.get(rule.dimension, 0) + 1
            by_scope[rule.scope] = by_scope.get(rule.scope, 0) + 1
        return {
            "total": len(self._rules),
            "enabled": len(self._rules) - len(self._disabled),
            "disabled": sorted(self._disabled),
            "by_dimension": by_dimension,
            "by_scope": by_scope,
            "rules": [
                {**r.describe(), "enabled": r.id not in self._disabled}
                for r in self._rules.values()
            ],
        }

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules
