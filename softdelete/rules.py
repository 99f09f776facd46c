"""Application rules checked before an entity is written or deleted"""

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

from softdelete.entities import BaseEntity

Rule = Callable[[BaseEntity, dict[str, Any]], bool]


class RuleMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RulesChecker:
    """
    Named rules grouped by mode.

    A rule returns True when the entity passes. Every failing rule records
    its message on the entity under the rule's error field.

    Usage:
        rules.add_delete(lambda entity, options: not entity.locked, "not_locked")
    """

    def __init__(self):
        self._rules: dict[RuleMode, list[tuple[str, Rule, str]]] = defaultdict(list)

    def add(
        self,
        rule: Rule,
        name: str,
        mode: RuleMode,
        error_field: str = "_rules",
        message: str | None = None,
    ) -> "RulesChecker":
        self._rules[RuleMode(mode)].append(
            (error_field, rule, message or f"The rule `{name}` failed.")
        )
        return self

    def add_create(self, rule: Rule, name: str, **kwargs: Any) -> "RulesChecker":
        return self.add(rule, name, RuleMode.CREATE, **kwargs)

    def add_update(self, rule: Rule, name: str, **kwargs: Any) -> "RulesChecker":
        return self.add(rule, name, RuleMode.UPDATE, **kwargs)

    def add_delete(self, rule: Rule, name: str, **kwargs: Any) -> "RulesChecker":
        return self.add(rule, name, RuleMode.DELETE, **kwargs)

    def check(
        self, entity: BaseEntity, mode: RuleMode, options: dict[str, Any] | None = None
    ) -> bool:
        options = options or {}
        passed = True
        for error_field, rule, message in self._rules[RuleMode(mode)]:
            if not rule(entity, options):
                entity.set_error(error_field, message)
                passed = False
        return passed
