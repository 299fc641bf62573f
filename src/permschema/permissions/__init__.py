"""Permission tree for permschema.

Defines:
- PermissionGroup: internal node owning sub-groups, permissions and global rules
- Permission: checkable leaf with contexts, dependencies and rules
- Rule / IncludedRule / RuleExecution: predicate evaluation
- CheckResult: tagged outcome of Permission.evaluate()
"""

from .group import PermissionGroup
from .permission import CheckResult, Permission
from .rules import IncludedRule, Rule, RuleExecution

__all__ = [
    "CheckResult",
    "IncludedRule",
    "Permission",
    "PermissionGroup",
    "Rule",
    "RuleExecution",
]
