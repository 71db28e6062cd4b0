"""
Retention module for the vault server.

Keeps 7 daily backups plus 1 monthly backup and deletes the rest.
"""

from .enforcer import RetentionEnforcer, RetentionPlan, RetentionPolicy, RetentionResult, plan

__all__ = [
    "RetentionEnforcer",
    "RetentionPlan",
    "RetentionPolicy",
    "RetentionResult",
    "plan",
]
