"""Configuration helpers for roster rules and engine settings."""

from .roster import RosterRules, captain_salary, get_rules, get_rules_by_key, iter_rules
from .settings import CorrelationConfig, GeneticConfig, OptimizerConfig

__all__ = [
    "CorrelationConfig",
    "GeneticConfig",
    "OptimizerConfig",
    "RosterRules",
    "captain_salary",
    "get_rules",
    "get_rules_by_key",
    "iter_rules",
]
