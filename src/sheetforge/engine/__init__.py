"""Derivation engine - breakdowns, condition toggles and feat effect aggregation.

Resolvers that depend on ability and skill resolution live in
``sheetforge.engine.prerequisites``, ``sheetforge.engine.combat``,
``sheetforge.engine.defenses`` and ``sheetforge.engine.sheet``.
"""

from .breakdown import Breakdown, BreakdownBuilder, BreakdownTerm, format_modifier
from .conditions import (
    ConditionToggle,
    build_condition_registry,
    is_condition_active,
    toggle_condition,
)
from .effects import (
    AggregatedFeatEffects,
    AppliedEffect,
    aggregate_feat_effects,
    resolve_effect_value,
)

__all__ = [
    "Breakdown",
    "BreakdownBuilder",
    "BreakdownTerm",
    "format_modifier",
    "ConditionToggle",
    "build_condition_registry",
    "is_condition_active",
    "toggle_condition",
    "AggregatedFeatEffects",
    "AppliedEffect",
    "aggregate_feat_effects",
    "resolve_effect_value",
]
