"""
Conditional toggle registry for sheetforge.

Feat effects may be gated by a condition key (e.g., "fighting_defensively").
Toggle state lives on each feat instance; this module merges it into one
logical switch per key and fans writes back out to every instance.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.character.edits import FeatEditResult
from sheetforge.character.models import CharacterFeatInstance

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConditionSource:
    """One feat instance referencing a condition key."""

    instance_id: str
    feat_label: str
    is_active_on_instance: bool
    is_permanent: bool


@dataclass(frozen=True)
class ConditionToggle:
    """The merged view of a condition key across all its source instances."""

    key: str
    label: str
    sources: tuple[ConditionSource, ...]
    is_globally_active: bool
    can_be_toggled: bool


def _referenced_keys(definition) -> list[str]:
    keys: list[str] = []
    for effect in definition.effects:
        if effect.is_conditional and effect.condition not in keys:
            keys.append(effect.condition)
    return keys


def _merge(key: str, label: str, sources: list[ConditionSource]) -> ConditionToggle:
    all_permanent = all(source.is_permanent for source in sources)
    any_permanent = any(source.is_permanent for source in sources)
    any_active = any(source.is_active_on_instance for source in sources)

    if all_permanent and not any_active:
        active, editable = False, False
    elif any_permanent:
        active, editable = True, False
    else:
        active, editable = any_active, True

    return ConditionToggle(key, label, tuple(sources), active, editable)


def build_condition_registry(
    feats: Sequence[CharacterFeatInstance], catalog: Catalog
) -> list[ConditionToggle]:
    """
    Build one toggle per distinct condition key referenced by the character's feats.

    Rules:
    - all sources permanent and none active: forced off, not editable
    - any source permanent: forced on, not editable
    - otherwise: active if any instance has it switched on; editable

    Returns:
        Toggles sorted by label then key
    """
    sources_by_key: dict[str, list[ConditionSource]] = {}

    for instance in feats:
        definition = catalog.feat(instance.definition_id)
        if definition is None:
            continue
        for key in _referenced_keys(definition):
            stored = instance.conditional_effect_states.get(key)
            if definition.permanent_effect:
                is_active = True if stored is None else stored
            else:
                is_active = bool(stored)
            sources_by_key.setdefault(key, []).append(
                ConditionSource(
                    instance_id=instance.instance_id,
                    feat_label=definition.label,
                    is_active_on_instance=is_active,
                    is_permanent=definition.permanent_effect,
                )
            )

    toggles = [
        _merge(key, catalog.condition_label(key), sources)
        for key, sources in sources_by_key.items()
    ]
    return sorted(toggles, key=lambda toggle: (toggle.label, toggle.key))


def active_condition_keys(
    feats: Sequence[CharacterFeatInstance], catalog: Catalog
) -> frozenset[str]:
    """Condition keys currently switched on for this character."""
    return frozenset(
        toggle.key
        for toggle in build_condition_registry(feats, catalog)
        if toggle.is_globally_active
    )


def is_condition_active(
    feats: Sequence[CharacterFeatInstance], catalog: Catalog, key: str
) -> bool:
    return key in active_condition_keys(feats, catalog)


def toggle_condition(
    feats: Sequence[CharacterFeatInstance], catalog: Catalog, key: str, active: bool
) -> FeatEditResult:
    """
    Switch a condition key on or off for every instance that references it.

    Args:
        feats: The character's current feat instances
        catalog: Rules catalog
        key: Condition key to toggle
        active: Desired state

    Returns:
        FeatEditResult with updated copies of the affected instances, or a
        rejection when the key is unknown or locked by a permanent source
    """
    toggle = next(
        (entry for entry in build_condition_registry(feats, catalog) if entry.key == key), None
    )
    if toggle is None:
        return FeatEditResult.reject(
            list(feats), "unknown_condition", f"No feat references condition '{key}'", key
        )
    if not toggle.can_be_toggled:
        return FeatEditResult.reject(
            list(feats),
            "condition_locked",
            f"'{toggle.label}' is fixed by a permanent effect",
            key,
        )

    updated: list[CharacterFeatInstance] = []
    for instance in feats:
        definition = catalog.feat(instance.definition_id)
        if definition is not None and key in _referenced_keys(definition):
            states = dict(instance.conditional_effect_states)
            states[key] = active
            instance = instance.model_copy(update={"conditional_effect_states": states})
        updated.append(instance)

    logger.debug("condition_toggled", condition=key, active=active)
    return FeatEditResult.ok(updated)
