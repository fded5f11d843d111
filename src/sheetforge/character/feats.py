"""
Feat list editing and feat slot accounting for sheetforge.

Edits never mutate the list they are given: each returns a FeatEditResult
holding a new list, or the unchanged list and the violation that blocked it.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import GrantedFeat

from .edits import FeatEditResult
from .models import Character, CharacterFeatInstance, normalize_specialization

logger = structlog.get_logger(__name__)

# Every character gets one feat at 1st level plus one per this many levels
FEAT_LEVEL_INTERVAL = 3


def granted_instance_id(source_id: str, feat_id: str) -> str:
    return f"granted:{source_id}:{feat_id}"


def _find_instance(
    feats: Sequence[CharacterFeatInstance], instance_id: str
) -> CharacterFeatInstance | None:
    for instance in feats:
        if instance.instance_id == instance_id:
            return instance
    return None


def _reject(feats, code: str, message: str, subject: str | None) -> FeatEditResult:
    logger.debug("feat_edit_rejected", code=code, subject=subject)
    return FeatEditResult.reject(list(feats), code, message, subject)


# ============================================================================
# Edits
# ============================================================================


def add_feat(
    feats: Sequence[CharacterFeatInstance],
    definition_id: str,
    catalog: Catalog,
    specialization_detail: str | None = None,
) -> FeatEditResult:
    """
    Add a chosen feat instance.

    Args:
        feats: Current feat instances
        definition_id: Feat to add
        catalog: Rules catalog
        specialization_detail: Required for feats with ``requires_specialization``

    Returns:
        FeatEditResult; rejected with unknown_feat, specialization_required,
        duplicate_feat or duplicate_specialization
    """
    definition = catalog.feat(definition_id)
    if definition is None:
        return _reject(feats, "unknown_feat", f"Unknown feat '{definition_id}'", definition_id)

    slot = normalize_specialization(specialization_detail)
    if definition.requires_specialization and slot is None:
        return _reject(
            feats,
            "specialization_required",
            f"{definition.label} requires a {definition.requires_specialization} choice",
            definition_id,
        )

    if not definition.can_take_multiple_times:
        if any(instance.definition_id == definition_id for instance in feats):
            return _reject(
                feats, "duplicate_feat", f"{definition.label} is already taken", definition_id
            )
    elif definition.requires_specialization:
        for instance in feats:
            if not instance.is_granted and instance.key == (definition_id, slot):
                return _reject(
                    feats,
                    "duplicate_specialization",
                    f"{definition.label} ({specialization_detail}) is already taken",
                    definition_id,
                )

    instance = CharacterFeatInstance(
        definition_id=definition_id,
        specialization_detail=(specialization_detail or "").strip(),
    )
    logger.debug("feat_added", definition_id=definition_id, instance_id=instance.instance_id)
    return FeatEditResult.ok([*feats, instance])


def remove_feat(feats: Sequence[CharacterFeatInstance], instance_id: str) -> FeatEditResult:
    """Remove a chosen feat instance; granted instances cannot be removed."""
    instance = _find_instance(feats, instance_id)
    if instance is None:
        return _reject(feats, "unknown_instance", f"No feat instance '{instance_id}'", instance_id)
    if instance.is_granted:
        return _reject(
            feats,
            "granted_feat_locked",
            f"'{instance.definition_id}' is granted and cannot be removed",
            instance_id,
        )

    logger.debug("feat_removed", definition_id=instance.definition_id, instance_id=instance_id)
    return FeatEditResult.ok([entry for entry in feats if entry.instance_id != instance_id])


def update_specialization(
    feats: Sequence[CharacterFeatInstance],
    instance_id: str,
    detail: str,
    catalog: Catalog,
) -> FeatEditResult:
    """Change the specialization of a chosen feat instance."""
    instance = _find_instance(feats, instance_id)
    if instance is None:
        return _reject(feats, "unknown_instance", f"No feat instance '{instance_id}'", instance_id)
    if instance.is_granted:
        return _reject(
            feats,
            "granted_feat_locked",
            f"'{instance.definition_id}' is granted and cannot be edited",
            instance_id,
        )

    definition = catalog.feat(instance.definition_id)
    label = definition.label if definition else instance.definition_id
    slot = normalize_specialization(detail)
    if definition is not None and definition.requires_specialization and slot is None:
        return _reject(
            feats,
            "specialization_required",
            f"{label} requires a {definition.requires_specialization} choice",
            instance_id,
        )
    for other in feats:
        if (
            other.instance_id != instance_id
            and not other.is_granted
            and other.key == (instance.definition_id, slot)
        ):
            return _reject(
                feats,
                "duplicate_specialization",
                f"{label} ({detail}) is already taken",
                instance_id,
            )

    updated = instance.model_copy(update={"specialization_detail": detail.strip()})
    return FeatEditResult.ok(
        [updated if entry.instance_id == instance_id else entry for entry in feats]
    )


# ============================================================================
# Granted feats
# ============================================================================


def _granted_sources(character: Character, catalog: Catalog) -> list[tuple[str, GrantedFeat]]:
    sources: list[tuple[str, GrantedFeat]] = []

    race = catalog.race(character.race_id)
    if race is not None:
        for granted in race.granted_feats:
            if granted.level_acquired <= character.character_level:
                sources.append((race.id, granted))

    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is None:
            continue
        for granted in definition.granted_feats:
            if granted.level_acquired <= entry.level:
                sources.append((definition.id, granted))

    return sources


def get_granted_feats(character: Character, catalog: Catalog) -> list[CharacterFeatInstance]:
    """
    Build the granted feat instances for the character's race and class levels.

    Instances keep the toggle state and specialization of a matching existing
    granted instance. A single-instance feat granted by several sources
    appears once.
    """
    existing = {
        instance.instance_id: instance for instance in character.feats if instance.is_granted
    }
    granted: list[CharacterFeatInstance] = []

    for source_id, entry in _granted_sources(character, catalog):
        definition = catalog.feat(entry.feat_id)
        if definition is None:
            logger.warning("granted_feat_missing", source=source_id, feat_id=entry.feat_id)
        elif not definition.can_take_multiple_times and any(
            instance.definition_id == entry.feat_id for instance in granted
        ):
            continue

        instance_id = granted_instance_id(source_id, entry.feat_id)
        if any(instance.instance_id == instance_id for instance in granted):
            continue
        previous = existing.get(instance_id)
        granted.append(
            CharacterFeatInstance(
                definition_id=entry.feat_id,
                instance_id=instance_id,
                is_granted=True,
                specialization_detail=previous.specialization_detail if previous else "",
                conditional_effect_states=(
                    dict(previous.conditional_effect_states) if previous else {}
                ),
            )
        )

    return granted


def reconcile_granted_feats(character: Character, catalog: Catalog) -> list[CharacterFeatInstance]:
    """
    Recompute granted feats after a race or class change.

    Granted instances come first, then the chosen ones in their original
    order; a chosen single-instance feat that is now granted is dropped.
    """
    granted = get_granted_feats(character, catalog)
    granted_ids = {instance.definition_id for instance in granted}

    chosen = []
    for instance in character.chosen_feats:
        definition = catalog.feat(instance.definition_id)
        if instance.definition_id in granted_ids and not (
            definition and definition.can_take_multiple_times
        ):
            logger.info("chosen_feat_superseded", definition_id=instance.definition_id)
            continue
        chosen.append(instance)

    return [*granted, *chosen]


# ============================================================================
# Feat slots
# ============================================================================


@dataclass(frozen=True)
class BonusFeatPoolSlots:
    """Slots gained from one class bonus feat pool."""

    class_id: str
    pool_id: str
    label: str
    feat_category: str | None
    granted: int
    used: int = 0

    @property
    def remaining(self) -> int:
        return self.granted - self.used


@dataclass(frozen=True)
class FeatSlotSummary:
    """How many feats the character may choose and how many are taken."""

    base: int  # 1 + one per FEAT_LEVEL_INTERVAL levels
    level_progression: int
    racial: int
    class_bonus_details: tuple[BonusFeatPoolSlots, ...]
    chosen_count: int
    unrestricted_used: int

    @property
    def unrestricted_total(self) -> int:
        return self.base + self.racial

    @property
    def total(self) -> int:
        return self.unrestricted_total + sum(pool.granted for pool in self.class_bonus_details)

    @property
    def slots_left(self) -> int:
        return self.total - self.chosen_count

    @property
    def unrestricted_left(self) -> int:
        return self.unrestricted_total - self.unrestricted_used

    @property
    def is_over_budget(self) -> bool:
        return self.slots_left < 0

    def eligible_feat_categories(self) -> list[str] | None:
        """
        Feat categories the next chosen feat must belong to.

        Returns:
            None while unrestricted slots remain (any feat), otherwise the
            categories of pools that still have room (empty when none do)
        """
        if self.unrestricted_left > 0:
            return None
        categories: list[str] = []
        for pool in self.class_bonus_details:
            if pool.remaining > 0 and pool.feat_category and pool.feat_category not in categories:
                categories.append(pool.feat_category)
        return categories


def resolve_feat_slots(character: Character, catalog: Catalog) -> FeatSlotSummary:
    """
    Count feat slots and assign the chosen feats to them.

    Each chosen feat fills a class pool whose category it belongs to while
    one has room, otherwise an unrestricted slot. Granted feats never use a
    slot. Going over budget is reported, not prevented.

    Args:
        character: Character snapshot
        catalog: Rules catalog

    Returns:
        FeatSlotSummary
    """
    race = catalog.race(character.race_id)

    pools: list[dict] = []
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is None:
            continue
        for pool in definition.bonus_feat_pools:
            granted = sum(1 for level in pool.levels if level <= entry.level)
            if granted:
                pools.append(
                    {
                        "class_id": definition.id,
                        "pool_id": pool.id,
                        "label": pool.label,
                        "feat_category": pool.feat_category,
                        "granted": granted,
                        "used": 0,
                    }
                )

    chosen = character.chosen_feats
    unrestricted_used = 0
    for instance in chosen:
        definition = catalog.feat(instance.definition_id)
        feat_types = definition.feat_types if definition else []
        for pool in pools:
            fits = pool["feat_category"] is None or pool["feat_category"] in feat_types
            if fits and pool["used"] < pool["granted"]:
                pool["used"] += 1
                break
        else:
            unrestricted_used += 1

    level_progression = character.character_level // FEAT_LEVEL_INTERVAL
    return FeatSlotSummary(
        base=1 + level_progression,
        level_progression=level_progression,
        racial=race.bonus_feat_slots if race else 0,
        class_bonus_details=tuple(BonusFeatPoolSlots(**pool) for pool in pools),
        chosen_count=len(chosen),
        unrestricted_used=unrestricted_used,
    )
