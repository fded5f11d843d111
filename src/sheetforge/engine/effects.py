"""
Effect aggregator for sheetforge.

Collects every effect carried by the character's feat instances into typed
buckets. Values are kept as declared; symbolic ability tokens are resolved by
the consumer once final ability modifiers are known, so ability resolution
can itself consume abilityScore effects without a cycle.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import ABILITY_ABBREVIATIONS, AbilityName, EffectValue
from sheetforge.character.models import Character, FavoredEnemyChoice

from .conditions import active_condition_keys

logger = structlog.get_logger(__name__)

EFFECT_KINDS: tuple[str, ...] = (
    "abilityScore",
    "savingThrow",
    "attackRoll",
    "damageRoll",
    "armorClass",
    "hitPoints",
    "initiative",
    "speed",
    "skill",
)


@dataclass(frozen=True)
class AppliedEffect:
    """An effect together with the feat instance it came from."""

    effect: object  # one of the EffectDetail variants
    source_feat_id: str
    source_label: str
    instance_id: str
    specialization_detail: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class FavoredEnemySummary:
    """Favored enemy slots and bonus points available to the character."""

    slots_total: int = 0
    slots_used: int = 0
    bonus_points_total: int = 0
    bonus_points_assigned: int = 0
    enemies: tuple[FavoredEnemyChoice, ...] = ()
    skill_ids: tuple[str, ...] = ()

    @property
    def slots_remaining(self) -> int:
        return self.slots_total - self.slots_used

    @property
    def bonus_points_remaining(self) -> int:
        return self.bonus_points_total - self.bonus_points_assigned


@dataclass(frozen=True)
class AggregatedFeatEffects:
    """All feat effects of a character, bucketed by effect kind."""

    by_kind: dict[str, tuple[AppliedEffect, ...]] = field(
        default_factory=lambda: {kind: () for kind in EFFECT_KINDS}
    )
    favored_enemies: FavoredEnemySummary = field(default_factory=FavoredEnemySummary)
    unresolved_feat_ids: tuple[str, ...] = ()

    def of_kind(self, kind: str) -> tuple[AppliedEffect, ...]:
        return self.by_kind.get(kind, ())

    def active(self, kind: str) -> list[AppliedEffect]:
        return [applied for applied in self.of_kind(kind) if applied.is_active]


def resolve_effect_value(value: EffectValue, ability_modifiers: Mapping[AbilityName, int]) -> int:
    """
    Resolve an effect value to a number.

    Args:
        value: An integer, or an ability token such as "WIS"
        ability_modifiers: Final ability modifiers of the character

    Returns:
        The integer itself, or the named ability's modifier
    """
    if isinstance(value, int):
        return value
    ability = ABILITY_ABBREVIATIONS.get(value)
    if ability is None:
        logger.warning("effect_value_unresolved", value=value)
        return 0
    return ability_modifiers.get(ability, 0)


def favored_enemy_summary(character: Character, catalog: Catalog) -> FavoredEnemySummary:
    """
    Count favored enemy slots from class levels and the bonus points they grant.

    The first slot is worth +2; each later slot adds a new +2 enemy and +2 to
    spend on an existing one, so ``s`` slots grant ``2 * (2s - 1)`` points.
    """
    slots = 0
    skill_ids: list[str] = []
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is None:
            continue
        gained = sum(1 for level in definition.favored_enemy_levels if level <= entry.level)
        slots += gained
        if gained:
            skill_ids.extend(s for s in definition.favored_enemy_skills if s not in skill_ids)

    return FavoredEnemySummary(
        slots_total=slots,
        slots_used=len(character.favored_enemies),
        bonus_points_total=2 * (2 * slots - 1) if slots > 0 else 0,
        bonus_points_assigned=sum(choice.bonus for choice in character.favored_enemies),
        enemies=tuple(character.favored_enemies),
        skill_ids=tuple(skill_ids),
    )


def aggregate_feat_effects(character: Character, catalog: Catalog) -> AggregatedFeatEffects:
    """
    Gather the effects of every feat instance, granted and chosen, in order.

    Unconditional effects are always active; conditional ones follow the
    merged toggle state of their condition key.

    Args:
        character: Character snapshot
        catalog: Rules catalog

    Returns:
        AggregatedFeatEffects with one bucket per effect kind
    """
    active_keys = active_condition_keys(character.feats, catalog)
    buckets: dict[str, list[AppliedEffect]] = {kind: [] for kind in EFFECT_KINDS}
    unresolved: list[str] = []

    for instance in character.feats:
        definition = catalog.feat(instance.definition_id)
        if definition is None:
            logger.warning(
                "feat_definition_missing",
                definition_id=instance.definition_id,
                instance_id=instance.instance_id,
            )
            if instance.definition_id not in unresolved:
                unresolved.append(instance.definition_id)
            continue

        for effect in definition.effects:
            bucket = buckets.get(effect.type)
            if bucket is None:
                logger.warning("effect_kind_unknown", kind=effect.type, feat_id=definition.id)
                continue
            bucket.append(
                AppliedEffect(
                    effect=effect,
                    source_feat_id=definition.id,
                    source_label=definition.label,
                    instance_id=instance.instance_id,
                    specialization_detail=instance.specialization_detail,
                    is_active=not effect.is_conditional or effect.condition in active_keys,
                )
            )

    return AggregatedFeatEffects(
        by_kind={kind: tuple(entries) for kind, entries in buckets.items()},
        favored_enemies=favored_enemy_summary(character, catalog),
        unresolved_feat_ids=tuple(unresolved),
    )


def effect_source_label(applied: AppliedEffect) -> str:
    """Breakdown label for an applied effect, e.g. "Weapon Focus (Longsword)"."""
    if applied.specialization_detail:
        return f"{applied.source_label} ({applied.specialization_detail})"
    return applied.source_label
