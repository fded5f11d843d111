"""Skill totals, synergies and the skill point budget for sheetforge.

Implements skill checks as ranks plus key ability, synergy, feat, racial,
size and misc modifiers, and the rank caps and point costs that go with
class and cross-class skills.
"""

import math
from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import AbilityName
from sheetforge.engine.breakdown import Breakdown, BreakdownBuilder
from sheetforge.engine.effects import (
    AggregatedFeatEffects,
    aggregate_feat_effects,
    effect_source_label,
    resolve_effect_value,
)

from .abilities import (
    AbilityScoreBreakdown,
    ability_modifiers,
    resolve_ability_scores,
    resolve_size,
)
from .models import Character

logger = structlog.get_logger(__name__)

# Skill points at 1st level are multiplied by this
FIRST_LEVEL_SKILL_POINT_MULTIPLIER = 4

# Max ranks in a class skill is level + this
MAX_RANKS_OFFSET = 3


@dataclass(frozen=True)
class SynergyInfo:
    """One synergy rule that could boost a skill."""

    provider_skill_id: str
    provider_label: str
    ranks_required: float
    bonus: int
    is_active: bool
    is_custom: bool = False


@dataclass(frozen=True)
class SkillBreakdown(Breakdown):
    """Breakdown of a skill check total plus rank bookkeeping."""

    skill_id: str = ""
    ranks: float = 0  # raw, as entered
    cap: float = 0
    is_class_skill: bool = False
    key_ability: AbilityName | None = None
    synergies: tuple[SynergyInfo, ...] = ()

    @property
    def exceeds_cap(self) -> bool:
        return self.ranks > self.cap


@dataclass(frozen=True)
class SkillPointBudget:
    """Skill points available and spent across all levels."""

    per_level: int
    first_level: int
    later_levels: int
    spent: float

    @property
    def total(self) -> int:
        return self.first_level + self.later_levels

    @property
    def remaining(self) -> float:
        return self.total - self.spent

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.total


def max_ranks(level: int, is_class_skill: bool) -> float:
    """Rank cap for a skill at a given character level.

    Examples:
        >>> max_ranks(1, True)
        4
        >>> max_ranks(1, False)
        2.0
        >>> max_ranks(2, False)
        2.5
    """
    if is_class_skill:
        return level + MAX_RANKS_OFFSET
    return (level + MAX_RANKS_OFFSET) / 2


def is_class_skill(character: Character, catalog: Catalog, skill_id: str) -> bool:
    """Class skill if flagged on the character or listed by any of its classes."""
    instance = character.skill(skill_id)
    if instance is not None and instance.is_class_skill:
        return True
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is not None and skill_id in definition.class_skills:
            return True
    return False


def _effective_ranks(character: Character, skill_id: str) -> float:
    instance = character.skill(skill_id)
    return max(instance.ranks, 0) if instance else 0


def collect_synergies(character: Character, catalog: Catalog, skill_id: str) -> list[SynergyInfo]:
    """Every catalog or custom synergy rule targeting ``skill_id`` from another skill."""
    synergies: list[SynergyInfo] = []

    for provider in catalog.skills.values():
        if provider.id == skill_id:
            continue
        ranks = _effective_ranks(character, provider.id)
        for rule in provider.synergies:
            if rule.target_skill_id == skill_id:
                synergies.append(
                    SynergyInfo(
                        provider_skill_id=provider.id,
                        provider_label=provider.label,
                        ranks_required=rule.ranks_required,
                        bonus=rule.bonus,
                        is_active=ranks >= rule.ranks_required,
                    )
                )

    for rule in character.custom_synergies:
        if rule.target_skill_id != skill_id or rule.provider_skill_id == skill_id:
            continue
        ranks = _effective_ranks(character, rule.provider_skill_id)
        synergies.append(
            SynergyInfo(
                provider_skill_id=rule.provider_skill_id,
                provider_label=catalog.skill_label(rule.provider_skill_id),
                ranks_required=rule.ranks_required,
                bonus=rule.bonus,
                is_active=ranks >= rule.ranks_required,
                is_custom=True,
            )
        )

    return synergies


def _skill_ids(character: Character, catalog: Catalog) -> list[str]:
    skill_ids = list(catalog.skills)
    for instance in character.skills:
        if instance.skill_id not in skill_ids:
            skill_ids.append(instance.skill_id)
    return skill_ids


def resolve_skills(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects | None = None,
    abilities: dict[AbilityName, AbilityScoreBreakdown] | None = None,
) -> dict[str, SkillBreakdown]:
    """
    Resolve every catalog skill and every skill the character holds.

    Args:
        character: Character snapshot
        catalog: Rules catalog
        effects: Pre-aggregated feat effects (aggregated here when omitted)
        abilities: Resolved ability scores (resolved here when omitted)

    Returns:
        Mapping of skill id to its breakdown, catalog skills first
    """
    if effects is None:
        effects = aggregate_feat_effects(character, catalog)
    if abilities is None:
        abilities = resolve_ability_scores(character, catalog, effects)

    labels = catalog.labels
    modifiers = ability_modifiers(abilities)
    race = catalog.race(character.race_id)
    size = resolve_size(character, catalog)
    level = character.character_level
    skill_effects = effects.active("skill")

    resolved: dict[str, SkillBreakdown] = {}
    for skill_id in _skill_ids(character, catalog):
        definition = catalog.skill(skill_id)
        instance = character.skill(skill_id)
        raw_ranks = instance.ranks if instance else 0
        class_skill = is_class_skill(character, catalog, skill_id)

        builder = BreakdownBuilder(label=catalog.skill_label(skill_id))

        if raw_ranks < 0:
            builder.flag(f"negative ranks ({raw_ranks}) treated as 0")
            logger.warning("skill_ranks_negative", skill_id=skill_id, ranks=raw_ranks)
        builder.add("ranks", labels.ranks, math.floor(max(raw_ranks, 0)))

        key_ability = None
        if definition is not None and definition.key_ability != "none":
            key_ability = definition.key_ability
            builder.add(
                "ability",
                labels.key_ability.format(label=labels.ability_label(key_ability)),
                modifiers.get(key_ability, 0),
            )

        synergies = collect_synergies(character, catalog, skill_id)
        builder.add(
            "synergy",
            labels.synergy_bonus,
            sum(synergy.bonus for synergy in synergies if synergy.is_active),
        )

        for applied in skill_effects:
            if applied.effect.skill_id != skill_id:
                continue
            condition = applied.effect.condition
            builder.add(
                "feat",
                effect_source_label(applied),
                resolve_effect_value(applied.effect.value, modifiers),
                condition=catalog.condition_label(condition) if condition else None,
            )

        if race is not None:
            builder.add("racial", labels.racial_bonus, race.skill_bonuses.get(skill_id, 0))
        if size is not None:
            builder.add("size", labels.size_modifier, size.skill_modifiers.get(skill_id, 0))
        if instance is not None:
            builder.add("misc", labels.misc_modifier, instance.misc_modifier)

        resolved[skill_id] = builder.build(
            SkillBreakdown,
            skill_id=skill_id,
            ranks=raw_ranks,
            cap=max_ranks(level, class_skill),
            is_class_skill=class_skill,
            key_ability=key_ability,
            synergies=tuple(synergies),
        )

    return resolved


def calculate_skill_points(
    character: Character,
    catalog: Catalog,
    abilities: dict[AbilityName, AbilityScoreBreakdown] | None = None,
) -> SkillPointBudget:
    """
    Compute the skill point budget.

    Points per level are the first class's base plus the final INT modifier
    plus the race bonus, at least 1; 1st level grants four times that.
    Class skill ranks cost 1 point each, cross-class ranks cost 2.

    Args:
        character: Character snapshot
        catalog: Rules catalog
        abilities: Resolved ability scores (resolved here when omitted)

    Returns:
        SkillPointBudget (over-budget is a warning, never an error)
    """
    if abilities is None:
        abilities = resolve_ability_scores(character, catalog)

    first_class = (
        catalog.class_definition(character.classes[0].class_id) if character.classes else None
    )
    race = catalog.race(character.race_id)

    class_base = first_class.skill_points_base if first_class else 0
    int_modifier = abilities[AbilityName.INTELLIGENCE].modifier
    racial = race.skill_points_bonus_per_level if race else 0
    per_level = max(1, class_base + int_modifier + racial)

    level = character.character_level
    spent = sum(
        max(instance.ranks, 0) * (1 if is_class_skill(character, catalog, instance.skill_id) else 2)
        for instance in character.skills
    )

    return SkillPointBudget(
        per_level=per_level,
        first_level=per_level * FIRST_LEVEL_SKILL_POINT_MULTIPLIER,
        later_levels=per_level * (level - 1) if level > 1 else 0,
        spent=spent,
    )
