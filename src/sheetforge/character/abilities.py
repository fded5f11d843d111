"""Ability score resolution for sheetforge.

Final scores are the base score plus race, aging, size, feat and temporary
adjustments, each reported as its own breakdown line in that fixed order.
"""

from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import (
    AbilityName,
    AgingCategory,
    RaceDefinition,
    SizeDefinition,
)
from sheetforge.engine.breakdown import Breakdown, BreakdownBuilder
from sheetforge.engine.effects import (
    AggregatedFeatEffects,
    aggregate_feat_effects,
    effect_source_label,
)

from .models import Character

logger = structlog.get_logger(__name__)

DEFAULT_SIZE_ID = "medium"


@dataclass(frozen=True)
class AbilityScoreBreakdown(Breakdown):
    """Breakdown of one final ability score."""

    ability: AbilityName | None = None

    @property
    def score(self) -> int:
        return self.total

    @property
    def modifier(self) -> int:
        return get_modifier(self.total)


def get_modifier(value: int) -> int:
    """Calculate the ability modifier for a score.

    Args:
        value: The ability score

    Returns:
        The modifier: (value - 10) // 2

    Examples:
        >>> get_modifier(10)
        0
        >>> get_modifier(18)
        4
        >>> get_modifier(7)
        -2
    """
    return (value - 10) // 2


def get_aging_effects(
    race: RaceDefinition | None, age: int, catalog: Catalog
) -> AgingCategory | None:
    """Highest aging category reached at ``age``, or None for an adult.

    A category is reached once ``age >= floor(age_factor * venerable_age)``.
    Category effects are totals, not increments over the previous category.
    """
    if race is None or not race.venerable_age:
        return None
    pattern = catalog.aging_pattern(race.aging_pattern)
    if pattern is None:
        return None

    reached = None
    for category in sorted(pattern.categories, key=lambda c: c.age_factor):
        if age >= int(category.age_factor * race.venerable_age):
            reached = category
    return reached


def resolve_size(character: Character, catalog: Catalog) -> SizeDefinition | None:
    """Size category in effect: the character's override, else the race's size."""
    race = catalog.race(character.race_id)
    size_id = character.size_id or (race.size if race else DEFAULT_SIZE_ID)
    return catalog.size(size_id)


def resolve_ability_scores(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects | None = None,
) -> dict[AbilityName, AbilityScoreBreakdown]:
    """
    Resolve all six final ability scores with their breakdowns.

    Args:
        character: Character snapshot
        catalog: Rules catalog
        effects: Pre-aggregated feat effects (aggregated here when omitted)

    Returns:
        Mapping of ability to its breakdown, in AbilityName order
    """
    if effects is None:
        effects = aggregate_feat_effects(character, catalog)

    labels = catalog.labels
    race = catalog.race(character.race_id)
    aging = get_aging_effects(race, character.age, catalog)
    size = resolve_size(character, catalog)
    feat_effects = effects.active("abilityScore")

    resolved: dict[AbilityName, AbilityScoreBreakdown] = {}
    for ability in AbilityName:
        builder = BreakdownBuilder(
            label=labels.ability_label(ability), base=character.ability_scores.get(ability)
        )

        if race is not None:
            builder.add(
                "race",
                labels.race_source.format(label=race.label),
                race.ability_modifiers.get(ability, 0),
            )
        if aging is not None:
            builder.add(
                "aging", labels.aging_source.format(label=aging.name), aging.effects.get(ability, 0)
            )
        if size is not None:
            builder.add(
                "size",
                labels.size_source.format(label=size.label),
                size.ability_modifiers.get(ability, 0),
            )

        # One line per contributing feat instance and condition
        feat_lines: dict[tuple[str, str | None], tuple[str, int]] = {}
        for applied in feat_effects:
            effect = applied.effect
            if effect.ability != ability:
                continue
            if not isinstance(effect.value, int):
                builder.flag(f"symbolic value '{effect.value}' ignored on {applied.source_feat_id}")
                logger.warning(
                    "ability_effect_symbolic_value",
                    feat_id=applied.source_feat_id,
                    ability=ability.value,
                    value=effect.value,
                )
                continue
            line_key = (applied.instance_id, effect.condition)
            source, value = feat_lines.get(line_key, (effect_source_label(applied), 0))
            feat_lines[line_key] = (source, value + effect.value)
        for (_, condition), (source, value) in feat_lines.items():
            builder.add(
                "feat",
                source,
                value,
                condition=catalog.condition_label(condition) if condition else None,
            )

        builder.add(
            "temporary",
            labels.temporary_modifier,
            character.temporary_ability_modifiers.get(ability),
        )
        resolved[ability] = builder.build(AbilityScoreBreakdown, ability=ability)

    return resolved


def ability_modifiers(
    abilities: dict[AbilityName, AbilityScoreBreakdown],
) -> dict[AbilityName, int]:
    """Final modifier for each resolved ability."""
    return {ability: breakdown.modifier for ability, breakdown in abilities.items()}
