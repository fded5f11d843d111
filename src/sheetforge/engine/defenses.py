"""Resistances and damage reduction."""

from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import ResistanceType
from sheetforge.character.models import Character, DamageReductionInstance

from .breakdown import Breakdown, BreakdownBuilder

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DefenseSummary:
    resistances: dict[ResistanceType, Breakdown]
    damage_reduction: tuple[DamageReductionInstance, ...]


def resolve_resistances(character: Character, catalog: Catalog) -> dict[ResistanceType, Breakdown]:
    """Base value + custom modifier for every resistance type."""
    labels = catalog.labels
    resistances: dict[ResistanceType, Breakdown] = {}
    for resistance in ResistanceType:
        value = character.resistance(resistance)
        builder = BreakdownBuilder(label=labels.resistance_label(resistance), base=value.base)
        builder.add("custom", labels.custom_modifier, value.custom_modifier)
        resistances[resistance] = builder.build()
    return resistances


def granted_damage_reduction(
    character: Character, catalog: Catalog
) -> list[DamageReductionInstance]:
    """Class damage reduction (DR X/-), one entry per class that grants any."""
    granted = []
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is None:
            continue
        value = sum(1 for level in definition.damage_reduction_levels if level <= entry.level)
        if value:
            granted.append(
                DamageReductionInstance(
                    value=value,
                    is_granted=True,
                    source=catalog.labels.damage_reduction_source.format(
                        label=definition.label, level=entry.level
                    ),
                )
            )
    return granted


def resolve_damage_reduction(
    character: Character, catalog: Catalog
) -> list[DamageReductionInstance]:
    """
    Damage reduction entries, class-granted first.

    Stored granted entries are replaced by the ones the current class levels
    produce; user-entered entries follow in their stored order. Entries with
    different bypasses never stack, so they are listed rather than summed.
    """
    granted = granted_damage_reduction(character, catalog)
    stale = [entry for entry in character.damage_reduction if entry.is_granted]
    if stale and len(stale) != len(granted):
        logger.debug("granted_damage_reduction_replaced", stored=len(stale), current=len(granted))
    entered = [entry for entry in character.damage_reduction if not entry.is_granted]
    return granted + entered


def resolve_defenses(character: Character, catalog: Catalog) -> DefenseSummary:
    return DefenseSummary(
        resistances=resolve_resistances(character, catalog),
        damage_reduction=tuple(resolve_damage_reduction(character, catalog)),
    )
