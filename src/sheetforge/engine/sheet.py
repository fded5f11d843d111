"""Whole-sheet derivation: one resolution pass over a character."""

from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import AbilityName
from sheetforge.character.abilities import (
    AbilityScoreBreakdown,
    ability_modifiers,
    resolve_ability_scores,
)
from sheetforge.character.feats import FeatSlotSummary, resolve_feat_slots
from sheetforge.character.models import Character
from sheetforge.character.skills import (
    SkillBreakdown,
    SkillPointBudget,
    calculate_skill_points,
    resolve_skills,
)
from sheetforge.config import Settings, get_settings

from .combat import CombatStats, resolve_combat
from .conditions import ConditionToggle, build_condition_registry
from .defenses import DefenseSummary, resolve_defenses
from .effects import AggregatedFeatEffects, aggregate_feat_effects
from .prerequisites import PrerequisiteMessage, evaluate_prerequisites, prerequisites_met
from .progression import ExperienceProgress, experience_progress

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FeatOption:
    """A catalog feat as offered in the selection list."""

    feat_id: str
    label: str
    messages: tuple[PrerequisiteMessage, ...]
    prerequisites_met: bool
    already_taken: bool
    requires_specialization: str | None = None

    @property
    def can_add(self) -> bool:
        return self.prerequisites_met and not self.already_taken


@dataclass(frozen=True)
class CharacterSheet:
    """Everything derived for a character in one pass."""

    effects: AggregatedFeatEffects
    abilities: dict[AbilityName, AbilityScoreBreakdown]
    ability_modifiers: dict[AbilityName, int]
    skills: dict[str, SkillBreakdown]
    skill_points: SkillPointBudget
    feat_slots: FeatSlotSummary
    combat: CombatStats
    defenses: DefenseSummary
    experience: ExperienceProgress
    conditions: list[ConditionToggle]
    feat_prerequisites: dict[str, list[PrerequisiteMessage]]  # by instance id


def derive_sheet(
    character: Character,
    catalog: Catalog,
    settings: Settings | None = None,
    *,
    weapon_id: str | None = None,
) -> CharacterSheet:
    """
    Derive every statistic of a character.

    Runs in dependency order: feat effects, ability scores, skills and the
    skill budget, feat slots, combat, defenses and experience, condition
    toggles, then the prerequisite messages of every chosen feat.

    Args:
        character: Character snapshot
        catalog: Rules catalog
        settings: Settings (defaults to the cached application settings)
        weapon_id: Weapon used for the attack and damage breakdowns

    Returns:
        CharacterSheet
    """
    if settings is None:
        settings = get_settings()

    effects = aggregate_feat_effects(character, catalog)
    abilities = resolve_ability_scores(character, catalog, effects)
    modifiers = ability_modifiers(abilities)
    skills = resolve_skills(character, catalog, effects, abilities)
    skill_points = calculate_skill_points(character, catalog, abilities)
    feat_slots = resolve_feat_slots(character, catalog)
    combat = resolve_combat(character, catalog, effects, modifiers, weapon_id=weapon_id)
    defenses = resolve_defenses(character, catalog)
    experience = experience_progress(character)
    conditions = build_condition_registry(character.feats, catalog)

    feat_prerequisites: dict[str, list[PrerequisiteMessage]] = {}
    for instance in character.chosen_feats:
        definition = catalog.feat(instance.definition_id)
        if definition is None:
            continue
        feat_prerequisites[instance.instance_id] = evaluate_prerequisites(
            definition,
            character,
            catalog,
            ability_scores=abilities,
            specialization_detail=instance.specialization_detail,
            unmatched_special_is_met=settings.unmatched_special_is_met,
        )

    logger.debug(
        "sheet_derived",
        character=character.name,
        level=character.character_level,
        unresolved_feats=len(effects.unresolved_feat_ids),
        over_feat_budget=feat_slots.is_over_budget,
        over_skill_budget=skill_points.is_over_budget,
    )

    return CharacterSheet(
        effects=effects,
        abilities=abilities,
        ability_modifiers=modifiers,
        skills=skills,
        skill_points=skill_points,
        feat_slots=feat_slots,
        combat=combat,
        defenses=defenses,
        experience=experience,
        conditions=conditions,
        feat_prerequisites=feat_prerequisites,
    )


def feat_options(
    character: Character, catalog: Catalog, settings: Settings | None = None
) -> list[FeatOption]:
    """
    List the feats a character could pick, with their prerequisite status.

    Class features are left out since they are only ever granted.

    Returns:
        Options sorted by label
    """
    if settings is None:
        settings = get_settings()

    abilities = resolve_ability_scores(character, catalog)
    held = {instance.definition_id for instance in character.feats}

    options = []
    for definition in catalog.feats.values():
        if definition.is_class_feature:
            continue
        messages = evaluate_prerequisites(
            definition,
            character,
            catalog,
            ability_scores=abilities,
            unmatched_special_is_met=settings.unmatched_special_is_met,
        )
        options.append(
            FeatOption(
                feat_id=definition.id,
                label=definition.label,
                messages=tuple(messages),
                prerequisites_met=prerequisites_met(messages),
                already_taken=definition.id in held and not definition.can_take_multiple_times,
                requires_specialization=definition.requires_specialization,
            )
        )

    return sorted(options, key=lambda option: (option.label, option.feat_id))
