"""
Character snapshot models for sheetforge.

The Character is the single mutable root record owned by the application.
The engine reads it as an immutable value during a resolution pass; edits
go through functions that return new instances.
"""

from typing import Any, NamedTuple
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from sheetforge.catalog.definitions import AbilityName, ResistanceType, SavingThrowType, SpeedType

# Separator used by older saved records to build multi-instance feat ids
LEGACY_MULTI_INSTANCE_MARKER = "-MULTI-INSTANCE-"


class AbilityScores(BaseModel):
    """Six named ability scores."""

    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    wisdom: int = 10
    charisma: int = 10

    def get(self, ability: AbilityName) -> int:
        return getattr(self, ability.value)


class TemporaryAbilityModifiers(AbilityScores):
    """User-entered temporary modifiers; all zero by default."""

    strength: int = 0
    dexterity: int = 0
    constitution: int = 0
    intelligence: int = 0
    wisdom: int = 0
    charisma: int = 0


class CharacterClassLevel(BaseModel):
    class_id: str
    level: int = Field(default=1, ge=0)


class SkillInstance(BaseModel):
    """A character's investment in one skill.

    Ranks may be fractional (half ranks for cross-class skills) and are never
    clamped here; a negative value is kept as entered and flagged on resolve.
    """

    skill_id: str
    ranks: float = 0
    is_class_skill: bool = False
    misc_modifier: int = 0


class CustomSynergyRule(BaseModel):
    """A character-authored synergy: ranks in one skill boost another."""

    provider_skill_id: str
    target_skill_id: str
    ranks_required: float = 5
    bonus: int = 2


class FavoredEnemyChoice(BaseModel):
    enemy_type: str
    bonus: int = 2


class SaveModifiers(BaseModel):
    magic_modifier: int = 0
    misc_modifier: int = 0


class ResistanceValue(BaseModel):
    base: int = 0
    custom_modifier: int = 0


class DamageReductionInstance(BaseModel):
    """
    One damage reduction entry, written as value/bypass (e.g., 5/magic).

    Attributes:
        value: Damage ignored per hit
        bypassed_by: What overcomes it; "-" when nothing does
        is_granted: Produced by a class table rather than entered by the user
        source: Display label of the granting source
    """

    value: int = Field(default=0, ge=0)
    bypassed_by: str = "-"
    is_granted: bool = False
    source: str = ""

    @property
    def notation(self) -> str:
        return f"{self.value}/{self.bypassed_by}"


class FeatInstanceKey(NamedTuple):
    """Structured identity of a feat instance: definition plus specialization."""

    definition_id: str
    specialization_slot: str | None


def normalize_specialization(detail: str | None) -> str | None:
    """Normalize a specialization detail for comparisons (case/space-insensitive)."""
    if not detail:
        return None
    normalized = " ".join(detail.split()).lower()
    return normalized or None


class CharacterFeatInstance(BaseModel):
    """
    One taken occurrence of a feat.

    Attributes:
        definition_id: Id of the FeatDefinition
        instance_id: Surrogate id, unique within the character
        is_granted: Granted by race/class; never counts against feat slots
        specialization_detail: Chosen specialization (e.g., "Longsword")
        conditional_effect_states: Condition key -> user toggle for this instance
    """

    definition_id: str
    instance_id: str = Field(default_factory=lambda: uuid4().hex)
    is_granted: bool = False
    specialization_detail: str = ""
    conditional_effect_states: dict[str, bool] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _recover_legacy_definition_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("definition_id"):
            instance_id = data.get("instance_id", "")
            if instance_id:
                data = dict(data)
                data["definition_id"] = instance_id.split(LEGACY_MULTI_INSTANCE_MARKER)[0]
        return data

    @property
    def specialization_slot(self) -> str | None:
        return normalize_specialization(self.specialization_detail)

    @property
    def key(self) -> FeatInstanceKey:
        return FeatInstanceKey(self.definition_id, self.specialization_slot)


def _default_saves() -> dict[SavingThrowType, SaveModifiers]:
    return {save: SaveModifiers() for save in SavingThrowType}


class Character(BaseModel):
    """A character record as supplied by the owning application."""

    # Identity
    name: str = ""
    race_id: str | None = None
    size_id: str | None = Field(default=None, description="Overrides the race's size")
    age: int = 20
    alignment: str = ""

    # Progression
    classes: list[CharacterClassLevel] = Field(default_factory=list)
    experience_points: int = Field(default=0, ge=0)

    # Abilities
    ability_scores: AbilityScores = Field(default_factory=AbilityScores)
    temporary_ability_modifiers: TemporaryAbilityModifiers = Field(
        default_factory=TemporaryAbilityModifiers
    )

    # Skills and feats
    skills: list[SkillInstance] = Field(default_factory=list)
    custom_synergies: list[CustomSynergyRule] = Field(default_factory=list)
    feats: list[CharacterFeatInstance] = Field(default_factory=list)
    favored_enemies: list[FavoredEnemyChoice] = Field(default_factory=list)

    # Health
    base_max_hp: int = 0
    custom_max_hp_modifier: int = 0

    # Armor class
    armor_bonus: int = 0
    shield_bonus: int = 0
    natural_armor: int = 0
    deflection_bonus: int = 0
    dodge_bonus: int = 0
    ac_misc_modifier: int = 0

    # Combat
    initiative_misc_modifier: int = 0
    bab_misc_modifier: int = 0
    grapple_misc_modifier: int = 0
    grapple_damage_dice: str | None = Field(
        default=None, description="Overrides the size's unarmed damage"
    )
    grapple_damage_bonus: int = 0
    saving_throws: dict[SavingThrowType, SaveModifiers] = Field(default_factory=_default_saves)

    # Movement
    speed_misc_modifiers: dict[SpeedType, int] = Field(default_factory=dict)
    armor_speed_penalty: int = 0
    load_speed_penalty: int = 0

    # Defenses
    resistances: dict[ResistanceType, ResistanceValue] = Field(default_factory=dict)
    damage_reduction: list[DamageReductionInstance] = Field(default_factory=list)

    @property
    def character_level(self) -> int:
        """Total of all class levels, at least 1."""
        return sum(entry.level for entry in self.classes) or 1

    def class_level(self, class_id: str) -> int:
        return sum(entry.level for entry in self.classes if entry.class_id == class_id)

    def skill(self, skill_id: str) -> SkillInstance | None:
        for instance in self.skills:
            if instance.skill_id == skill_id:
                return instance
        return None

    def save_modifiers(self, save: SavingThrowType) -> SaveModifiers:
        return self.saving_throws.get(save) or SaveModifiers()

    def resistance(self, resistance: ResistanceType) -> ResistanceValue:
        return self.resistances.get(resistance) or ResistanceValue()

    @property
    def chosen_feats(self) -> list[CharacterFeatInstance]:
        return [instance for instance in self.feats if not instance.is_granted]
