"""
Rules definition models for sheetforge.

Defines the immutable, locale-independent records that make up the rules
catalog: races, classes, skills, feats, sizes, aging patterns and the
condition-key registry. Feat effects and prerequisite clauses are tagged
variants discriminated on their ``type`` field.
"""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class AbilityName(StrEnum):
    """The six core abilities."""

    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    CONSTITUTION = "constitution"
    INTELLIGENCE = "intelligence"
    WISDOM = "wisdom"
    CHARISMA = "charisma"


class SavingThrowType(StrEnum):
    """The three saving throws."""

    FORTITUDE = "fortitude"
    REFLEX = "reflex"
    WILL = "will"


class SpeedType(StrEnum):
    """Movement modes."""

    LAND = "land"
    BURROW = "burrow"
    CLIMB = "climb"
    FLY = "fly"
    SWIM = "swim"


class ResistanceType(StrEnum):
    """Numeric defenses entered as a base value plus a custom modifier."""

    FIRE = "fire"
    COLD = "cold"
    ACID = "acid"
    ELECTRICITY = "electricity"
    SONIC = "sonic"
    SPELL = "spell"
    POWER = "power"
    FORTIFICATION = "fortification"


ABILITY_ABBREVIATIONS: dict[str, AbilityName] = {
    "STR": AbilityName.STRENGTH,
    "DEX": AbilityName.DEXTERITY,
    "CON": AbilityName.CONSTITUTION,
    "INT": AbilityName.INTELLIGENCE,
    "WIS": AbilityName.WISDOM,
    "CHA": AbilityName.CHARISMA,
}

SAVING_THROW_ABILITIES: dict[SavingThrowType, AbilityName] = {
    SavingThrowType.FORTITUDE: AbilityName.CONSTITUTION,
    SavingThrowType.REFLEX: AbilityName.DEXTERITY,
    SavingThrowType.WILL: AbilityName.WISDOM,
}

# "Use that ability's modifier" tokens accepted in place of a number
AbilityToken = Literal["STR", "DEX", "CON", "INT", "WIS", "CHA"]
EffectValue = int | AbilityToken

BabProgression = Literal["good", "average", "poor"]
SaveProgression = Literal["good", "poor"]
CasterProgression = Literal["none", "full", "half"]


class Definition(BaseModel):
    """Base for all catalog records: immutable and strict about unknown keys."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# ============================================================================
# Feat effects
# ============================================================================


class BaseEffect(Definition):
    """Fields shared by every effect variant."""

    value: EffectValue = Field(..., description="Number or ability token such as 'WIS'")
    condition: str | None = Field(default=None, description="Condition key gating the effect")
    bonus_type: str | None = Field(default=None, description="Stacking label (dodge, insight...)")
    note: str | None = None

    @property
    def is_conditional(self) -> bool:
        return bool(self.condition and self.condition.strip())


class AbilityScoreEffect(BaseEffect):
    type: Literal["abilityScore"] = "abilityScore"
    ability: AbilityName


class SavingThrowEffect(BaseEffect):
    type: Literal["savingThrow"] = "savingThrow"
    save: SavingThrowType | Literal["all"] = "all"


class AttackRollEffect(BaseEffect):
    type: Literal["attackRoll"] = "attackRoll"
    applies_to: Literal["all", "melee", "ranged", "grapple", "weapon"] = "all"
    weapon_id: str | None = None


class DamageRollEffect(BaseEffect):
    type: Literal["damageRoll"] = "damageRoll"
    applies_to: Literal["all", "melee", "ranged", "grapple", "weapon"] = "all"
    weapon_id: str | None = None


class ArmorClassEffect(BaseEffect):
    type: Literal["armorClass"] = "armorClass"
    ac_type: Literal[
        "armor", "shield", "natural", "deflection", "dodge", "insight", "misc"
    ] = "misc"


class HitPointsEffect(BaseEffect):
    type: Literal["hitPoints"] = "hitPoints"


class InitiativeEffect(BaseEffect):
    type: Literal["initiative"] = "initiative"


class SpeedEffect(BaseEffect):
    type: Literal["speed"] = "speed"
    speed_type: SpeedType = SpeedType.LAND


class SkillEffect(BaseEffect):
    type: Literal["skill"] = "skill"
    skill_id: str


EffectDetail = Annotated[
    AbilityScoreEffect
    | SavingThrowEffect
    | AttackRollEffect
    | DamageRollEffect
    | ArmorClassEffect
    | HitPointsEffect
    | InitiativeEffect
    | SpeedEffect
    | SkillEffect,
    Field(discriminator="type"),
]


# ============================================================================
# Prerequisite clauses
# ============================================================================


class BabPrerequisite(Definition):
    type: Literal["bab"] = "bab"
    value: int


class AbilityPrerequisite(Definition):
    type: Literal["ability"] = "ability"
    ability: AbilityName
    value: int


class SkillPrerequisite(Definition):
    type: Literal["skill"] = "skill"
    skill_id: str
    ranks: float


class FeatPrerequisite(Definition):
    type: Literal["feat"] = "feat"
    feat_id: str
    same_specialization: bool = False


class CasterLevelPrerequisite(Definition):
    type: Literal["caster_level"] = "caster_level"
    value: int


class CharacterLevelPrerequisite(Definition):
    type: Literal["character_level"] = "character_level"
    value: int


class AlignmentPrerequisite(Definition):
    type: Literal["alignment"] = "alignment"
    alignments: list[str]


class SpecialPrerequisite(Definition):
    type: Literal["special"] = "special"
    text: str


PrerequisiteClause = Annotated[
    BabPrerequisite
    | AbilityPrerequisite
    | SkillPrerequisite
    | FeatPrerequisite
    | CasterLevelPrerequisite
    | CharacterLevelPrerequisite
    | AlignmentPrerequisite
    | SpecialPrerequisite,
    Field(discriminator="type"),
]


# ============================================================================
# Definitions
# ============================================================================


class FeatDefinition(Definition):
    """
    A feat as described by the rules catalog.

    Attributes:
        id: Unique identifier (e.g., "weapon_focus")
        label: Display label, passed through untouched
        feat_types: Categories used by class bonus-feat pools (e.g., "fighter")
        prerequisites: Ordered prerequisite clauses
        effects: Effect details applied while the feat is held
        can_take_multiple_times: Whether more than one instance may be chosen
        requires_specialization: Kind of specialization required (e.g., "weapon")
        is_class_feature: Class features are granted rather than chosen
        permanent_effect: Conditional effects of this feat cannot be switched off
    """

    id: str
    label: str
    description: str = ""
    feat_types: list[str] = Field(default_factory=lambda: ["general"])
    prerequisites: list[PrerequisiteClause] = Field(default_factory=list)
    effects: list[EffectDetail] = Field(default_factory=list)
    can_take_multiple_times: bool = False
    requires_specialization: str | None = None
    is_class_feature: bool = False
    permanent_effect: bool = False
    is_custom: bool = False


class SynergyRule(Definition):
    """A bonus one skill grants to another once enough ranks are held."""

    target_skill_id: str
    ranks_required: float = 5
    bonus: int = 2


class SkillDefinition(Definition):
    id: str
    label: str
    key_ability: AbilityName | Literal["none"] = "none"
    synergies: list[SynergyRule] = Field(default_factory=list)
    description: str = ""


class GrantedFeat(Definition):
    feat_id: str
    level_acquired: int = 1
    note: str | None = None


class RaceDefinition(Definition):
    id: str
    label: str
    size: str = "medium"
    speeds: dict[SpeedType, int] = Field(default_factory=lambda: {SpeedType.LAND: 30})
    ability_modifiers: dict[AbilityName, int] = Field(default_factory=dict)
    skill_bonuses: dict[str, int] = Field(default_factory=dict)
    bonus_feat_slots: int = 0
    skill_points_bonus_per_level: int = 0
    granted_feats: list[GrantedFeat] = Field(default_factory=list)
    aging_pattern: str | None = None
    venerable_age: int | None = None
    min_adult_age: int | None = None


class BonusFeatPool(Definition):
    """A class-specific pool of bonus feat slots (e.g., fighter bonus feats)."""

    id: str
    label: str
    levels: list[int]
    feat_category: str | None = None


class ClassSaves(Definition):
    fortitude: SaveProgression = "poor"
    reflex: SaveProgression = "poor"
    will: SaveProgression = "poor"

    def progression(self, save: SavingThrowType) -> SaveProgression:
        return getattr(self, save.value)


class ClassDefinition(Definition):
    id: str
    label: str
    hit_die: int = 8
    bab_progression: BabProgression = "average"
    saves: ClassSaves = Field(default_factory=ClassSaves)
    skill_points_base: int = 2
    class_skills: list[str] = Field(default_factory=list)
    granted_feats: list[GrantedFeat] = Field(default_factory=list)
    bonus_feat_pools: list[BonusFeatPool] = Field(default_factory=list)
    caster_progression: CasterProgression = "none"
    favored_enemy_levels: list[int] = Field(default_factory=list)
    favored_enemy_skills: list[str] = Field(default_factory=list)
    # Each listed level reached adds 1 to the class damage reduction (DR X/-)
    damage_reduction_levels: list[int] = Field(default_factory=list)


class SizeDefinition(Definition):
    id: str
    label: str
    ac_modifier: int = 0
    grapple_modifier: int = 0
    skill_modifiers: dict[str, int] = Field(default_factory=dict)
    ability_modifiers: dict[AbilityName, int] = Field(default_factory=dict)
    unarmed_damage: str = "1d3"


class AgingCategory(Definition):
    name: str
    age_factor: float
    effects: dict[AbilityName, int] = Field(default_factory=dict)


class AgingPattern(Definition):
    id: str
    categories: list[AgingCategory]


class ConditionDefinition(Definition):
    id: str
    label: str


class LabelSet(Definition):
    """Display templates for breakdown sources and prerequisite messages.

    Defaults are English; a localized loader may supply replacements.
    """

    race_source: str = "Race ({label})"
    aging_source: str = "Aging ({label})"
    size_source: str = "Size ({label})"
    temporary_modifier: str = "Temporary Modifier"
    ranks: str = "Ranks"
    key_ability: str = "Key Ability ({label})"
    synergy_bonus: str = "Synergy Bonus"
    feat_bonus: str = "Feat Bonus"
    racial_bonus: str = "Racial Bonus"
    size_modifier: str = "Size Modifier"
    misc_modifier: str = "Misc Modifier"
    magic_modifier: str = "Magic Modifier"
    ability_modifier: str = "Ability Modifier ({label})"
    class_source: str = "{label} {level}"
    custom_modifier: str = "Custom Modifier"
    armor_bonus: str = "Armor Bonus"
    shield_bonus: str = "Shield Bonus"
    natural_armor: str = "Natural Armor"
    deflection_bonus: str = "Deflection Bonus"
    dodge_bonus: str = "Dodge Bonus"
    base_attack_bonus: str = "Base Attack Bonus"
    armor_speed_penalty: str = "Armor Penalty"
    load_speed_penalty: str = "Load Penalty"
    armor_class: str = "Armor Class"
    touch_armor_class: str = "Touch"
    flat_footed_armor_class: str = "Flat-Footed"
    initiative: str = "Initiative"
    grapple: str = "Grapple"
    melee_attack: str = "Melee Attack"
    ranged_attack: str = "Ranged Attack"
    melee_damage: str = "Melee Damage"
    ranged_damage: str = "Ranged Damage"
    max_hit_points: str = "Max Hit Points"
    grapple_damage: str = "Grapple Damage"
    damage_reduction: str = "Damage Reduction"
    damage_reduction_source: str = "{label} {level}"
    prereq_bab: str = "Base Attack Bonus +{value}"
    prereq_ability: str = "{label} {value}"
    prereq_skill: str = "{label} {value} ranks"
    prereq_feat: str = "{label}"
    prereq_caster_level: str = "Caster level {value}"
    prereq_character_level: str = "Character level {value}"
    prereq_alignment: str = "Alignment: {value}"
    ability_labels: dict[AbilityName, str] = Field(
        default_factory=lambda: {ability: ability.value.capitalize() for ability in AbilityName}
    )
    ability_abbreviations: dict[AbilityName, str] = Field(
        default_factory=lambda: {ability: abbr for abbr, ability in ABILITY_ABBREVIATIONS.items()}
    )

    save_labels: dict[SavingThrowType, str] = Field(
        default_factory=lambda: {save: save.value.capitalize() for save in SavingThrowType}
    )
    speed_labels: dict[SpeedType, str] = Field(
        default_factory=lambda: {speed: speed.value.capitalize() for speed in SpeedType}
    )
    resistance_labels: dict[ResistanceType, str] = Field(
        default_factory=lambda: {
            ResistanceType.FIRE: "Fire Resistance",
            ResistanceType.COLD: "Cold Resistance",
            ResistanceType.ACID: "Acid Resistance",
            ResistanceType.ELECTRICITY: "Electricity Resistance",
            ResistanceType.SONIC: "Sonic Resistance",
            ResistanceType.SPELL: "Spell Resistance",
            ResistanceType.POWER: "Power Resistance",
            ResistanceType.FORTIFICATION: "Fortification",
        }
    )

    def ability_label(self, ability: AbilityName) -> str:
        return self.ability_labels.get(ability, ability.value)

    def save_label(self, save: SavingThrowType) -> str:
        return self.save_labels.get(save, save.value)

    def speed_label(self, speed: SpeedType) -> str:
        return self.speed_labels.get(speed, speed.value)

    def resistance_label(self, resistance: ResistanceType) -> str:
        return self.resistance_labels.get(resistance, resistance.value)

    def ability_abbreviation(self, ability: AbilityName) -> str:
        return self.ability_abbreviations.get(ability, ability.value[:3].upper())
