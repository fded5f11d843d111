"""Shared fixtures for all tests."""

import pytest
import structlog

from sheetforge.catalog import Catalog, load_catalog
from sheetforge.catalog.definitions import (
    AgingCategory,
    AgingPattern,
    BonusFeatPool,
    ClassDefinition,
    ClassSaves,
    ConditionDefinition,
    FeatDefinition,
    GrantedFeat,
    RaceDefinition,
    SizeDefinition,
    SkillDefinition,
    SynergyRule,
)
from sheetforge.character.models import (
    AbilityScores,
    Character,
    CharacterClassLevel,
    CharacterFeatInstance,
    SkillInstance,
)
from sheetforge.config import BUNDLED_RULES_DIR, get_settings


@pytest.fixture(autouse=True)
def reset_settings_cache(monkeypatch):
    """Give every test fresh settings built from a clean environment."""
    for name in (
        "SHEETFORGE_RULES_DIR",
        "SHEETFORGE_STRICT_CONDITION_KEYS",
        "SHEETFORGE_UNMATCHED_SPECIAL_IS_MET",
        "SHEETFORGE_LOG_LEVEL",
        "SHEETFORGE_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()


def _feats() -> list[FeatDefinition]:
    data = [
        {
            "id": "dodge",
            "label": "Dodge",
            "feat_types": ["general", "fighter"],
            "prerequisites": [{"type": "ability", "ability": "dexterity", "value": 13}],
            "effects": [{"type": "armorClass", "ac_type": "dodge", "value": 1}],
        },
        {
            "id": "mobility",
            "label": "Mobility",
            "feat_types": ["general", "fighter"],
            "prerequisites": [
                {"type": "ability", "ability": "dexterity", "value": 13},
                {"type": "feat", "feat_id": "dodge"},
            ],
            "effects": [
                {
                    "type": "armorClass",
                    "ac_type": "dodge",
                    "value": 4,
                    "condition": "provoking_movement",
                }
            ],
        },
        {
            "id": "power_attack",
            "label": "Power Attack",
            "feat_types": ["general", "fighter"],
            "prerequisites": [{"type": "ability", "ability": "strength", "value": 13}],
        },
        {
            "id": "weapon_focus",
            "label": "Weapon Focus",
            "feat_types": ["general", "fighter"],
            "can_take_multiple_times": True,
            "requires_specialization": "weapon",
            "prerequisites": [{"type": "bab", "value": 1}],
            "effects": [{"type": "attackRoll", "applies_to": "weapon", "value": 1}],
        },
        {
            "id": "weapon_specialization",
            "label": "Weapon Specialization",
            "feat_types": ["fighter"],
            "can_take_multiple_times": True,
            "requires_specialization": "weapon",
            "prerequisites": [
                {"type": "feat", "feat_id": "weapon_focus", "same_specialization": True},
                {"type": "special", "text": "Fighter level 4"},
            ],
            "effects": [{"type": "damageRoll", "applies_to": "weapon", "value": 2}],
        },
        {
            "id": "point_blank_shot",
            "label": "Point Blank Shot",
            "effects": [
                {
                    "type": "attackRoll",
                    "applies_to": "ranged",
                    "value": 1,
                    "condition": "point_blank_range",
                },
                {
                    "type": "damageRoll",
                    "applies_to": "ranged",
                    "value": 1,
                    "condition": "point_blank_range",
                },
            ],
        },
        {
            "id": "improved_grapple",
            "label": "Improved Grapple",
            "effects": [{"type": "attackRoll", "applies_to": "grapple", "value": 4}],
        },
        {
            "id": "crushing_grip",
            "label": "Crushing Grip",
            "effects": [{"type": "damageRoll", "applies_to": "grapple", "value": 2}],
        },
        {
            "id": "improved_initiative",
            "label": "Improved Initiative",
            "effects": [{"type": "initiative", "value": 4}],
        },
        {
            "id": "iron_will",
            "label": "Iron Will",
            "effects": [{"type": "savingThrow", "save": "will", "value": 2}],
        },
        {
            "id": "toughness",
            "label": "Toughness",
            "can_take_multiple_times": True,
            "effects": [{"type": "hitPoints", "value": 3}],
        },
        {
            "id": "athletic",
            "label": "Athletic",
            "effects": [
                {"type": "skill", "skill_id": "climb", "value": 2},
                {"type": "skill", "skill_id": "jump", "value": 2},
            ],
        },
        {
            "id": "skill_focus",
            "label": "Skill Focus",
            "can_take_multiple_times": True,
            "requires_specialization": "skill",
        },
        {
            "id": "mounted_combat",
            "label": "Mounted Combat",
            "prerequisites": [{"type": "skill", "skill_id": "ride", "ranks": 1}],
        },
        {
            "id": "leadership",
            "label": "Leadership",
            "prerequisites": [{"type": "character_level", "value": 6}],
        },
        {
            "id": "scribe_scroll",
            "label": "Scribe Scroll",
            "feat_types": ["item_creation"],
            "prerequisites": [{"type": "caster_level", "value": 1}],
        },
        {
            "id": "holy_zeal",
            "label": "Holy Zeal",
            "prerequisites": [{"type": "alignment", "alignments": ["lawful good"]}],
        },
        {
            "id": "extra_turning",
            "label": "Extra Turning",
            "prerequisites": [{"type": "special", "text": "Ability to turn or rebuke undead."}],
        },
        {
            "id": "strange_gift",
            "label": "Strange Gift",
            "prerequisites": [{"type": "special", "text": "Must have been touched by a comet"}],
        },
        {
            "id": "bull_strength",
            "label": "Bull Strength",
            "effects": [
                {"type": "abilityScore", "ability": "strength", "value": 2},
                {"type": "abilityScore", "ability": "strength", "value": 2},
            ],
        },
        {
            "id": "wise_strength",
            "label": "Wise Strength",
            "effects": [{"type": "abilityScore", "ability": "strength", "value": "WIS"}],
        },
        {
            "id": "rage",
            "label": "Rage",
            "is_class_feature": True,
            "effects": [
                {"type": "abilityScore", "ability": "strength", "value": 4, "condition": "raging"},
                {"type": "armorClass", "ac_type": "misc", "value": -2, "condition": "raging"},
            ],
        },
        {
            "id": "monk_ac_bonus",
            "label": "AC Bonus (Monk)",
            "is_class_feature": True,
            "permanent_effect": True,
            "effects": [
                {"type": "armorClass", "ac_type": "misc", "value": "WIS", "condition": "unarmored"}
            ],
        },
        {
            "id": "unarmored_stride",
            "label": "Unarmored Stride",
            "effects": [
                {"type": "speed", "speed_type": "land", "value": 10, "condition": "unarmored"}
            ],
        },
        {
            "id": "divine_grace",
            "label": "Divine Grace",
            "is_class_feature": True,
            "effects": [{"type": "savingThrow", "save": "all", "value": "CHA"}],
        },
        {"id": "turn_undead", "label": "Turn Undead", "is_class_feature": True},
        {
            "id": "stunning_fist",
            "label": "Stunning Fist",
            "feat_types": ["general", "fighter", "monk"],
        },
    ]
    return [FeatDefinition.model_validate(entry) for entry in data]


def build_test_catalog() -> Catalog:
    """Small in-memory catalog covering every definition kind."""
    return Catalog.from_definitions(
        races=[
            RaceDefinition(
                id="human",
                label="Human",
                aging_pattern="human",
                venerable_age=70,
            ),
            RaceDefinition(
                id="elf",
                label="Elf",
                ability_modifiers={"dexterity": 2, "constitution": -2},
                skill_bonuses={"listen": 2},
            ),
            RaceDefinition(
                id="halfling",
                label="Halfling",
                size="small",
                speeds={"land": 20},
                ability_modifiers={"dexterity": 2, "strength": -2},
                bonus_feat_slots=0,
            ),
            RaceDefinition(
                id="versatile",
                label="Versatile Folk",
                bonus_feat_slots=1,
                skill_points_bonus_per_level=1,
                granted_feats=[GrantedFeat(feat_id="iron_will", level_acquired=3)],
            ),
        ],
        classes=[
            ClassDefinition(
                id="fighter",
                label="Fighter",
                hit_die=10,
                bab_progression="good",
                saves=ClassSaves(fortitude="good"),
                skill_points_base=2,
                class_skills=["climb", "jump", "intimidate", "ride"],
            ),
            ClassDefinition(
                id="rogue",
                label="Rogue",
                bab_progression="average",
                saves=ClassSaves(reflex="good"),
                skill_points_base=8,
                class_skills=["balance", "climb", "jump", "tumble", "listen", "spot", "hide"],
            ),
            ClassDefinition(
                id="wizard",
                label="Wizard",
                bab_progression="poor",
                saves=ClassSaves(will="good"),
                caster_progression="full",
                class_skills=["concentration"],
                granted_feats=[GrantedFeat(feat_id="scribe_scroll")],
            ),
            ClassDefinition(
                id="paladin",
                label="Paladin",
                bab_progression="good",
                saves=ClassSaves(fortitude="good"),
                caster_progression="half",
                granted_feats=[
                    GrantedFeat(feat_id="divine_grace", level_acquired=2),
                    GrantedFeat(feat_id="turn_undead", level_acquired=4),
                ],
            ),
            ClassDefinition(
                id="barbarian",
                label="Barbarian",
                bab_progression="good",
                saves=ClassSaves(fortitude="good"),
                skill_points_base=4,
                granted_feats=[GrantedFeat(feat_id="rage")],
                damage_reduction_levels=[7, 10, 13, 16, 19],
            ),
            ClassDefinition(
                id="monk",
                label="Monk",
                saves=ClassSaves(fortitude="good", reflex="good", will="good"),
                granted_feats=[GrantedFeat(feat_id="monk_ac_bonus")],
                bonus_feat_pools=[
                    BonusFeatPool(
                        id="monk_bonus",
                        label="Monk Bonus Feats",
                        levels=[1, 2, 6],
                        feat_category="monk",
                    )
                ],
            ),
            ClassDefinition(
                id="warrior",
                label="Warrior",
                bab_progression="good",
                bonus_feat_pools=[
                    BonusFeatPool(
                        id="warrior_bonus",
                        label="Warrior Bonus Feats",
                        levels=[1, 2, 4],
                        feat_category="fighter",
                    )
                ],
            ),
            ClassDefinition(
                id="ranger",
                label="Ranger",
                bab_progression="good",
                favored_enemy_levels=[1, 5, 10],
                favored_enemy_skills=["listen", "spot"],
            ),
        ],
        skills=[
            SkillDefinition(id="climb", label="Climb", key_ability="strength"),
            SkillDefinition(id="jump", label="Jump", key_ability="strength"),
            SkillDefinition(
                id="tumble",
                label="Tumble",
                key_ability="dexterity",
                synergies=[
                    SynergyRule(target_skill_id="jump"),
                    SynergyRule(target_skill_id="balance"),
                ],
            ),
            SkillDefinition(id="balance", label="Balance", key_ability="dexterity"),
            SkillDefinition(
                id="use_rope",
                label="Use Rope",
                key_ability="dexterity",
                synergies=[SynergyRule(target_skill_id="climb")],
            ),
            SkillDefinition(id="listen", label="Listen", key_ability="wisdom"),
            SkillDefinition(id="spot", label="Spot", key_ability="wisdom"),
            SkillDefinition(id="hide", label="Hide", key_ability="dexterity"),
            SkillDefinition(id="intimidate", label="Intimidate", key_ability="charisma"),
            SkillDefinition(id="concentration", label="Concentration", key_ability="constitution"),
            SkillDefinition(id="ride", label="Ride", key_ability="dexterity"),
            SkillDefinition(id="speak_language", label="Speak Language"),
        ],
        feats=_feats(),
        sizes=[
            SizeDefinition(id="medium", label="Medium"),
            SizeDefinition(
                id="small",
                label="Small",
                ac_modifier=1,
                grapple_modifier=-4,
                skill_modifiers={"hide": 4},
                unarmed_damage="1d2",
            ),
            SizeDefinition(
                id="large",
                label="Large",
                ac_modifier=-1,
                grapple_modifier=4,
                skill_modifiers={"hide": -4},
                ability_modifiers={"strength": 8, "dexterity": -2},
            ),
        ],
        aging_patterns=[
            AgingPattern(
                id="human",
                categories=[
                    AgingCategory(
                        name="Middle Age",
                        age_factor=0.5,
                        effects={"strength": -1, "wisdom": 1},
                    ),
                    AgingCategory(
                        name="Old",
                        age_factor=0.7572,
                        effects={"strength": -2, "wisdom": 2},
                    ),
                    AgingCategory(
                        name="Venerable",
                        age_factor=1.0,
                        effects={"strength": -3, "wisdom": 3},
                    ),
                ],
            )
        ],
        conditions=[
            ConditionDefinition(id="point_blank_range", label="Within 30 ft."),
            ConditionDefinition(id="provoking_movement", label="Moving Out of Threatened Squares"),
            ConditionDefinition(id="raging", label="Raging"),
            ConditionDefinition(id="unarmored", label="Unarmored"),
        ],
    )


@pytest.fixture
def catalog() -> Catalog:
    """Small in-memory rules catalog."""
    return build_test_catalog()


@pytest.fixture(scope="session")
def bundled_catalog() -> Catalog:
    """The rules catalog shipped with the package."""
    return load_catalog(BUNDLED_RULES_DIR, strict_condition_keys=True)


@pytest.fixture
def make_character():
    """Factory building characters from short keyword arguments.

    ``classes`` is a list of (class_id, level) pairs, ``skills`` maps skill
    id to ranks and ``feats`` is a list of definition ids or instances.
    """

    def _make(
        *,
        race_id: str | None = "human",
        classes: list[tuple[str, int]] | None = None,
        abilities: dict[str, int] | None = None,
        skills: dict[str, float] | None = None,
        feats: list | None = None,
        **fields,
    ) -> Character:
        return Character(
            name=fields.pop("name", "Test Hero"),
            race_id=race_id,
            classes=[
                CharacterClassLevel(class_id=class_id, level=level)
                for class_id, level in (classes or [("fighter", 1)])
            ],
            ability_scores=AbilityScores(**(abilities or {})),
            skills=[
                SkillInstance(skill_id=skill_id, ranks=ranks)
                for skill_id, ranks in (skills or {}).items()
            ],
            feats=[
                entry
                if isinstance(entry, CharacterFeatInstance)
                else CharacterFeatInstance(definition_id=entry)
                for entry in (feats or [])
            ],
            **fields,
        )

    return _make
