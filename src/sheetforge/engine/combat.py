"""
Combat statistics for sheetforge.

Base attack bonus, saving throws, armor class, initiative, grapple and
grapple damage, attack and damage bonuses, hit points and speeds, each as a Breakdown built from
class tables, final ability modifiers, size, character fields and active
feat effects.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import (
    SAVING_THROW_ABILITIES,
    AbilityName,
    SavingThrowType,
    SpeedType,
)
from sheetforge.character.abilities import resolve_size
from sheetforge.character.models import Character, normalize_specialization

from .breakdown import Breakdown, BreakdownBuilder, format_modifier
from .effects import AggregatedFeatEffects, AppliedEffect, effect_source_label, resolve_effect_value
from .progression import class_base_attack_terms, class_base_save_terms, iterative_attacks

BASE_ARMOR_CLASS = 10

# Unarmed damage when neither the character nor the size names any
DEFAULT_UNARMED_DAMAGE = "1d3"

# AC effect types that touch attacks ignore
TOUCH_EXCLUDED_AC_TYPES = frozenset({"armor", "shield", "natural"})
# AC effect types lost when flat-footed (the DEX modifier is lost too)
FLAT_FOOTED_EXCLUDED_AC_TYPES = frozenset({"dodge"})


@dataclass(frozen=True)
class ArmorClassSummary:
    normal: Breakdown
    touch: Breakdown
    flat_footed: Breakdown


@dataclass(frozen=True)
class SpeedBreakdown(Breakdown):
    """Speed breakdown; the usable speed never drops below 0."""

    speed_type: SpeedType | None = None

    @property
    def speed(self) -> int:
        return max(self.total, 0)


@dataclass(frozen=True)
class GrappleDamageBreakdown(Breakdown):
    """Numeric grapple damage bonus; ``damage`` adds it to the damage dice."""

    damage_dice: str = DEFAULT_UNARMED_DAMAGE

    @property
    def damage(self) -> str:
        if not self.total:
            return self.damage_dice
        return f"{self.damage_dice}{format_modifier(self.total)}"


@dataclass(frozen=True)
class CombatStats:
    """Every combat number of a character."""

    base_attack_bonus: Breakdown
    iterative_attacks: tuple[int, ...]
    saving_throws: dict[SavingThrowType, Breakdown]
    armor_class: ArmorClassSummary
    initiative: Breakdown
    grapple: Breakdown
    grapple_damage: GrappleDamageBreakdown
    melee_attack: Breakdown
    ranged_attack: Breakdown
    melee_damage: Breakdown
    ranged_damage: Breakdown
    max_hit_points: Breakdown
    speeds: dict[SpeedType, SpeedBreakdown]


def _add_feat_terms(
    builder: BreakdownBuilder,
    applied_effects: Iterable[AppliedEffect],
    catalog: Catalog,
    modifiers: Mapping[AbilityName, int],
) -> None:
    for applied in applied_effects:
        condition = applied.effect.condition
        builder.add(
            "feat",
            effect_source_label(applied),
            resolve_effect_value(applied.effect.value, modifiers),
            condition=catalog.condition_label(condition) if condition else None,
        )


def _ability_term(
    builder: BreakdownBuilder, catalog: Catalog, ability: AbilityName, value: int
) -> None:
    labels = catalog.labels
    source = labels.ability_modifier.format(label=labels.ability_label(ability))
    builder.add("ability", source, value)


def effect_applies_to_weapon(applied: AppliedEffect, weapon_id: str | None) -> bool:
    """Whether a weapon-scoped effect covers ``weapon_id`` (explicit id or specialization)."""
    if weapon_id is None:
        return False
    target = applied.effect.weapon_id or applied.specialization_detail
    return normalize_specialization(target) == normalize_specialization(weapon_id)


def _scoped_effects(
    applied_effects: Iterable[AppliedEffect], scope: str, weapon_id: str | None
) -> list[AppliedEffect]:
    selected = []
    for applied in applied_effects:
        effect = applied.effect
        if effect.applies_to == "weapon" or effect.weapon_id:
            if effect_applies_to_weapon(applied, weapon_id):
                selected.append(applied)
        elif effect.applies_to in ("all", scope):
            selected.append(applied)
    return selected


def resolve_base_attack_bonus(character: Character, catalog: Catalog) -> Breakdown:
    """One term per class entry plus the BAB misc modifier."""
    builder = BreakdownBuilder(label=catalog.labels.base_attack_bonus)
    for source, bonus in class_base_attack_terms(character, catalog):
        builder.add("class", source, bonus)
    builder.add("misc", catalog.labels.misc_modifier, character.bab_misc_modifier)
    return builder.build()


def resolve_saving_throws(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> dict[SavingThrowType, Breakdown]:
    labels = catalog.labels
    saves: dict[SavingThrowType, Breakdown] = {}
    for save in SavingThrowType:
        builder = BreakdownBuilder(label=labels.save_label(save))
        for source, bonus in class_base_save_terms(character, catalog, save):
            builder.add("class", source, bonus)
        ability = SAVING_THROW_ABILITIES[save]
        _ability_term(builder, catalog, ability, modifiers.get(ability, 0))
        custom = character.save_modifiers(save)
        builder.add("magic", labels.magic_modifier, custom.magic_modifier)
        builder.add("misc", labels.misc_modifier, custom.misc_modifier)
        _add_feat_terms(
            builder,
            (a for a in effects.active("savingThrow") if a.effect.save in (save, "all")),
            catalog,
            modifiers,
        )
        saves[save] = builder.build()
    return saves


def resolve_armor_class(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> ArmorClassSummary:
    """
    Normal, touch and flat-footed armor class.

    Touch AC ignores armor, shield and natural armor; flat-footed AC ignores
    dodge bonuses and the DEX modifier.
    """
    labels = catalog.labels
    size = resolve_size(character, catalog)
    ac_effects = effects.active("armorClass")

    fields = [
        ("armor", labels.armor_bonus, character.armor_bonus),
        ("shield", labels.shield_bonus, character.shield_bonus),
        ("natural", labels.natural_armor, character.natural_armor),
        ("deflection", labels.deflection_bonus, character.deflection_bonus),
        ("dodge", labels.dodge_bonus, character.dodge_bonus),
        ("misc", labels.misc_modifier, character.ac_misc_modifier),
    ]

    def build(label: str, excluded: frozenset[str], with_dex: bool) -> Breakdown:
        builder = BreakdownBuilder(label=label, base=BASE_ARMOR_CLASS)
        if with_dex:
            _ability_term(builder, catalog, AbilityName.DEXTERITY, modifiers[AbilityName.DEXTERITY])
        if size is not None:
            builder.add("size", labels.size_modifier, size.ac_modifier)
        for kind, source, value in fields:
            if kind not in excluded:
                builder.add(kind, source, value)
        _add_feat_terms(
            builder,
            (a for a in ac_effects if a.effect.ac_type not in excluded),
            catalog,
            modifiers,
        )
        return builder.build()

    return ArmorClassSummary(
        normal=build(labels.armor_class, frozenset(), True),
        touch=build(labels.touch_armor_class, TOUCH_EXCLUDED_AC_TYPES, True),
        flat_footed=build(labels.flat_footed_armor_class, FLAT_FOOTED_EXCLUDED_AC_TYPES, False),
    )


def resolve_initiative(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> Breakdown:
    builder = BreakdownBuilder(label=catalog.labels.initiative)
    _ability_term(builder, catalog, AbilityName.DEXTERITY, modifiers[AbilityName.DEXTERITY])
    _add_feat_terms(builder, effects.active("initiative"), catalog, modifiers)
    builder.add("misc", catalog.labels.misc_modifier, character.initiative_misc_modifier)
    return builder.build()


def resolve_grapple(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
    bab: int,
) -> Breakdown:
    """BAB + STR modifier + size grapple modifier + grapple feat bonuses + misc."""
    labels = catalog.labels
    size = resolve_size(character, catalog)
    builder = BreakdownBuilder(label=labels.grapple)
    builder.add("bab", labels.base_attack_bonus, bab)
    _ability_term(builder, catalog, AbilityName.STRENGTH, modifiers[AbilityName.STRENGTH])
    if size is not None:
        builder.add("size", labels.size_modifier, size.grapple_modifier)
    _add_feat_terms(
        builder,
        (a for a in effects.active("attackRoll") if a.effect.applies_to == "grapple"),
        catalog,
        modifiers,
    )
    builder.add("misc", labels.misc_modifier, character.grapple_misc_modifier)
    return builder.build()


def resolve_grapple_damage(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> GrappleDamageBreakdown:
    """
    Grapple damage: damage dice plus STR modifier, grapple feat bonuses and
    the custom modifier.

    The dice are the character's own entry, otherwise the unarmed damage of
    the character's size.
    """
    labels = catalog.labels
    size = resolve_size(character, catalog)
    dice = character.grapple_damage_dice or (
        size.unarmed_damage if size is not None else DEFAULT_UNARMED_DAMAGE
    )
    builder = BreakdownBuilder(label=labels.grapple_damage)
    _ability_term(builder, catalog, AbilityName.STRENGTH, modifiers[AbilityName.STRENGTH])
    _add_feat_terms(
        builder,
        (a for a in effects.active("damageRoll") if a.effect.applies_to == "grapple"),
        catalog,
        modifiers,
    )
    builder.add("custom", labels.custom_modifier, character.grapple_damage_bonus)
    return builder.build(GrappleDamageBreakdown, damage_dice=dice)


def resolve_attack(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
    bab: int,
    *,
    ranged: bool = False,
    weapon_id: str | None = None,
) -> Breakdown:
    """
    Melee (STR) or ranged (DEX) attack bonus.

    Args:
        weapon_id: Weapon in hand; includes effects scoped to that weapon
    """
    labels = catalog.labels
    size = resolve_size(character, catalog)
    ability = AbilityName.DEXTERITY if ranged else AbilityName.STRENGTH
    builder = BreakdownBuilder(label=labels.ranged_attack if ranged else labels.melee_attack)
    builder.add("bab", labels.base_attack_bonus, bab)
    _ability_term(builder, catalog, ability, modifiers[ability])
    if size is not None:
        builder.add("size", labels.size_modifier, size.ac_modifier)
    _add_feat_terms(
        builder,
        _scoped_effects(effects.active("attackRoll"), "ranged" if ranged else "melee", weapon_id),
        catalog,
        modifiers,
    )
    return builder.build()


def resolve_damage(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
    *,
    ranged: bool = False,
    weapon_id: str | None = None,
) -> Breakdown:
    """Damage bonus: STR modifier for melee only, plus scoped feat bonuses."""
    labels = catalog.labels
    builder = BreakdownBuilder(label=labels.ranged_damage if ranged else labels.melee_damage)
    if not ranged:
        _ability_term(builder, catalog, AbilityName.STRENGTH, modifiers[AbilityName.STRENGTH])
    _add_feat_terms(
        builder,
        _scoped_effects(effects.active("damageRoll"), "ranged" if ranged else "melee", weapon_id),
        catalog,
        modifiers,
    )
    return builder.build()


def resolve_max_hit_points(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> Breakdown:
    """Base max HP + CON modifier per character level + feat bonuses + custom modifier."""
    labels = catalog.labels
    builder = BreakdownBuilder(label=labels.max_hit_points, base=character.base_max_hp)
    _ability_term(
        builder,
        catalog,
        AbilityName.CONSTITUTION,
        modifiers[AbilityName.CONSTITUTION] * character.character_level,
    )
    _add_feat_terms(builder, effects.active("hitPoints"), catalog, modifiers)
    builder.add("custom", labels.custom_modifier, character.custom_max_hp_modifier)
    return builder.build()


def resolve_speeds(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
) -> dict[SpeedType, SpeedBreakdown]:
    """Speed per movement mode; armor and load penalties reduce land speed only."""
    labels = catalog.labels
    race = catalog.race(character.race_id)
    speeds: dict[SpeedType, SpeedBreakdown] = {}
    for speed_type in SpeedType:
        base = race.speeds.get(speed_type, 0) if race else 0
        builder = BreakdownBuilder(label=labels.speed_label(speed_type), base=base)
        _add_feat_terms(
            builder,
            (a for a in effects.active("speed") if a.effect.speed_type == speed_type),
            catalog,
            modifiers,
        )
        builder.add(
            "misc", labels.misc_modifier, character.speed_misc_modifiers.get(speed_type, 0)
        )
        if speed_type == SpeedType.LAND:
            builder.add("armor", labels.armor_speed_penalty, -character.armor_speed_penalty)
            builder.add("load", labels.load_speed_penalty, -character.load_speed_penalty)
        speeds[speed_type] = builder.build(SpeedBreakdown, speed_type=speed_type)
    return speeds


def resolve_combat(
    character: Character,
    catalog: Catalog,
    effects: AggregatedFeatEffects,
    modifiers: Mapping[AbilityName, int],
    *,
    weapon_id: str | None = None,
) -> CombatStats:
    """
    Resolve every combat statistic.

    Args:
        character: Character snapshot
        catalog: Rules catalog
        effects: Aggregated feat effects
        modifiers: Final ability modifiers
        weapon_id: Weapon used for the attack and damage breakdowns

    Returns:
        CombatStats
    """
    bab = resolve_base_attack_bonus(character, catalog)
    return CombatStats(
        base_attack_bonus=bab,
        iterative_attacks=tuple(iterative_attacks(bab.total)),
        saving_throws=resolve_saving_throws(character, catalog, effects, modifiers),
        armor_class=resolve_armor_class(character, catalog, effects, modifiers),
        initiative=resolve_initiative(character, catalog, effects, modifiers),
        grapple=resolve_grapple(character, catalog, effects, modifiers, bab.total),
        grapple_damage=resolve_grapple_damage(character, catalog, effects, modifiers),
        melee_attack=resolve_attack(
            character, catalog, effects, modifiers, bab.total, weapon_id=weapon_id
        ),
        ranged_attack=resolve_attack(
            character, catalog, effects, modifiers, bab.total, ranged=True, weapon_id=weapon_id
        ),
        melee_damage=resolve_damage(character, catalog, effects, modifiers, weapon_id=weapon_id),
        ranged_damage=resolve_damage(
            character, catalog, effects, modifiers, ranged=True, weapon_id=weapon_id
        ),
        max_hit_points=resolve_max_hit_points(character, catalog, effects, modifiers),
        speeds=resolve_speeds(character, catalog, effects, modifiers),
    )
