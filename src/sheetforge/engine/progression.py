"""Class progression tables: base attack bonus, base saves, caster level and experience."""

from dataclasses import dataclass

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import (
    BabProgression,
    CasterProgression,
    SaveProgression,
    SavingThrowType,
)
from sheetforge.character.models import Character

# Each iterative attack is 5 lower than the previous one
ITERATIVE_ATTACK_STEP = 5

# Experience: level n needs 1000 * n(n-1)/2 XP through 20th level, then a
# flat increase per epic level
XP_PER_LEVEL_STEP = 1000
EPIC_LEVEL_THRESHOLD = 20
EPIC_LEVEL_XP_INCREASE = 20000


def base_attack_for_level(progression: BabProgression, level: int) -> int:
    """Base attack bonus granted by ``level`` levels of a class.

    Examples:
        >>> base_attack_for_level("good", 6)
        6
        >>> base_attack_for_level("average", 6)
        4
        >>> base_attack_for_level("poor", 6)
        3
    """
    if level <= 0:
        return 0
    if progression == "good":
        return level
    if progression == "average":
        return (3 * level) // 4
    return level // 2


def base_save_for_level(progression: SaveProgression, level: int) -> int:
    """Base save bonus granted by ``level`` levels of a class.

    Examples:
        >>> base_save_for_level("good", 1)
        2
        >>> base_save_for_level("poor", 1)
        0
    """
    if level <= 0:
        return 0
    if progression == "good":
        return 2 + level // 2
    return level // 3


def caster_level_for_class(progression: CasterProgression, level: int) -> int:
    """Caster level granted by a class (half casters start at 4th level)."""
    if progression == "full":
        return max(level, 0)
    if progression == "half":
        return level // 2 if level >= 4 else 0
    return 0


def iterative_attacks(bab: int) -> list[int]:
    """Attack bonuses for a full attack: bab, bab-5, ... while the bonus is at least 1.

    The first attack is always present, even at +0.
    """
    attacks = [bab]
    current = bab - ITERATIVE_ATTACK_STEP
    while current >= 1:
        attacks.append(current)
        current -= ITERATIVE_ATTACK_STEP
    return attacks


def class_base_attack_terms(character: Character, catalog: Catalog) -> list[tuple[str, int]]:
    """(source label, bonus) per class level entry, in the character's class order."""
    terms = []
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        label = catalog.labels.class_source.format(
            label=catalog.class_label(entry.class_id), level=entry.level
        )
        bonus = base_attack_for_level(definition.bab_progression, entry.level) if definition else 0
        terms.append((label, bonus))
    return terms


def base_attack_bonus(character: Character, catalog: Catalog) -> int:
    """First iterative attack: class tables plus the BAB misc modifier."""
    classes = sum(bonus for _, bonus in class_base_attack_terms(character, catalog))
    return classes + character.bab_misc_modifier


def class_base_save_terms(
    character: Character, catalog: Catalog, save: SavingThrowType
) -> list[tuple[str, int]]:
    terms = []
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        label = catalog.labels.class_source.format(
            label=catalog.class_label(entry.class_id), level=entry.level
        )
        bonus = (
            base_save_for_level(definition.saves.progression(save), entry.level)
            if definition
            else 0
        )
        terms.append((label, bonus))
    return terms


def caster_level(character: Character, catalog: Catalog) -> int:
    """Highest caster level over the character's classes."""
    levels = [0]
    for entry in character.classes:
        definition = catalog.class_definition(entry.class_id)
        if definition is not None:
            levels.append(caster_level_for_class(definition.caster_progression, entry.level))
    return max(levels)


def xp_for_level(level: int) -> int:
    """
    Total XP needed to reach ``level``.

    Examples:
        >>> xp_for_level(1)
        0
        >>> xp_for_level(4)
        6000
        >>> xp_for_level(20)
        190000
        >>> xp_for_level(22)
        230000
    """
    if level <= 1:
        return 0
    if level <= EPIC_LEVEL_THRESHOLD:
        return XP_PER_LEVEL_STEP * level * (level - 1) // 2
    epic_levels = level - EPIC_LEVEL_THRESHOLD
    return xp_for_level(EPIC_LEVEL_THRESHOLD) + epic_levels * EPIC_LEVEL_XP_INCREASE


def level_for_xp(xp: int) -> int:
    """Highest level whose XP requirement ``xp`` meets."""
    level = 1
    while xp_for_level(level + 1) <= xp:
        level += 1
    return level


@dataclass(frozen=True)
class ExperienceProgress:
    """Where a character stands between their current and next level."""

    current_xp: int
    level: int
    current_level_xp: int
    next_level_xp: int

    @property
    def xp_to_next_level(self) -> int:
        return max(self.next_level_xp - self.current_xp, 0)

    @property
    def progress_percent(self) -> float:
        span = self.next_level_xp - self.current_level_xp
        if span <= 0:
            return 100.0
        earned = max(self.current_xp - self.current_level_xp, 0)
        return min(100.0, earned * 100 / span)


def experience_progress(character: Character) -> ExperienceProgress:
    """
    XP progress measured against the character's class level total.

    The level comes from the class list, not from the XP; a character with
    more XP than their level needs shows full progress.
    """
    level = character.character_level
    return ExperienceProgress(
        current_xp=character.experience_points,
        level=level,
        current_level_xp=xp_for_level(level),
        next_level_xp=xp_for_level(level + 1),
    )
