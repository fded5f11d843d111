"""
Feat prerequisite evaluation for sheetforge.

Every clause of a feat's prerequisite list is evaluated and reported in
declaration order, so the selection list can show which ones are missing.
Free-text "special" clauses are matched against a small set of phrasings.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from sheetforge.catalog import Catalog
from sheetforge.catalog.definitions import AbilityName, FeatDefinition
from sheetforge.character.abilities import AbilityScoreBreakdown, resolve_ability_scores
from sheetforge.character.models import Character, normalize_specialization

from .progression import base_attack_bonus, caster_level

logger = structlog.get_logger(__name__)

WILD_SHAPE_FEAT_ID = "wild_shape"
TURN_UNDEAD_FEAT_IDS = ("turn_undead", "rebuke_undead")
WILD_SHAPE_CLASS = "druid"
WILD_SHAPE_CLASS_LEVEL = 5


@dataclass(frozen=True)
class PrerequisiteMessage:
    """Outcome of one prerequisite clause."""

    text: str
    is_met: bool
    is_recognized: bool = True


@dataclass(frozen=True)
class _Context:
    character: Character
    catalog: Catalog
    feat_ids: frozenset[str]


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


# ============================================================================
# Special clause rules
# ============================================================================


def _class_level_rule(match: re.Match, context: _Context) -> bool | None:
    definition = context.catalog.find_class(match.group("cls"))
    if definition is None:
        return None
    return context.character.class_level(definition.id) >= int(match.group("n"))


def _wild_shape_rule(match: re.Match, context: _Context) -> bool | None:
    if WILD_SHAPE_FEAT_ID in context.feat_ids:
        return True
    druid = context.catalog.find_class(WILD_SHAPE_CLASS)
    return druid is not None and context.character.class_level(druid.id) >= WILD_SHAPE_CLASS_LEVEL


def _turn_undead_rule(match: re.Match, context: _Context) -> bool | None:
    return any(feat_id in context.feat_ids for feat_id in TURN_UNDEAD_FEAT_IDS)


def _proficiency_rule(match: re.Match, context: _Context) -> bool | None:
    wanted = normalize_specialization(match.group("item"))
    for instance in context.character.feats:
        if instance.specialization_slot == wanted:
            return True
        label = normalize_specialization(context.catalog.feat_label(instance.definition_id))
        if wanted and label and wanted in label:
            return True
    return False


SpecialRule = Callable[[re.Match, _Context], bool | None]

# Checked in order; a rule returning None passes the clause on to the next one
SPECIAL_RULES: list[tuple[re.Pattern, SpecialRule]] = [
    (re.compile(r"^(?P<cls>[a-z][a-z' -]*?) level (?P<n>\d+)$"), _class_level_rule),
    (
        re.compile(r"^(?P<n>\d+)(?:st|nd|rd|th)[- ]level (?P<cls>[a-z][a-z' -]*)$"),
        _class_level_rule,
    ),
    (re.compile(r"^wild shape ability$"), _wild_shape_rule),
    (re.compile(r"^ability to turn or rebuke undead$"), _turn_undead_rule),
    (re.compile(r"^proficiency with (?P<item>.+)$"), _proficiency_rule),
]


def match_special(text: str, context: _Context) -> bool | None:
    """Evaluate a free-text clause; None when no rule recognizes it."""
    phrase = " ".join(text.lower().split()).rstrip(".")
    for pattern, rule in SPECIAL_RULES:
        match = pattern.match(phrase)
        if match is None:
            continue
        result = rule(match, context)
        if result is not None:
            return result
    return None


# ============================================================================
# Evaluation
# ============================================================================


def _alignment_matches(character_alignment: str, accepted: list[str]) -> bool:
    words = set(character_alignment.lower().split())
    if not words:
        return False
    return any(set(entry.lower().split()) <= words for entry in accepted if entry.strip())


def evaluate_prerequisites(
    feat: FeatDefinition,
    character: Character,
    catalog: Catalog,
    *,
    ability_scores: dict[AbilityName, AbilityScoreBreakdown] | None = None,
    specialization_detail: str | None = None,
    unmatched_special_is_met: bool = True,
) -> list[PrerequisiteMessage]:
    """
    Evaluate every prerequisite clause of a feat for a character.

    Args:
        feat: Feat being considered
        character: Character snapshot
        catalog: Rules catalog
        ability_scores: Resolved ability scores (resolved here when omitted)
        specialization_detail: Specialization the feat would be taken with,
            used by feat clauses that require the same specialization
        unmatched_special_is_met: Outcome for special clauses no rule recognizes

    Returns:
        One message per clause, in declaration order
    """
    if not feat.prerequisites:
        return []
    if ability_scores is None:
        ability_scores = resolve_ability_scores(character, catalog)

    labels = catalog.labels
    context = _Context(
        character=character,
        catalog=catalog,
        feat_ids=frozenset(instance.definition_id for instance in character.feats),
    )
    messages: list[PrerequisiteMessage] = []

    for clause in feat.prerequisites:
        if clause.type == "bab":
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_bab.format(value=clause.value),
                    base_attack_bonus(character, catalog) >= clause.value,
                )
            )
        elif clause.type == "ability":
            score = ability_scores[clause.ability].total
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_ability.format(
                        label=labels.ability_label(clause.ability), value=clause.value
                    ),
                    score >= clause.value,
                )
            )
        elif clause.type == "skill":
            instance = character.skill(clause.skill_id)
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_skill.format(
                        label=catalog.skill_label(clause.skill_id),
                        value=_format_number(clause.ranks),
                    ),
                    (instance.ranks if instance else 0) >= clause.ranks,
                )
            )
        elif clause.type == "feat":
            text = labels.prereq_feat.format(label=catalog.feat_label(clause.feat_id))
            if clause.same_specialization:
                slot = normalize_specialization(specialization_detail)
                if specialization_detail:
                    text = f"{text} ({specialization_detail.strip()})"
                is_met = any(
                    instance.key == (clause.feat_id, slot) for instance in character.feats
                )
            else:
                is_met = clause.feat_id in context.feat_ids
            messages.append(PrerequisiteMessage(text, is_met))
        elif clause.type == "caster_level":
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_caster_level.format(value=clause.value),
                    caster_level(character, catalog) >= clause.value,
                )
            )
        elif clause.type == "character_level":
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_character_level.format(value=clause.value),
                    character.character_level >= clause.value,
                )
            )
        elif clause.type == "alignment":
            messages.append(
                PrerequisiteMessage(
                    labels.prereq_alignment.format(value=", ".join(clause.alignments)),
                    _alignment_matches(character.alignment, clause.alignments),
                )
            )
        elif clause.type == "special":
            result = match_special(clause.text, context)
            if result is None:
                logger.debug("special_prerequisite_unrecognized", feat_id=feat.id, text=clause.text)
                messages.append(
                    PrerequisiteMessage(clause.text, unmatched_special_is_met, is_recognized=False)
                )
            else:
                messages.append(PrerequisiteMessage(clause.text, result))
        else:
            logger.warning("prerequisite_kind_unknown", feat_id=feat.id, kind=clause.type)

    return messages


def prerequisites_met(messages: list[PrerequisiteMessage]) -> bool:
    """True when every clause is met (and for a feat without prerequisites)."""
    return all(message.is_met for message in messages)
