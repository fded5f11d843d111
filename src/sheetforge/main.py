"""Console entry point for sheetforge.

Loads a rules catalog and a character YAML file, derives the character
sheet and prints it.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from sheetforge.catalog import Catalog, CatalogLoadError, CatalogValidationError, load_catalog
from sheetforge.catalog.definitions import SpeedType
from sheetforge.character.models import Character
from sheetforge.config import Settings, get_settings
from sheetforge.engine.breakdown import Breakdown, format_modifier
from sheetforge.engine.sheet import CharacterSheet, derive_sheet

logger = structlog.get_logger(__name__)


class CharacterLoadError(Exception):
    """Raised when a character file can't be read or validated."""

    pass


def configure_logging(settings: Settings) -> None:
    """Set up structlog rendering and level from settings."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def load_character(file_path: Path) -> Character:
    """
    Load a character snapshot from a YAML file.

    Raises:
        CharacterLoadError: If the file is missing, unparsable or invalid
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CharacterLoadError(f"YAML parsing error in {file_path}: {e}")
    except FileNotFoundError:
        raise CharacterLoadError(f"File not found: {file_path}")

    if not isinstance(data, dict):
        raise CharacterLoadError(f"Character file must hold a mapping: {file_path}")

    try:
        return Character.model_validate(data.get("character", data))
    except ValidationError as e:
        raise CharacterLoadError(f"Invalid character in {file_path}: {e}")


def breakdown_to_dict(breakdown: Breakdown) -> dict[str, Any]:
    return {
        "label": breakdown.label,
        "base": breakdown.base,
        "total": breakdown.total,
        "terms": [
            {
                "kind": term.kind,
                "source": term.source,
                "value": term.value,
                "condition": term.condition,
            }
            for term in breakdown.terms
        ],
        "anomalies": list(breakdown.anomalies),
    }


def sheet_to_dict(character: Character, sheet: CharacterSheet) -> dict[str, Any]:
    """Plain-data view of a sheet for JSON output."""
    combat = sheet.combat
    return {
        "name": character.name,
        "level": character.character_level,
        "abilities": {
            ability.value: {**breakdown_to_dict(b), "modifier": b.modifier}
            for ability, b in sheet.abilities.items()
        },
        "skills": {
            skill_id: {
                **breakdown_to_dict(b),
                "ranks": b.ranks,
                "cap": b.cap,
                "exceeds_cap": b.exceeds_cap,
            }
            for skill_id, b in sheet.skills.items()
        },
        "skill_points": {
            "total": sheet.skill_points.total,
            "spent": sheet.skill_points.spent,
            "remaining": sheet.skill_points.remaining,
        },
        "feat_slots": {
            "total": sheet.feat_slots.total,
            "chosen": sheet.feat_slots.chosen_count,
            "slots_left": sheet.feat_slots.slots_left,
        },
        "combat": {
            "base_attack_bonus": breakdown_to_dict(combat.base_attack_bonus),
            "iterative_attacks": list(combat.iterative_attacks),
            "saving_throws": {
                save.value: breakdown_to_dict(b) for save, b in combat.saving_throws.items()
            },
            "armor_class": {
                "normal": breakdown_to_dict(combat.armor_class.normal),
                "touch": breakdown_to_dict(combat.armor_class.touch),
                "flat_footed": breakdown_to_dict(combat.armor_class.flat_footed),
            },
            "initiative": breakdown_to_dict(combat.initiative),
            "grapple": breakdown_to_dict(combat.grapple),
            "grapple_damage": {
                **breakdown_to_dict(combat.grapple_damage),
                "damage": combat.grapple_damage.damage,
            },
            "melee_attack": breakdown_to_dict(combat.melee_attack),
            "ranged_attack": breakdown_to_dict(combat.ranged_attack),
            "melee_damage": breakdown_to_dict(combat.melee_damage),
            "ranged_damage": breakdown_to_dict(combat.ranged_damage),
            "max_hit_points": breakdown_to_dict(combat.max_hit_points),
            "speeds": {
                speed.value: {**breakdown_to_dict(b), "speed": b.speed}
                for speed, b in combat.speeds.items()
            },
        },
        "defenses": {
            "resistances": {
                resistance.value: breakdown_to_dict(b)
                for resistance, b in sheet.defenses.resistances.items()
            },
            "damage_reduction": [
                {"notation": entry.notation, "source": entry.source, "granted": entry.is_granted}
                for entry in sheet.defenses.damage_reduction
            ],
        },
        "experience": {
            "current": sheet.experience.current_xp,
            "next_level": sheet.experience.next_level_xp,
            "progress_percent": sheet.experience.progress_percent,
        },
        "conditions": [
            {
                "key": toggle.key,
                "label": toggle.label,
                "active": toggle.is_globally_active,
                "editable": toggle.can_be_toggled,
            }
            for toggle in sheet.conditions
        ],
        "unresolved_feats": list(sheet.effects.unresolved_feat_ids),
    }


def render_sheet(character: Character, sheet: CharacterSheet, catalog: Catalog) -> str:
    """Readable text summary of a sheet."""
    combat = sheet.combat
    lines = [f"{character.name or 'Unnamed'} (level {character.character_level})", ""]

    for breakdown in sheet.abilities.values():
        lines.append(
            f"  {breakdown.label:<14}{breakdown.score:>3} ({format_modifier(breakdown.modifier)})"
        )

    lines.append("")
    attacks = "/".join(format_modifier(bonus) for bonus in combat.iterative_attacks)
    lines.append(f"  {combat.base_attack_bonus.label}: {attacks}")
    for breakdown in combat.saving_throws.values():
        lines.append(f"  {breakdown.label}: {format_modifier(breakdown.total)}")
    lines.append(
        f"  {combat.armor_class.normal.label}: {combat.armor_class.normal.total}"
        f" ({combat.armor_class.touch.label} {combat.armor_class.touch.total},"
        f" {combat.armor_class.flat_footed.label} {combat.armor_class.flat_footed.total})"
    )
    for breakdown in (combat.initiative, combat.grapple, combat.melee_attack, combat.ranged_attack):
        lines.append(f"  {breakdown.label}: {format_modifier(breakdown.total)}")
    lines.append(f"  {combat.grapple_damage.label}: {combat.grapple_damage.damage}")
    lines.append(f"  {combat.max_hit_points.label}: {combat.max_hit_points.total}")
    land = combat.speeds[SpeedType.LAND]
    lines.append(f"  {land.label}: {land.speed} ft.")

    defenses = sheet.defenses
    for breakdown in defenses.resistances.values():
        if breakdown.total:
            lines.append(f"  {breakdown.label}: {breakdown.total}")
    if defenses.damage_reduction:
        notations = ", ".join(entry.notation for entry in defenses.damage_reduction)
        lines.append(f"  {catalog.labels.damage_reduction}: {notations}")
    experience = sheet.experience
    lines.append(f"  XP: {experience.current_xp}/{experience.next_level_xp}")

    lines.append("")
    for breakdown in sheet.skills.values():
        if breakdown.ranks or breakdown.total:
            flag = " (over cap)" if breakdown.exceeds_cap else ""
            lines.append(f"  {breakdown.label:<24}{format_modifier(breakdown.total):>4}{flag}")

    lines.append("")
    budget = sheet.skill_points
    lines.append(f"  Skill points: {budget.spent:g}/{budget.total}")
    slots = sheet.feat_slots
    lines.append(f"  Feats: {slots.chosen_count}/{slots.total}")
    for instance in character.feats:
        label = catalog.feat_label(instance.definition_id)
        if instance.specialization_detail:
            label = f"{label} ({instance.specialization_detail})"
        unmet = [
            message.text
            for message in sheet.feat_prerequisites.get(instance.instance_id, [])
            if not message.is_met
        ]
        suffix = f" - missing: {', '.join(unmet)}" if unmet else ""
        lines.append(f"    {label}{suffix}")

    if sheet.conditions:
        lines.append("")
        for toggle in sheet.conditions:
            state = "on" if toggle.is_globally_active else "off"
            lock = "" if toggle.can_be_toggled else " (fixed)"
            lines.append(f"  {toggle.label}: {state}{lock}")

    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Run the sheetforge CLI; returns the process exit code."""
    argparser = argparse.ArgumentParser(description="Derive a character sheet")
    argparser.add_argument("character", type=Path, help="Character YAML file")
    argparser.add_argument("--rules-dir", type=Path, default=None, help="Rules directory")
    argparser.add_argument("--weapon", default=None, help="Weapon for attack and damage lines")
    argparser.add_argument("--json", action="store_true", help="Print the sheet as JSON")
    args = argparser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    try:
        catalog = load_catalog(args.rules_dir)
        character = load_character(args.character)
    except (CatalogLoadError, CatalogValidationError, CharacterLoadError) as e:
        logger.error("sheet_load_failed", error=str(e), exc_info=True)
        return 1

    sheet = derive_sheet(character, catalog, settings, weapon_id=args.weapon)

    if args.json:
        print(json.dumps(sheet_to_dict(character, sheet), indent=2))
    else:
        print(render_sheet(character, sheet, catalog))
    return 0


def run() -> None:
    """Synchronous entry point used by the ``sheetforge`` console script."""
    sys.exit(main())


if __name__ == "__main__":
    run()
