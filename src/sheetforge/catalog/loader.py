"""
Catalog loader module for sheetforge.

Handles loading and validating rules definitions from YAML files. Each file
holds a single top-level list (``races``, ``classes``, ``skills``, ``feats``,
``sizes``, ``aging_patterns``, ``conditions``); ``labels.yaml`` is optional
and holds a ``labels`` mapping.
"""

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from sheetforge.config import get_settings

from .catalog import Catalog
from .definitions import (
    AgingPattern,
    ClassDefinition,
    ConditionDefinition,
    FeatDefinition,
    LabelSet,
    RaceDefinition,
    SizeDefinition,
    SkillDefinition,
)

logger = structlog.get_logger(__name__)


class CatalogLoadError(Exception):
    """Raised when there's an error loading catalog data."""

    pass


class CatalogValidationError(Exception):
    """Raised when catalog validation fails."""

    pass


# file name -> (top-level key, model)
CATALOG_FILES: dict[str, tuple[str, type[BaseModel]]] = {
    "races.yaml": ("races", RaceDefinition),
    "classes.yaml": ("classes", ClassDefinition),
    "skills.yaml": ("skills", SkillDefinition),
    "feats.yaml": ("feats", FeatDefinition),
    "sizes.yaml": ("sizes", SizeDefinition),
    "aging.yaml": ("aging_patterns", AgingPattern),
    "conditions.yaml": ("conditions", ConditionDefinition),
}


def load_yaml_file(file_path: Path, key: str) -> list[dict[str, Any]]:
    """
    Load a YAML file containing a list of definitions under ``key``.

    Args:
        file_path: Path to the YAML file
        key: Top-level key holding the list

    Returns:
        List of definition dictionaries

    Raises:
        CatalogLoadError: If the file cannot be loaded or parsed
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"YAML parsing error in {file_path}: {e}")
    except FileNotFoundError:
        raise CatalogLoadError(f"File not found: {file_path}")
    except OSError as e:
        raise CatalogLoadError(f"Error loading {file_path}: {e}")

    if not data:
        raise CatalogLoadError(f"Empty YAML file: {file_path}")

    if not isinstance(data, dict):
        raise CatalogLoadError(f"Top level must be a mapping in {file_path}")

    if key not in data:
        raise CatalogLoadError(f"Missing '{key}' key in {file_path}")

    entries = data[key]
    if not isinstance(entries, list):
        raise CatalogLoadError(f"'{key}' must be a list in {file_path}")

    return entries


def create_definitions(
    model: type[BaseModel], entries: list[dict[str, Any]], file_path: Path
) -> list[Any]:
    """
    Validate raw dictionaries into definition models.

    Raises:
        CatalogValidationError: If an entry fails validation or an id repeats
    """
    definitions = []
    seen: set[str] = set()

    for entry in entries:
        if not isinstance(entry, dict):
            raise CatalogValidationError(f"Non-mapping entry in {file_path}: {entry!r}")
        try:
            definition = model.model_validate(entry)
        except ValidationError as e:
            raise CatalogValidationError(
                f"Invalid definition '{entry.get('id', 'unknown')}' in {file_path}: {e}"
            )

        if definition.id in seen:
            raise CatalogValidationError(f"Duplicate id '{definition.id}' found in {file_path}")
        seen.add(definition.id)
        definitions.append(definition)

    return definitions


def load_labels(directory: Path) -> LabelSet:
    """Load ``labels.yaml`` if present, otherwise return the English defaults."""
    file_path = directory / "labels.yaml"
    if not file_path.exists():
        return LabelSet()

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"YAML parsing error in {file_path}: {e}")
    except OSError as e:
        raise CatalogLoadError(f"Error loading {file_path}: {e}")

    if not isinstance(data, dict):
        raise CatalogLoadError(f"Top level must be a mapping in {file_path}")

    try:
        return LabelSet.model_validate(data.get("labels", {}))
    except ValidationError as e:
        raise CatalogValidationError(f"Invalid labels in {file_path}: {e}")


def validate_references(catalog: Catalog, *, strict_condition_keys: bool = True) -> list[str]:
    """
    Check cross references between definitions.

    Args:
        catalog: The freshly built catalog
        strict_condition_keys: Raise instead of warn on unregistered condition keys

    Returns:
        List of warning messages (non-critical issues)

    Raises:
        CatalogValidationError: On unregistered condition keys in strict mode
    """
    warnings: list[str] = []

    for feat in catalog.feats.values():
        for effect in feat.effects:
            if effect.is_conditional and effect.condition not in catalog.conditions:
                message = f"Feat '{feat.id}' uses unregistered condition key '{effect.condition}'"
                if strict_condition_keys:
                    raise CatalogValidationError(message)
                warnings.append(message)
        for clause in feat.prerequisites:
            if clause.type == "feat" and clause.feat_id not in catalog.feats:
                warnings.append(f"Feat '{feat.id}' requires unknown feat '{clause.feat_id}'")
            elif clause.type == "skill" and clause.skill_id not in catalog.skills:
                warnings.append(f"Feat '{feat.id}' requires unknown skill '{clause.skill_id}'")

    for skill in catalog.skills.values():
        for rule in skill.synergies:
            if rule.target_skill_id not in catalog.skills:
                warnings.append(
                    f"Skill '{skill.id}' grants synergy to unknown skill '{rule.target_skill_id}'"
                )

    for source in [*catalog.races.values(), *catalog.classes.values()]:
        for granted in source.granted_feats:
            if granted.feat_id not in catalog.feats:
                warnings.append(f"'{source.id}' grants unknown feat '{granted.feat_id}'")

    for race in catalog.races.values():
        if race.size not in catalog.sizes:
            warnings.append(f"Race '{race.id}' has unknown size '{race.size}'")
        if race.aging_pattern and race.aging_pattern not in catalog.aging_patterns:
            warnings.append(f"Race '{race.id}' has unknown aging pattern '{race.aging_pattern}'")

    return warnings


def load_catalog(
    directory: Path | None = None, *, strict_condition_keys: bool | None = None
) -> Catalog:
    """
    Load every rules file from a directory into a Catalog.

    Args:
        directory: Rules directory (defaults to the configured ``rules_dir``)
        strict_condition_keys: Override the configured condition-key policy

    Returns:
        The loaded Catalog

    Raises:
        CatalogLoadError: If the directory or a file can't be loaded
        CatalogValidationError: If a definition or reference is invalid
    """
    settings = get_settings()
    directory = Path(directory) if directory is not None else settings.rules_dir
    if strict_condition_keys is None:
        strict_condition_keys = settings.strict_condition_keys

    if not directory.is_dir():
        raise CatalogLoadError(f"Directory does not exist: {directory}")

    loaded: dict[str, list[Any]] = {}
    for file_name, (key, model) in CATALOG_FILES.items():
        file_path = directory / file_name
        loaded[key] = create_definitions(model, load_yaml_file(file_path, key), file_path)

    catalog = Catalog.from_definitions(**loaded, labels=load_labels(directory))

    for warning in validate_references(catalog, strict_condition_keys=strict_condition_keys):
        logger.warning("catalog_reference_warning", message=warning)

    logger.info(
        "catalog_loaded",
        directory=str(directory),
        races=len(catalog.races),
        classes=len(catalog.classes),
        skills=len(catalog.skills),
        feats=len(catalog.feats),
    )
    return catalog
