"""Rules catalog - definitions, lookups and YAML loading."""

from .catalog import Catalog
from .definitions import (
    ABILITY_ABBREVIATIONS,
    SAVING_THROW_ABILITIES,
    AbilityName,
    ClassDefinition,
    EffectDetail,
    FeatDefinition,
    LabelSet,
    PrerequisiteClause,
    RaceDefinition,
    SavingThrowType,
    SizeDefinition,
    SkillDefinition,
    SpeedType,
)
from .loader import CatalogLoadError, CatalogValidationError, load_catalog

__all__ = [
    "Catalog",
    "load_catalog",
    "CatalogLoadError",
    "CatalogValidationError",
    "ABILITY_ABBREVIATIONS",
    "SAVING_THROW_ABILITIES",
    "AbilityName",
    "ClassDefinition",
    "EffectDetail",
    "FeatDefinition",
    "LabelSet",
    "PrerequisiteClause",
    "RaceDefinition",
    "SavingThrowType",
    "SizeDefinition",
    "SkillDefinition",
    "SpeedType",
]
