"""Character snapshot models and feat list editing."""

from .edits import ConstraintViolation, FeatEditResult
from .feats import (
    FeatSlotSummary,
    add_feat,
    get_granted_feats,
    reconcile_granted_feats,
    remove_feat,
    resolve_feat_slots,
    update_specialization,
)
from .models import (
    AbilityScores,
    Character,
    CharacterClassLevel,
    CharacterFeatInstance,
    CustomSynergyRule,
    DamageReductionInstance,
    FavoredEnemyChoice,
    ResistanceValue,
    SkillInstance,
    TemporaryAbilityModifiers,
)

__all__ = [
    "AbilityScores",
    "Character",
    "CharacterClassLevel",
    "CharacterFeatInstance",
    "CustomSynergyRule",
    "DamageReductionInstance",
    "FavoredEnemyChoice",
    "ResistanceValue",
    "SkillInstance",
    "TemporaryAbilityModifiers",
    "ConstraintViolation",
    "FeatEditResult",
    "FeatSlotSummary",
    "add_feat",
    "remove_feat",
    "update_specialization",
    "get_granted_feats",
    "reconcile_granted_feats",
    "resolve_feat_slots",
]
