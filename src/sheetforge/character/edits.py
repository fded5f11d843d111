"""Results of user edits to a character's feat list.

Rejected edits are reported, not raised: the caller keeps the prior state and
shows the violation message to the user.
"""

from dataclasses import dataclass

from .models import CharacterFeatInstance


@dataclass(frozen=True)
class ConstraintViolation:
    """Why an edit was refused."""

    code: str  # duplicate_feat, specialization_required, condition_locked...
    message: str
    subject: str | None = None  # offending definition id, instance id or condition key


@dataclass(frozen=True)
class FeatEditResult:
    """Outcome of an edit: the new feat list, or the old one plus a violation."""

    accepted: bool
    feats: list[CharacterFeatInstance]
    violation: ConstraintViolation | None = None

    @classmethod
    def ok(cls, feats: list[CharacterFeatInstance]) -> "FeatEditResult":
        return cls(True, feats)

    @classmethod
    def reject(
        cls,
        feats: list[CharacterFeatInstance],
        code: str,
        message: str,
        subject: str | None = None,
    ) -> "FeatEditResult":
        return cls(False, list(feats), ConstraintViolation(code, message, subject))
