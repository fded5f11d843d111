"""
Definition catalog for sheetforge.

The catalog is an immutable snapshot of every rules definition. Lookups never
raise: a missing id returns ``None`` and label helpers fall back to the raw id,
since partially-loaded catalogs are an expected transient state.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

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


def _index(definitions: Iterable) -> dict:
    return {definition.id: definition for definition in definitions}


@dataclass(frozen=True)
class Catalog:
    """Read-only rules catalog keyed by definition id."""

    races: dict[str, RaceDefinition] = field(default_factory=dict)
    classes: dict[str, ClassDefinition] = field(default_factory=dict)
    skills: dict[str, SkillDefinition] = field(default_factory=dict)
    feats: dict[str, FeatDefinition] = field(default_factory=dict)
    sizes: dict[str, SizeDefinition] = field(default_factory=dict)
    aging_patterns: dict[str, AgingPattern] = field(default_factory=dict)
    conditions: dict[str, ConditionDefinition] = field(default_factory=dict)
    labels: LabelSet = field(default_factory=LabelSet)

    @classmethod
    def from_definitions(
        cls,
        *,
        races: Iterable[RaceDefinition] = (),
        classes: Iterable[ClassDefinition] = (),
        skills: Iterable[SkillDefinition] = (),
        feats: Iterable[FeatDefinition] = (),
        sizes: Iterable[SizeDefinition] = (),
        aging_patterns: Iterable[AgingPattern] = (),
        conditions: Iterable[ConditionDefinition] = (),
        labels: LabelSet | None = None,
    ) -> "Catalog":
        """Build a catalog from lists of definitions (later ids win)."""
        return cls(
            races=_index(races),
            classes=_index(classes),
            skills=_index(skills),
            feats=_index(feats),
            sizes=_index(sizes),
            aging_patterns=_index(aging_patterns),
            conditions=_index(conditions),
            labels=labels or LabelSet(),
        )

    def race(self, race_id: str | None) -> RaceDefinition | None:
        return self.races.get(race_id) if race_id else None

    def class_definition(self, class_id: str | None) -> ClassDefinition | None:
        return self.classes.get(class_id) if class_id else None

    def skill(self, skill_id: str) -> SkillDefinition | None:
        return self.skills.get(skill_id)

    def feat(self, feat_id: str) -> FeatDefinition | None:
        return self.feats.get(feat_id)

    def size(self, size_id: str | None) -> SizeDefinition | None:
        return self.sizes.get(size_id) if size_id else None

    def aging_pattern(self, pattern_id: str | None) -> AgingPattern | None:
        return self.aging_patterns.get(pattern_id) if pattern_id else None

    def feat_label(self, feat_id: str) -> str:
        """Display label for a feat, or the raw id when it is unknown."""
        definition = self.feats.get(feat_id)
        return definition.label if definition else feat_id

    def skill_label(self, skill_id: str) -> str:
        definition = self.skills.get(skill_id)
        return definition.label if definition else skill_id

    def class_label(self, class_id: str) -> str:
        definition = self.classes.get(class_id)
        return definition.label if definition else class_id

    def condition_label(self, key: str) -> str:
        definition = self.conditions.get(key)
        return definition.label if definition else key

    def find_class(self, name: str) -> ClassDefinition | None:
        """Find a class by id or by label, ignoring case."""
        needle = name.strip().lower()
        for definition in self.classes.values():
            if definition.id.lower() == needle or definition.label.lower() == needle:
                return definition
        return None
