"""Breakdown records: ordered, explainable contributions to a derived number."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BreakdownTerm:
    """A single named contribution."""

    kind: str  # race, aging, size, feat, ranks, synergy, misc...
    source: str  # display label, passed through from the catalog
    value: int
    condition: str | None = None  # condition label when the term is toggle-gated


@dataclass(frozen=True)
class Breakdown:
    """A derived number with the ordered terms that produced it.

    ``total`` is always ``base + sum(term.value for term in terms)``.
    """

    label: str
    base: int
    terms: tuple[BreakdownTerm, ...] = ()
    anomalies: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.base + sum(term.value for term in self.terms)

    def terms_of(self, kind: str) -> list[BreakdownTerm]:
        return [term for term in self.terms if term.kind == kind]

    def sum_of(self, kind: str) -> int:
        return sum(term.value for term in self.terms if term.kind == kind)


@dataclass
class BreakdownBuilder:
    """Accumulates terms in order, dropping zero-valued ones."""

    label: str
    base: int = 0
    terms: list[BreakdownTerm] = field(default_factory=list)
    anomalies: list[str] = field(default_factory=list)

    def add(self, kind: str, source: str, value: int, condition: str | None = None) -> None:
        if value:
            self.terms.append(BreakdownTerm(kind, source, value, condition))

    def flag(self, anomaly: str) -> None:
        self.anomalies.append(anomaly)

    def build(self, factory: type[Breakdown] = Breakdown, **extra) -> Breakdown:
        """Freeze the accumulated terms into ``factory`` (a Breakdown subclass)."""
        return factory(
            label=self.label,
            base=self.base,
            terms=tuple(self.terms),
            anomalies=tuple(self.anomalies),
            **extra,
        )


def format_modifier(value: int) -> str:
    """Render a modifier with an explicit sign (e.g., "+2", "-1", "+0")."""
    return f"+{value}" if value >= 0 else str(value)
