"""
Legal domain inference rules.

- ImplicationRule: one predicate implies another, e.g. replaces => supersedes
- CompositionRule: (a r1 b) + (b r2 c) => (a r3 c) for declared chains
- LegalInheritanceRule: an instrument that references another inherits its
  jurisdiction unless it declares one itself.
- TemporalReasoningRule, JurisdictionInheritanceRule: registered extension
  points that currently derive nothing.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from legalis_reasoner.models import (
    ELI_JURISDICTION,
    LEGALIS_DEPENDS_ON,
    LEGALIS_PART_OF,
    LEGALIS_REFERENCES,
    LEGALIS_REPLACES,
    LEGALIS_SUPERSEDES,
    Triple,
)
from legalis_reasoner.inference.explanation import Explanation
from legalis_reasoner.inference.facts import FactFrame
from legalis_reasoner.inference.rules import Derivation, DerivingRule, Rule


class LegalInheritanceRule(DerivingRule):
    """
    (a references b) + (b jurisdiction J) => (a jurisdiction J).

    Only fires when a has no explicit jurisdiction in the base facts; an
    explicit value is never overridden. Jurisdictions of b are read from
    base and earlier inferences, so defaults flow down chains of
    references over successive rounds.
    """

    name = "legal-inheritance"
    description = "Jurisdiction inherited from a referenced instrument"

    def __init__(
        self,
        references: str = LEGALIS_REFERENCES,
        jurisdiction: str = ELI_JURISDICTION,
    ):
        self.references = references
        self.jurisdiction = jurisdiction

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        explicit: Set[str] = set(facts.subjects_with(self.jurisdiction, base_only=True))
        by_subject = {}
        for t in facts.with_predicate(self.jurisdiction):
            by_subject.setdefault(t.subject, []).append(t)

        for ref in facts.with_predicate(self.references):
            a = ref.subject
            if a in explicit or not ref.object.is_resource:
                continue
            for source in by_subject.get(ref.object.as_subject(), []):
                yield Derivation(Triple(a, self.jurisdiction, source.object), (ref, source))

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        if triple.predicate != self.jurisdiction:
            return None
        facts = FactFrame(base)
        if triple.subject in facts.subjects_with(self.jurisdiction):
            # Explicit values are never inherited
            return None
        for ref in facts.find(subject=triple.subject, predicate=self.references):
            if not ref.object.is_resource:
                continue
            for value in facts.values_for(ref.object.as_subject(), self.jurisdiction):
                if value == triple.object:
                    source = Triple(ref.object.as_subject(), self.jurisdiction, value)
                    return self._explanation([ref, source])
        return self._explanation()


DEFAULT_IMPLICATIONS: Tuple[Tuple[str, str], ...] = (
    (LEGALIS_REPLACES, LEGALIS_SUPERSEDES),
)

DEFAULT_COMPOSITIONS: Tuple[Tuple[str, str, str], ...] = (
    (LEGALIS_DEPENDS_ON, LEGALIS_PART_OF, LEGALIS_DEPENDS_ON),
)


class ImplicationRule(DerivingRule):
    """
    (s p o) => (s q o) for each declared implication (p, q).

    The default declares that an instrument replacing another also
    supersedes it.
    """

    name = "implication"
    description = "Predicate implication: a statement implies the same statement with another predicate"

    def __init__(self, implications: Sequence[Tuple[str, str]] = DEFAULT_IMPLICATIONS):
        self.implications: Tuple[Tuple[str, str], ...] = tuple(
            (p, q) for p, q in implications
        )
        self._consequents: Dict[str, List[str]] = {}
        for p, q in self.implications:
            targets = self._consequents.setdefault(p, [])
            if q not in targets:
                targets.append(q)

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        if not self._consequents:
            return
        for t in facts.with_predicates(list(self._consequents)):
            for q in self._consequents[t.predicate]:
                yield Derivation(Triple(t.subject, q, t.object), (t,))

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        antecedents = [p for p, q in self.implications if q == triple.predicate]
        if not antecedents:
            return None
        for p in antecedents:
            source = Triple(triple.subject, p, triple.object)
            if any(t.key() == source.key() for t in base):
                return self._explanation([source])
        return self._explanation()


class CompositionRule(DerivingRule):
    """
    (a r1 b) + (b r2 c) => (a r3 c) for each declared chain (r1, r2, r3).

    The middle term must be a resource. When r3 equals r1 the result feeds
    the next round, so a dependency on a part also reaches the enclosing
    wholes. A chain that would relate a subject to itself is skipped.
    """

    name = "composition"
    description = "Property chain: two linked statements imply a third"

    def __init__(self, compositions: Sequence[Tuple[str, str, str]] = DEFAULT_COMPOSITIONS):
        self.compositions: Tuple[Tuple[str, str, str], ...] = tuple(
            (r1, r2, r3) for r1, r2, r3 in compositions
        )

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        for r1, r2, r3 in self.compositions:
            second: Dict[str, List[Triple]] = {}
            for t in facts.with_predicate(r2):
                second.setdefault(t.subject, []).append(t)
            for first in facts.with_predicate(r1):
                if not first.object.is_resource:
                    continue
                for link in second.get(first.object.as_subject(), []):
                    if link.object.is_resource and link.object.as_subject() == first.subject:
                        continue
                    yield Derivation(Triple(first.subject, r3, link.object), (first, link))

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        chains = [(r1, r2) for r1, r2, r3 in self.compositions if r3 == triple.predicate]
        if not chains:
            return None
        facts = FactFrame(base)
        for r1, r2 in chains:
            for first in facts.find(subject=triple.subject, predicate=r1):
                if not first.object.is_resource:
                    continue
                middle = first.object.as_subject()
                if triple.object in facts.values_for(middle, r2):
                    return self._explanation([first, Triple(middle, r2, triple.object)])
        return self._explanation()


class TemporalReasoningRule(Rule):
    """
    Extension point for validity-period reasoning.

    Kept in the rule chain so that the fixed-point check stays correct once
    it starts deriving facts.
    """

    name = "temporal-reasoning"
    description = "Temporal validity reasoning (extension point)"

    def apply(self, base: Sequence[Triple], inferred_so_far: Sequence[Triple]) -> List[Triple]:
        return []


class JurisdictionInheritanceRule(Rule):
    """Extension point for jurisdiction hierarchies (e.g. member state within EU)."""

    name = "jurisdiction-inheritance"
    description = "Jurisdiction hierarchy inheritance (extension point)"

    def apply(self, base: Sequence[Triple], inferred_so_far: Sequence[Triple]) -> List[Triple]:
        return []
