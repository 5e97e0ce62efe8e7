"""
Inference Explanation and Justification Service.

Explains why a fact is present in a reasoning result:
- Is it asserted or inferred?
- Which rule produced it?
- What facts did it derive from?
- What is its proof tree?

Two levels of precision are available. Provenance recorded by the engine
at apply time gives the exact rule and source facts for each inferred
triple. Rules that do not record provenance fall back to a coarse,
shape-based answer: every rule is asked whether it could have produced a
triple shaped like the one in question.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from legalis_reasoner.models import Triple, TripleKey

if TYPE_CHECKING:
    from legalis_reasoner.inference.engine import ReasoningEngine, ReasoningResult


class FactOrigin(str, Enum):
    """Origin of a fact in a reasoning result."""
    ASSERTED = "asserted"      # Part of the base set
    INFERRED = "inferred"      # Derived by reasoning
    UNKNOWN = "unknown"        # Not in the result at all


@dataclass
class Explanation:
    """
    Justification of a triple by one rule.

    source_triples holds N-Triples renderings of the supporting facts, in
    the order the rule consumed them.
    """
    rule_name: str
    description: str
    source_triples: List[str] = field(default_factory=list)
    exact: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_name": self.rule_name,
            "description": self.description,
            "source_triples": list(self.source_triples),
            "exact": self.exact,
        }


@dataclass(frozen=True)
class ProvenanceRecord:
    """Which rule produced a triple, from which facts, in which round."""
    triple: Triple
    rule_name: str
    sources: Tuple[Triple, ...] = ()
    iteration: int = 0

    def to_explanation(self, description: str = "") -> Explanation:
        return Explanation(
            rule_name=self.rule_name,
            description=description,
            source_triples=[t.n3() for t in self.sources],
            exact=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triple": self.triple.to_dict(),
            "rule_name": self.rule_name,
            "sources": [t.to_dict() for t in self.sources],
            "iteration": self.iteration,
        }


@dataclass
class ProofNode:
    """
    A node in a proof tree.

    Represents one step in the derivation of a fact.
    """
    triple: Triple
    origin: FactOrigin
    rule_name: Optional[str] = None
    iteration: Optional[int] = None
    children: List["ProofNode"] = field(default_factory=list)

    def depth(self) -> int:
        if not self.children:
            return 0
        return 1 + max(c.depth() for c in self.children)

    def leaves(self) -> List[Triple]:
        """Facts at the bottom of the tree, left to right."""
        if not self.children:
            return [self.triple]
        result: List[Triple] = []
        for child in self.children:
            result.extend(child.leaves())
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "triple": self.triple.to_dict(),
            "origin": self.origin.value,
            "rule_name": self.rule_name,
            "iteration": self.iteration,
            "children": [c.to_dict() for c in self.children],
        }


def explain_with_rules(
    rules: Sequence[Any],
    triple: Triple,
    original_triples: Sequence[Triple],
) -> List[Explanation]:
    """Ask every rule, in order, whether it could have derived the triple."""
    explanations = []
    for rule in rules:
        explanation = rule.explain(triple, original_triples)
        if explanation is not None:
            explanations.append(explanation)
    return explanations


class ExplanationService:
    """
    Explains facts of a ReasoningResult.

    Uses exact provenance where the engine recorded it and the engine's
    coarse rule-shape explanations otherwise.
    """

    def __init__(self, engine: "ReasoningEngine", result: "ReasoningResult"):
        self._engine = engine
        self._result = result
        self._base_keys: Set[TripleKey] = {t.key() for t in result.base}
        self._inferred_keys: Set[TripleKey] = {t.key() for t in result.inferred}

    def origin(self, triple: Triple) -> FactOrigin:
        key = triple.key()
        if key in self._base_keys:
            return FactOrigin.ASSERTED
        if key in self._inferred_keys:
            return FactOrigin.INFERRED
        return FactOrigin.UNKNOWN

    def explain(self, triple: Triple) -> List[Explanation]:
        """
        Explain a triple.

        Asserted facts have no explanation. Inferred facts with recorded
        provenance get a single exact explanation; otherwise every rule
        that could have produced the triple contributes one.
        """
        if self.origin(triple) == FactOrigin.ASSERTED:
            return []
        record = self._result.provenance_for(triple)
        if record is not None and record.sources:
            return [record.to_explanation(self._describe(record.rule_name))]

        # Rules that only implement apply() record no sources
        explanations = self._engine.explain(triple, self._result.base)
        if not explanations and record is not None:
            explanations = [record.to_explanation(self._describe(record.rule_name))]
        return explanations

    def _describe(self, rule_name: str) -> str:
        rule = self._engine.get_rule(rule_name)
        return rule.description if rule is not None else ""

    def proof_tree(self, triple: Triple, max_depth: int = 10) -> ProofNode:
        """Build a proof tree down to asserted facts."""
        return self._build_proof_tree(triple, max_depth, path=frozenset())

    def _build_proof_tree(
        self,
        triple: Triple,
        max_depth: int,
        path: FrozenSet[TripleKey],
    ) -> ProofNode:
        origin = self.origin(triple)
        record = self._result.provenance_for(triple) if origin == FactOrigin.INFERRED else None

        node = ProofNode(
            triple=triple,
            origin=origin,
            rule_name=record.rule_name if record else None,
            iteration=record.iteration if record else None,
        )

        # Don't recurse if at max depth or if asserted
        if record is None or max_depth <= 0:
            return node

        # path holds the ancestors of this node only; a fact shared by two
        # branches is expanded under each of them
        key = triple.key()
        if key in path:
            return node
        path = path | {key}
        for source in record.sources:
            if source.key() in path:
                continue
            node.children.append(self._build_proof_tree(source, max_depth - 1, path))

        return node

    def inferences_by_rule(self, rule_name: str) -> List[Triple]:
        """All inferred triples first produced by a specific rule."""
        return [
            t
            for t in self._result.inferred
            if (rec := self._result.provenance_for(t)) is not None and rec.rule_name == rule_name
        ]

    def get_all_inferred_facts(self) -> List[Dict[str, Any]]:
        """Inferred facts with their producing rule and round."""
        results = []
        for t in self._result.inferred:
            record = self._result.provenance_for(t)
            results.append({
                "subject": t.subject,
                "predicate": t.predicate,
                "object": t.object.n3(),
                "rule_name": record.rule_name if record else None,
                "iteration": record.iteration if record else None,
            })
        return results
