"""
Inference Rule Definitions.

Provides the rule abstraction and the built-in structural rules:
- Rule: capability interface (name, apply, explain)
- Derivation: an inferred triple plus the facts it came from
- TransitivityRule: closure of transitive predicates
- SymmetricPropertyRule: (s p o) => (o p s)
- SubClassRule: type membership through subClassOf
- SubPropertyRule: facts through subPropertyOf
- InversePropertyRule: declared inverse pairs

Rules are stateless and deterministic: output depends only on the input
sequences and their order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from legalis_reasoner.models import (
    OWL_SAME_AS,
    RDF_TYPE,
    RDFS_SUBCLASS_OF,
    RDFS_SUBPROPERTY_OF,
    RdfValue,
    Triple,
    TripleKey,
)
from legalis_reasoner.inference.explanation import Explanation
from legalis_reasoner.inference.facts import FactFrame, adjacency, reachable


class RuleApplicationError(Exception):
    """Raised by a rule that cannot evaluate its input."""

    def __init__(self, rule_name: str, cause: str):
        self.rule_name = rule_name
        self.cause = cause
        super().__init__(f"Rule '{rule_name}' failed: {cause}")


@dataclass(frozen=True)
class Derivation:
    """A candidate triple and the source facts it was derived from."""
    triple: Triple
    sources: Tuple[Triple, ...] = ()


class Rule(ABC):
    """
    Base class for inference rules.

    Subclasses implement apply(). Rules that can say which facts each
    candidate came from override derive() instead; the engine calls
    derive() and records the sources as provenance.
    """

    name: str = "rule"
    description: str = ""

    @abstractmethod
    def apply(
        self,
        base: Sequence[Triple],
        inferred_so_far: Sequence[Triple],
    ) -> List[Triple]:
        """Return candidate triples derivable from base ++ inferred_so_far."""

    def derive(
        self,
        base: Sequence[Triple],
        inferred_so_far: Sequence[Triple],
    ) -> List[Derivation]:
        return [Derivation(t) for t in self.apply(base, inferred_so_far)]

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        """Could this rule have derived a triple shaped like this one?"""
        return None

    def _explanation(self, sources: Iterable[Triple] = ()) -> Explanation:
        return Explanation(
            rule_name=self.name,
            description=self.description,
            source_triples=[t.n3() for t in sources],
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DerivingRule(Rule):
    """
    Rule that records source facts for every candidate.

    A subclass that overrides apply() gets that override honoured: derive()
    then wraps apply() like any plain Rule, and its candidates carry no
    sources.
    """

    def apply(
        self,
        base: Sequence[Triple],
        inferred_so_far: Sequence[Triple],
    ) -> List[Triple]:
        return [d.triple for d in self._collect(base, inferred_so_far)]

    def derive(
        self,
        base: Sequence[Triple],
        inferred_so_far: Sequence[Triple],
    ) -> List[Derivation]:
        if type(self).apply is not DerivingRule.apply:
            return super().derive(base, inferred_so_far)
        return self._collect(base, inferred_so_far)

    def _collect(
        self,
        base: Sequence[Triple],
        inferred_so_far: Sequence[Triple],
    ) -> List[Derivation]:
        facts = FactFrame(base, inferred_so_far)
        existing: Set[TripleKey] = {t.key() for t in facts.triples}
        derivations: List[Derivation] = []
        for derivation in self._derive(facts):
            key = derivation.triple.key()
            if key not in existing:
                existing.add(key)
                derivations.append(derivation)
        return derivations

    @abstractmethod
    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        """Yield candidates; duplicates are filtered by derive()."""


# =============================================================================
# Helpers
# =============================================================================

def edge_index(facts: FactFrame, predicate: str) -> Dict[Tuple[str, str], Triple]:
    """Map (subject, object) -> first triple asserting that edge."""
    index: Dict[Tuple[str, str], Triple] = {}
    for t in facts.with_predicate(predicate):
        if t.object.is_resource:
            index.setdefault((t.subject, t.object.as_subject()), t)
    return index


def path_to(
    root: str,
    node: str,
    parents: Dict[str, str],
    edges: Dict[Tuple[str, str], Triple],
) -> List[Triple]:
    """Edges from root to node following the DFS parent map."""
    path = []
    current = node
    while current != root:
        parent = parents[current]
        path.append(edges[(parent, current)])
        current = parent
    path.reverse()
    return path


def closure_from(
    root: str,
    graph: Dict[str, List[str]],
    edges: Dict[Tuple[str, str], Triple],
) -> List[Tuple[str, List[Triple]]]:
    """Every node reachable from root with the edge path leading to it."""
    parents: Dict[str, str] = {}
    result = []
    for node, parent in reachable(graph, root):
        parents[node] = parent
        result.append((node, path_to(root, node, parents, edges)))
    return result


def find_path(
    graph: Dict[str, List[str]],
    edges: Dict[Tuple[str, str], Triple],
    start: str,
    goal: str,
) -> Optional[List[Triple]]:
    for node, path in closure_from(start, graph, edges):
        if node == goal:
            return path
    return None


# =============================================================================
# Structural Rules
# =============================================================================

class ClosureMode(str, Enum):
    """How much of a transitive closure one round computes."""
    DEPTH_FIRST = "depth_first"  # Full closure per round
    SINGLE_HOP = "single_hop"    # One composition step per round


class TransitivityRule(DerivingRule):
    """
    Transitive closure: (a p b) + (b p c) => (a p c) for each configured p.

    In DEPTH_FIRST mode every node runs a depth-first traversal with its
    own visited set, so cyclic graphs terminate within one call and no
    self-loops are produced. Cost is O(V * (V + E)) per predicate.
    """

    name = "transitivity"
    description = "Transitive closure of a transitive predicate"

    def __init__(
        self,
        predicates: Sequence[str] = (RDFS_SUBCLASS_OF, RDFS_SUBPROPERTY_OF),
        mode: ClosureMode = ClosureMode.DEPTH_FIRST,
    ):
        self.predicates: Tuple[str, ...] = tuple(predicates)
        self.mode = ClosureMode(mode)

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        for predicate in self.predicates:
            edges = edge_index(facts, predicate)
            if not edges:
                continue
            graph = adjacency(list(edges))
            if self.mode == ClosureMode.SINGLE_HOP:
                yield from self._single_hop(predicate, graph, edges)
            else:
                yield from self._depth_first(predicate, graph, edges)

    def _depth_first(self, predicate, graph, edges) -> Iterable[Derivation]:
        for root in graph:
            for node, path in closure_from(root, graph, edges):
                if len(path) < 2:
                    continue
                yield Derivation(
                    Triple(root, predicate, RdfValue.from_subject(node)),
                    tuple(path),
                )

    def _single_hop(self, predicate, graph, edges) -> Iterable[Derivation]:
        for (a, b), first in edges.items():
            for c in graph.get(b, []):
                if c == a:
                    continue
                yield Derivation(
                    Triple(a, predicate, RdfValue.from_subject(c)),
                    (first, edges[(b, c)]),
                )

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        if triple.predicate not in self.predicates or not triple.object.is_resource:
            return None
        goal = triple.object.as_subject()
        if goal == triple.subject:
            return None
        facts = FactFrame(base)
        edges = edge_index(facts, triple.predicate)
        path = find_path(adjacency(list(edges)), edges, triple.subject, goal) or []
        return self._explanation(path if len(path) > 1 else [])


class SymmetricPropertyRule(DerivingRule):
    """Symmetric predicates: (s p o) => (o p s)."""

    name = "symmetric-property"
    description = "Symmetric property: the reversed statement also holds"

    def __init__(self, predicates: Sequence[str] = (OWL_SAME_AS,)):
        self.predicates: Tuple[str, ...] = tuple(predicates)

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        for t in facts.with_predicates(self.predicates):
            # Literals cannot become subjects
            if not t.object.is_resource:
                continue
            yield Derivation(
                Triple(t.object.as_subject(), t.predicate, RdfValue.from_subject(t.subject)),
                (t,),
            )

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        if triple.predicate not in self.predicates or not triple.object.is_resource:
            return None
        reverse = Triple(
            triple.object.as_subject(),
            triple.predicate,
            RdfValue.from_subject(triple.subject),
        )
        key = reverse.key()
        return self._explanation([t for t in base if t.key() == key][:1])


class SubClassRule(DerivingRule):
    """
    Type inheritance: (x rdf:type C1) + (C1 subClassOf* C2) => (x rdf:type C2).

    The superclass walk is transitive and cycle safe.
    """

    name = "subclass"
    description = "Type inheritance via subClassOf"

    def __init__(self, type_predicate: str = RDF_TYPE, subclass_predicate: str = RDFS_SUBCLASS_OF):
        self.type_predicate = type_predicate
        self.subclass_predicate = subclass_predicate

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        edges = edge_index(facts, self.subclass_predicate)
        if not edges:
            return
        graph = adjacency(list(edges))
        closures: Dict[str, List[Tuple[str, List[Triple]]]] = {}
        for t in facts.with_predicate(self.type_predicate):
            if not t.object.is_uri:
                continue
            cls = t.object.value
            if cls not in closures:
                closures[cls] = closure_from(cls, graph, edges)
            for superclass, path in closures[cls]:
                yield Derivation(
                    Triple(t.subject, self.type_predicate, RdfValue.from_subject(superclass)),
                    (t, *path),
                )

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        if triple.predicate != self.type_predicate or not triple.object.is_uri:
            return None
        facts = FactFrame(base)
        edges = edge_index(facts, self.subclass_predicate)
        graph = adjacency(list(edges))
        for s, cls in facts.pairs(self.type_predicate):
            if s != triple.subject or not cls.is_uri or cls == triple.object:
                continue
            path = find_path(graph, edges, cls.value, triple.object.value)
            if path:
                return self._explanation([Triple(s, self.type_predicate, cls), *path])
        return self._explanation()


class SubPropertyRule(DerivingRule):
    """Property inheritance: (s p1 o) + (p1 subPropertyOf* p2) => (s p2 o)."""

    name = "subproperty"
    description = "Property inheritance via subPropertyOf"

    def __init__(self, subproperty_predicate: str = RDFS_SUBPROPERTY_OF):
        self.subproperty_predicate = subproperty_predicate

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        edges = edge_index(facts, self.subproperty_predicate)
        if not edges:
            return
        graph = adjacency(list(edges))
        closures: Dict[str, List[Tuple[str, List[Triple]]]] = {}
        for t in facts.with_predicates(list(graph)):
            if t.predicate not in closures:
                closures[t.predicate] = closure_from(t.predicate, graph, edges)
            for superproperty, path in closures[t.predicate]:
                if superproperty.startswith("_:"):
                    continue
                yield Derivation(Triple(t.subject, superproperty, t.object), (t, *path))

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        facts = FactFrame(base)
        edges = edge_index(facts, self.subproperty_predicate)
        graph = adjacency(list(edges))
        subproperties = [p for p in graph if find_path(graph, edges, p, triple.predicate)]
        if not subproperties:
            return None
        for p in subproperties:
            for t in facts.find(subject=triple.subject, predicate=p):
                if t.object == triple.object:
                    return self._explanation([t, *find_path(graph, edges, p, triple.predicate)])
        return self._explanation()


class InversePropertyRule(DerivingRule):
    """
    Declared inverses: (s p o) => (o q s) and (s q o) => (o p s) for each (p, q).

    Declarations come from configuration, not from owl:inverseOf facts in
    the data. Without declarations the rule produces nothing.
    """

    name = "inverse-property"
    description = "Inverse property: the reversed statement holds for the inverse predicate"

    def __init__(self, inverse_pairs: Sequence[Tuple[str, str]] = ()):
        self.inverse_pairs: Tuple[Tuple[str, str], ...] = tuple(
            (p, q) for p, q in inverse_pairs
        )
        self._inverses: Dict[str, List[str]] = {}
        for p, q in self.inverse_pairs:
            self._inverses.setdefault(p, [])
            if q not in self._inverses[p]:
                self._inverses[p].append(q)
            self._inverses.setdefault(q, [])
            if p not in self._inverses[q]:
                self._inverses[q].append(p)

    def _derive(self, facts: FactFrame) -> Iterable[Derivation]:
        if not self._inverses:
            return
        for t in facts.with_predicates(list(self._inverses)):
            if not t.object.is_resource:
                continue
            for q in self._inverses[t.predicate]:
                yield Derivation(
                    Triple(t.object.as_subject(), q, RdfValue.from_subject(t.subject)),
                    (t,),
                )

    def explain(self, triple: Triple, base: Sequence[Triple]) -> Optional[Explanation]:
        if triple.predicate not in self._inverses or not triple.object.is_resource:
            return None
        candidates = {
            Triple(triple.object.as_subject(), p, RdfValue.from_subject(triple.subject)).key()
            for p in self._inverses[triple.predicate]
        }
        return self._explanation([t for t in base if t.key() in candidates][:1])
