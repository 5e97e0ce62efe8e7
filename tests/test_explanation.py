"""
Tests for the explanation service.

Covers:
- Fact origin (asserted / inferred / unknown)
- Exact explanations from recorded provenance
- Coarse fallback for rules without provenance
- Proof trees
"""

import pytest

from legalis_reasoner.models import ELI_JURISDICTION, LEGALIS_REFERENCES, RDFS_SUBCLASS_OF, Triple
from legalis_reasoner.inference.engine import ReasoningEngine
from legalis_reasoner.inference.explanation import (
    Explanation,
    ExplanationService,
    FactOrigin,
    ProvenanceRecord,
)
from legalis_reasoner.inference.legal_rules import LegalInheritanceRule
from legalis_reasoner.inference.rules import Derivation, Rule, TransitivityRule


EX = "http://example.org/"


def iri(name: str) -> str:
    return EX + name


def sub(a: str, b: str) -> Triple:
    return Triple.uri(iri(a), RDFS_SUBCLASS_OF, iri(b))


def refs(a: str, b: str) -> Triple:
    return Triple.uri(iri(a), LEGALIS_REFERENCES, iri(b))


def jurisdiction(s: str, value: str) -> Triple:
    return Triple.literal(iri(s), ELI_JURISDICTION, value)


def fact(name: str) -> Triple:
    return Triple.uri(iri(name), iri("holds"), iri("true"))


class StagedRule(Rule):
    """
    Derives one fact per round so that a shared premise appears under two
    branches: p from a, then q from (p, r), then x from (p, q).
    """

    name = "staged"

    STAGES = [
        ("p", ("a",)),
        ("q", ("p", "r")),
        ("x", ("p", "q")),
    ]

    def apply(self, base, inferred_so_far):
        return [d.triple for d in self.derive(base, inferred_so_far)]

    def derive(self, base, inferred_so_far):
        known = {t.key() for t in list(base) + list(inferred_so_far)}
        for target, sources in self.STAGES:
            if fact(target).key() not in known:
                return [Derivation(fact(target), tuple(fact(s) for s in sources))]
        return []


class ReverseSubClassRule(Rule):
    """Apply-only rule: records no sources but can explain by shape."""

    name = "reverse-subclass"
    description = "Reverses subClassOf edges"

    def apply(self, base, inferred_so_far):
        return [
            Triple.uri(t.object.value, iri("superOf"), t.subject)
            for t in base
            if t.predicate == RDFS_SUBCLASS_OF
        ]

    def explain(self, triple, base):
        if triple.predicate != iri("superOf"):
            return None
        return self._explanation()


class SilentRule(Rule):
    """Apply-only rule that cannot explain anything."""

    name = "silent"
    description = "Derives a marker fact"

    def apply(self, base, inferred_so_far):
        return [Triple.literal(iri("marker"), iri("seen"), "yes")]


def service_for(engine, base):
    return ExplanationService(engine, engine.run(base))


# ========== Origin Tests ==========

class TestOrigin:
    def test_origins(self):
        base = [sub("A", "B"), sub("B", "C")]
        service = service_for(ReasoningEngine(), base)
        assert service.origin(sub("A", "B")) == FactOrigin.ASSERTED
        assert service.origin(sub("A", "C")) == FactOrigin.INFERRED
        assert service.origin(sub("C", "A")) == FactOrigin.UNKNOWN


# ========== Explain Tests ==========

class TestExplain:
    def test_asserted_has_no_explanation(self):
        base = [sub("A", "B"), sub("B", "C")]
        service = service_for(ReasoningEngine(), base)
        assert service.explain(sub("A", "B")) == []

    def test_exact_from_provenance(self):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        service = service_for(ReasoningEngine(), base)
        explanations = service.explain(jurisdiction("s1", "EU"))
        assert len(explanations) == 1
        explanation = explanations[0]
        assert explanation.exact
        assert explanation.rule_name == "legal-inheritance"
        assert explanation.description == LegalInheritanceRule.description
        assert explanation.source_triples == [base[0].n3(), base[1].n3()]

    def test_fallback_to_coarse(self):
        engine = ReasoningEngine(rules=[ReverseSubClassRule()])
        service = service_for(engine, [sub("A", "B")])
        explanations = service.explain(Triple.uri(iri("B"), iri("superOf"), iri("A")))
        assert [e.rule_name for e in explanations] == ["reverse-subclass"]
        assert not explanations[0].exact

    def test_fallback_to_record_when_no_rule_explains(self):
        engine = ReasoningEngine(rules=[SilentRule()])
        service = service_for(engine, [])
        explanations = service.explain(Triple.literal(iri("marker"), iri("seen"), "yes"))
        assert len(explanations) == 1
        assert explanations[0].rule_name == "silent"
        assert explanations[0].description == "Derives a marker fact"
        assert explanations[0].source_triples == []

    def test_unknown_triple_uses_coarse(self):
        engine = ReasoningEngine(rules=[TransitivityRule()])
        service = service_for(engine, [sub("A", "B")])
        explanations = service.explain(sub("X", "Y"))
        assert [e.rule_name for e in explanations] == ["transitivity"]

    def test_to_dict(self):
        explanation = Explanation("transitivity", "Transitive closure", ["<a> <p> <b> ."], exact=True)
        assert explanation.to_dict() == {
            "rule_name": "transitivity",
            "description": "Transitive closure",
            "source_triples": ["<a> <p> <b> ."],
            "exact": True,
        }

    def test_provenance_record_to_dict(self):
        record = ProvenanceRecord(sub("A", "C"), "transitivity", (sub("A", "B"), sub("B", "C")), 1)
        data = record.to_dict()
        assert data["rule_name"] == "transitivity"
        assert data["iteration"] == 1
        assert len(data["sources"]) == 2


# ========== Proof Tree Tests ==========

class TestProofTree:
    @pytest.fixture
    def chain_service(self):
        base = [refs("s1", "s2"), refs("s2", "s3"), jurisdiction("s3", "EU")]
        engine = ReasoningEngine(rules=[LegalInheritanceRule()])
        return ExplanationService(engine, engine.run(base)), base

    def test_tree_reaches_asserted_facts(self, chain_service):
        service, base = chain_service
        tree = service.proof_tree(jurisdiction("s1", "EU"))
        assert tree.origin == FactOrigin.INFERRED
        assert tree.rule_name == "legal-inheritance"
        assert tree.iteration == 2
        assert tree.depth() == 2
        assert tree.leaves() == [base[0], base[1], base[2]]

    def test_intermediate_node(self, chain_service):
        service, _ = chain_service
        tree = service.proof_tree(jurisdiction("s1", "EU"))
        middle = tree.children[1]
        assert middle.triple == jurisdiction("s2", "EU")
        assert middle.origin == FactOrigin.INFERRED
        assert middle.iteration == 1

    def test_max_depth(self, chain_service):
        service, base = chain_service
        tree = service.proof_tree(jurisdiction("s1", "EU"), max_depth=1)
        assert tree.depth() == 1
        assert tree.leaves() == [base[0], jurisdiction("s2", "EU")]

    def test_shared_premise_expanded_under_each_branch(self):
        engine = ReasoningEngine(rules=[StagedRule()])
        service = ExplanationService(engine, engine.run([fact("a"), fact("r")]))
        tree = service.proof_tree(fact("x"))
        assert [c.triple for c in tree.children] == [fact("p"), fact("q")]
        second = tree.children[1]
        assert [c.triple for c in second.children] == [fact("p"), fact("r")]
        assert [c.triple for c in second.children[0].children] == [fact("a")]
        assert tree.leaves() == [fact("a"), fact("a"), fact("r")]
        assert tree.depth() == 3

    def test_asserted_is_leaf(self, chain_service):
        service, base = chain_service
        tree = service.proof_tree(base[0])
        assert tree.origin == FactOrigin.ASSERTED
        assert tree.children == []

    def test_to_dict(self, chain_service):
        service, _ = chain_service
        data = service.proof_tree(jurisdiction("s1", "EU")).to_dict()
        assert data["origin"] == "inferred"
        assert len(data["children"]) == 2
        assert data["children"][1]["rule_name"] == "legal-inheritance"


# ========== Listing Tests ==========

class TestListing:
    def test_inferences_by_rule(self):
        base = [sub("A", "B"), sub("B", "C"), refs("s1", "s2"), jurisdiction("s2", "EU")]
        service = service_for(ReasoningEngine(), base)
        assert service.inferences_by_rule("transitivity") == [sub("A", "C")]
        assert service.inferences_by_rule("legal-inheritance") == [jurisdiction("s1", "EU")]
        assert service.inferences_by_rule("subclass") == []

    def test_get_all_inferred_facts(self):
        service = service_for(ReasoningEngine(), [sub("A", "B"), sub("B", "C")])
        assert service.get_all_inferred_facts() == [{
            "subject": iri("A"),
            "predicate": RDFS_SUBCLASS_OF,
            "object": f"<{iri('C')}>",
            "rule_name": "transitivity",
            "iteration": 1,
        }]
