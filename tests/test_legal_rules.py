"""Tests for legal domain rules: implication, composition, jurisdiction inheritance and extension points."""

import pytest

from legalis_reasoner.models import (
    ELI_JURISDICTION,
    LEGALIS_DEPENDS_ON,
    LEGALIS_PART_OF,
    LEGALIS_REFERENCES,
    LEGALIS_REPLACES,
    LEGALIS_SUPERSEDES,
    RdfValue,
    Triple,
)
from legalis_reasoner.inference.engine import ReasoningEngine
from legalis_reasoner.inference.legal_rules import (
    CompositionRule,
    ImplicationRule,
    JurisdictionInheritanceRule,
    LegalInheritanceRule,
    TemporalReasoningRule,
)


EX = "http://example.org/"


def iri(name: str) -> str:
    return EX + name


def refs(a: str, b: str) -> Triple:
    return Triple.uri(iri(a), LEGALIS_REFERENCES, iri(b))


def jurisdiction(s: str, value: str) -> Triple:
    return Triple.literal(iri(s), ELI_JURISDICTION, value)


def link(a: str, predicate: str, b: str) -> Triple:
    return Triple.uri(iri(a), predicate, iri(b))


@pytest.fixture
def rule():
    return LegalInheritanceRule()


# ========== LegalInheritanceRule Tests ==========

class TestLegalInheritanceRule:
    def test_inherits_from_referenced(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        assert rule.apply(base, []) == [jurisdiction("s1", "EU")]

    def test_sources(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        derivations = rule.derive(base, [])
        assert derivations[0].sources == (base[0], base[1])

    def test_explicit_value_wins(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU"), jurisdiction("s1", "US")]
        assert rule.apply(base, []) == []

    def test_inferred_value_is_not_explicit(self, rule):
        # A jurisdiction derived earlier does not block inheritance from another reference
        base = [refs("s1", "s2"), refs("s1", "s3"), jurisdiction("s2", "EU"), jurisdiction("s3", "DE")]
        inferred = [jurisdiction("s1", "EU")]
        assert rule.apply(base, inferred) == [jurisdiction("s1", "DE")]

    def test_multiple_values(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU"), jurisdiction("s2", "DE")]
        assert rule.apply(base, []) == [jurisdiction("s1", "EU"), jurisdiction("s1", "DE")]

    def test_duplicate_candidates_collapsed(self, rule):
        base = [
            refs("s1", "s2"),
            refs("s1", "s3"),
            jurisdiction("s2", "EU"),
            jurisdiction("s3", "EU"),
        ]
        assert rule.apply(base, []) == [jurisdiction("s1", "EU")]

    def test_reads_inferred_jurisdictions(self, rule):
        base = [refs("s1", "s2"), refs("s2", "s3"), jurisdiction("s3", "EU")]
        assert rule.apply(base, []) == [jurisdiction("s2", "EU")]
        assert rule.apply(base, [jurisdiction("s2", "EU")]) == [jurisdiction("s1", "EU")]

    def test_literal_reference_ignored(self, rule):
        base = [Triple.literal(iri("s1"), LEGALIS_REFERENCES, "s2"), jurisdiction("s2", "EU")]
        assert rule.apply(base, []) == []

    def test_typed_jurisdiction_value_kept(self, rule):
        value = RdfValue.uri("http://publications.europa.eu/resource/authority/country/DEU")
        base = [refs("s1", "s2"), Triple(iri("s2"), ELI_JURISDICTION, value)]
        assert rule.apply(base, []) == [Triple(iri("s1"), ELI_JURISDICTION, value)]

    def test_custom_vocabulary(self):
        cites, applies_in = iri("cites"), iri("appliesIn")
        rule = LegalInheritanceRule(references=cites, jurisdiction=applies_in)
        base = [
            Triple.uri(iri("s1"), cites, iri("s2")),
            Triple.literal(iri("s2"), applies_in, "EU"),
        ]
        assert rule.apply(base, []) == [Triple.literal(iri("s1"), applies_in, "EU")]

    def test_explain(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        explanation = rule.explain(jurisdiction("s1", "EU"), base)
        assert explanation.rule_name == "legal-inheritance"
        assert explanation.source_triples == [base[0].n3(), base[1].n3()]

    def test_explain_explicit_is_none(self, rule):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU"), jurisdiction("s1", "US")]
        assert rule.explain(jurisdiction("s1", "US"), base) is None

    def test_explain_other_predicate(self, rule):
        assert rule.explain(refs("s1", "s2"), []) is None


class TestLegalInheritanceWithEngine:
    def test_scenario_single_reference(self):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        result = ReasoningEngine().run(base)
        assert result.inferred == [jurisdiction("s1", "EU")]
        assert result.converged

    def test_chain_needs_two_rounds(self):
        base = [refs("s1", "s2"), refs("s2", "s3"), jurisdiction("s3", "EU")]
        result = ReasoningEngine(rules=[LegalInheritanceRule()]).run(base)
        assert result.inferred == [jurisdiction("s2", "EU"), jurisdiction("s1", "EU")]
        assert result.provenance_for(jurisdiction("s2", "EU")).iteration == 1
        assert result.provenance_for(jurisdiction("s1", "EU")).iteration == 2
        assert result.stats.iterations == 3
        assert result.converged

    def test_explicit_us_wins(self):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU"), jurisdiction("s1", "US")]
        result = ReasoningEngine().run(base)
        assert jurisdiction("s1", "EU") not in result.inferred
        assert result.inferred == []


# ========== ImplicationRule Tests ==========

class TestImplicationRule:
    def test_replaces_implies_supersedes(self):
        base = [link("act2", LEGALIS_REPLACES, "act1")]
        assert ImplicationRule().apply(base, []) == [link("act2", LEGALIS_SUPERSEDES, "act1")]

    def test_sources(self):
        base = [link("act2", LEGALIS_REPLACES, "act1")]
        assert ImplicationRule().derive(base, [])[0].sources == (base[0],)

    def test_existing_consequent_not_repeated(self):
        base = [link("act2", LEGALIS_REPLACES, "act1"), link("act2", LEGALIS_SUPERSEDES, "act1")]
        assert ImplicationRule().apply(base, []) == []

    def test_literal_object_kept(self):
        base = [Triple.literal(iri("act2"), LEGALIS_REPLACES, "Regulation 1/2003")]
        assert ImplicationRule().apply(base, []) == [
            Triple.literal(iri("act2"), LEGALIS_SUPERSEDES, "Regulation 1/2003")
        ]

    def test_custom_implications(self):
        rule = ImplicationRule([(iri("repeals"), LEGALIS_SUPERSEDES), (iri("repeals"), iri("affects"))])
        base = [link("act2", iri("repeals"), "act1")]
        assert rule.apply(base, []) == [
            link("act2", LEGALIS_SUPERSEDES, "act1"),
            link("act2", iri("affects"), "act1"),
        ]

    def test_no_implications(self):
        assert ImplicationRule([]).apply([link("act2", LEGALIS_REPLACES, "act1")], []) == []

    def test_explain(self):
        base = [link("act2", LEGALIS_REPLACES, "act1")]
        explanation = ImplicationRule().explain(link("act2", LEGALIS_SUPERSEDES, "act1"), base)
        assert explanation.rule_name == "implication"
        assert explanation.source_triples == [base[0].n3()]

    def test_explain_without_antecedent(self):
        explanation = ImplicationRule().explain(link("act2", LEGALIS_SUPERSEDES, "act1"), [])
        assert explanation.source_triples == []

    def test_explain_other_predicate(self):
        assert ImplicationRule().explain(link("act2", LEGALIS_REPLACES, "act1"), []) is None

    def test_default_engine(self):
        result = ReasoningEngine().run([link("act2", LEGALIS_REPLACES, "act1")])
        assert result.inferred == [link("act2", LEGALIS_SUPERSEDES, "act1")]
        assert result.provenance_for(result.inferred[0]).rule_name == "implication"
        assert result.converged


# ========== CompositionRule Tests ==========

class TestCompositionRule:
    def test_dependency_on_part_reaches_whole(self):
        base = [link("app", LEGALIS_DEPENDS_ON, "lib"), link("lib", LEGALIS_PART_OF, "pkg")]
        assert CompositionRule().apply(base, []) == [link("app", LEGALIS_DEPENDS_ON, "pkg")]

    def test_sources(self):
        base = [link("app", LEGALIS_DEPENDS_ON, "lib"), link("lib", LEGALIS_PART_OF, "pkg")]
        assert CompositionRule().derive(base, [])[0].sources == (base[0], base[1])

    def test_self_relation_skipped(self):
        base = [link("a", LEGALIS_DEPENDS_ON, "b"), link("b", LEGALIS_PART_OF, "a")]
        assert CompositionRule().apply(base, []) == []

    def test_literal_middle_ignored(self):
        base = [
            Triple.literal(iri("app"), LEGALIS_DEPENDS_ON, iri("lib")),
            link("lib", LEGALIS_PART_OF, "pkg"),
        ]
        assert CompositionRule().apply(base, []) == []

    def test_existing_result_not_repeated(self):
        base = [
            link("app", LEGALIS_DEPENDS_ON, "lib"),
            link("lib", LEGALIS_PART_OF, "pkg"),
            link("app", LEGALIS_DEPENDS_ON, "pkg"),
        ]
        assert CompositionRule().apply(base, []) == []

    def test_custom_chain(self):
        cites = iri("cites")
        rule = CompositionRule([(cites, LEGALIS_PART_OF, cites)])
        base = [link("s1", cites, "art5"), link("art5", LEGALIS_PART_OF, "act")]
        assert rule.apply(base, []) == [link("s1", cites, "act")]

    def test_chains_over_rounds(self):
        base = [
            link("app", LEGALIS_DEPENDS_ON, "lib"),
            link("lib", LEGALIS_PART_OF, "pkg"),
            link("pkg", LEGALIS_PART_OF, "suite"),
        ]
        result = ReasoningEngine(rules=[CompositionRule()]).run(base)
        assert result.inferred == [
            link("app", LEGALIS_DEPENDS_ON, "pkg"),
            link("app", LEGALIS_DEPENDS_ON, "suite"),
        ]
        assert result.provenance_for(link("app", LEGALIS_DEPENDS_ON, "suite")).iteration == 2
        assert result.converged

    def test_explain(self):
        base = [link("app", LEGALIS_DEPENDS_ON, "lib"), link("lib", LEGALIS_PART_OF, "pkg")]
        explanation = CompositionRule().explain(link("app", LEGALIS_DEPENDS_ON, "pkg"), base)
        assert explanation.rule_name == "composition"
        assert explanation.source_triples == [base[0].n3(), base[1].n3()]

    def test_explain_shape_only(self):
        explanation = CompositionRule().explain(link("app", LEGALIS_DEPENDS_ON, "pkg"), [])
        assert explanation.source_triples == []

    def test_explain_other_predicate(self):
        assert CompositionRule().explain(link("lib", LEGALIS_PART_OF, "pkg"), []) is None


# ========== Extension Point Tests ==========

class TestExtensionPoints:
    @pytest.mark.parametrize("rule_cls", [TemporalReasoningRule, JurisdictionInheritanceRule])
    def test_derive_nothing(self, rule_cls):
        base = [refs("s1", "s2"), jurisdiction("s2", "EU")]
        rule = rule_cls()
        assert rule.apply(base, []) == []
        assert rule.derive(base, []) == []
        assert rule.explain(jurisdiction("s1", "EU"), base) is None

    def test_names(self):
        assert TemporalReasoningRule().name == "temporal-reasoning"
        assert JurisdictionInheritanceRule().name == "jurisdiction-inheritance"
