"""
Rule Registry and Inference Profiles.

- InferenceProfile: named sets of rules (RDFS, STRUCTURAL, LEGAL)
- RuleRegistry: rule factories by name, ordered by priority

Registries are plain objects. default_registry() returns a new one each
time, so differently configured engines never share state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from legalis_reasoner.inference.legal_rules import (
    CompositionRule,
    ImplicationRule,
    JurisdictionInheritanceRule,
    LegalInheritanceRule,
    TemporalReasoningRule,
)
from legalis_reasoner.inference.rules import (
    InversePropertyRule,
    Rule,
    SubClassRule,
    SubPropertyRule,
    SymmetricPropertyRule,
    TransitivityRule,
)

if TYPE_CHECKING:
    from legalis_reasoner.config import ReasonerConfig


class InferenceProfile(str, Enum):
    """Standard inference profiles, each including the ones before it."""
    NONE = "none"
    RDFS = "rdfs"
    STRUCTURAL = "structural"
    LEGAL = "legal"


_PROFILE_ORDER = [InferenceProfile.RDFS, InferenceProfile.STRUCTURAL, InferenceProfile.LEGAL]

RuleFactory = Callable[[Optional["ReasonerConfig"]], Rule]


@dataclass
class RuleDefinition:
    """A registered rule: how to build it and where it sits in the chain."""
    name: str
    factory: RuleFactory
    profile: InferenceProfile
    priority: int  # Lower = earlier execution
    description: str = ""


class RuleRegistry:
    """
    Registry of rule factories organized by profile.

    Rules are built fresh from configuration for every engine.
    """

    def __init__(self):
        self._rules: Dict[str, RuleDefinition] = {}

    def register(self, definition: RuleDefinition) -> None:
        """Register a rule, replacing any rule with the same name."""
        self._rules[definition.name] = definition

    def get(self, name: str) -> Optional[RuleDefinition]:
        return self._rules.get(name)

    def list_rules(self) -> List[RuleDefinition]:
        """All registered rules in execution order."""
        return self._sorted(self._rules.values())

    def get_rules_for_profile(
        self,
        profile: InferenceProfile,
        include_lower: bool = True,
    ) -> List[RuleDefinition]:
        """
        Get all rules for a profile.

        Args:
            profile: The target profile
            include_lower: Include rules from lower profiles
                          (e.g., LEGAL includes STRUCTURAL and RDFS)
        """
        if profile == InferenceProfile.NONE:
            return []

        if include_lower:
            wanted = set(_PROFILE_ORDER[: _PROFILE_ORDER.index(profile) + 1])
        else:
            wanted = {profile}

        return self._sorted(d for d in self._rules.values() if d.profile in wanted)

    def build(
        self,
        profile: InferenceProfile = InferenceProfile.LEGAL,
        config: Optional["ReasonerConfig"] = None,
    ) -> List[Rule]:
        return [d.factory(config) for d in self.get_rules_for_profile(profile)]

    def build_named(
        self,
        names: Sequence[str],
        config: Optional["ReasonerConfig"] = None,
    ) -> List[Rule]:
        """Build rules in exactly the given order."""
        rules = []
        for name in names:
            definition = self._rules.get(name)
            if definition is None:
                raise KeyError(f"Unknown rule: {name}")
            rules.append(definition.factory(config))
        return rules

    @staticmethod
    def _sorted(definitions) -> List[RuleDefinition]:
        # sorted() is stable, so equal priorities keep registration order
        return sorted(definitions, key=lambda d: d.priority)


# =============================================================================
# Built-in Rule Factories
# =============================================================================

def _transitivity(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return TransitivityRule()
    return TransitivityRule(config.transitive_predicates, config.closure_mode)


def _symmetric(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return SymmetricPropertyRule()
    return SymmetricPropertyRule(config.symmetric_predicates)


def _subclass(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return SubClassRule()
    return SubClassRule(config.vocabulary.rdf_type, config.vocabulary.subclass_of)


def _subproperty(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return SubPropertyRule()
    return SubPropertyRule(config.vocabulary.subproperty_of)


def _inverse(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return InversePropertyRule()
    return InversePropertyRule(config.inverse_properties)


def _implication(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return ImplicationRule()
    return ImplicationRule(config.implications)


def _composition(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return CompositionRule()
    return CompositionRule(config.compositions)


def _legal_inheritance(config: Optional["ReasonerConfig"]) -> Rule:
    if config is None:
        return LegalInheritanceRule()
    return LegalInheritanceRule(config.vocabulary.references, config.vocabulary.jurisdiction)


BUILTIN_RULES = [
    RuleDefinition("transitivity", _transitivity, InferenceProfile.RDFS, 10,
                   TransitivityRule.description),
    RuleDefinition("symmetric-property", _symmetric, InferenceProfile.STRUCTURAL, 20,
                   SymmetricPropertyRule.description),
    RuleDefinition("subclass", _subclass, InferenceProfile.RDFS, 30,
                   SubClassRule.description),
    RuleDefinition("subproperty", _subproperty, InferenceProfile.RDFS, 40,
                   SubPropertyRule.description),
    RuleDefinition("inverse-property", _inverse, InferenceProfile.STRUCTURAL, 50,
                   InversePropertyRule.description),
    RuleDefinition("implication", _implication, InferenceProfile.LEGAL, 52,
                   ImplicationRule.description),
    RuleDefinition("composition", _composition, InferenceProfile.LEGAL, 54,
                   CompositionRule.description),
    RuleDefinition("legal-inheritance", _legal_inheritance, InferenceProfile.LEGAL, 60,
                   LegalInheritanceRule.description),
    RuleDefinition("temporal-reasoning", lambda config: TemporalReasoningRule(),
                   InferenceProfile.LEGAL, 70, TemporalReasoningRule.description),
    RuleDefinition("jurisdiction-inheritance", lambda config: JurisdictionInheritanceRule(),
                   InferenceProfile.LEGAL, 80, JurisdictionInheritanceRule.description),
]


def default_registry() -> RuleRegistry:
    """A new registry holding the built-in rules."""
    registry = RuleRegistry()
    for definition in BUILTIN_RULES:
        registry.register(definition)
    return registry


def default_rules() -> List[Rule]:
    """The LEGAL rule chain with default vocabulary."""
    return default_registry().build(InferenceProfile.LEGAL)
