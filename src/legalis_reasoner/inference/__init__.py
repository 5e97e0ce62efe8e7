"""
Inference Engine Package.

Forward-chaining reasoning over in-memory triples.

Modules:
- rules: Rule abstraction and built-in structural rules
- legal_rules: Legal domain rules (implication, composition, jurisdiction inheritance)
- registry: Rule registry and inference profiles
- facts: Polars-backed fact access for rules
- engine: Fixed-point driver
- context: Timeout and cancellation
- explanation: Provenance, explanations and proof trees
"""

from legalis_reasoner.inference.rules import (
    Rule,
    DerivingRule,
    Derivation,
    RuleApplicationError,
    ClosureMode,
    TransitivityRule,
    SymmetricPropertyRule,
    SubClassRule,
    SubPropertyRule,
    InversePropertyRule,
)
from legalis_reasoner.inference.legal_rules import (
    ImplicationRule,
    CompositionRule,
    LegalInheritanceRule,
    TemporalReasoningRule,
    JurisdictionInheritanceRule,
)
from legalis_reasoner.inference.registry import (
    InferenceProfile,
    RuleDefinition,
    RuleRegistry,
    default_registry,
    default_rules,
)
from legalis_reasoner.inference.facts import FactFrame
from legalis_reasoner.inference.context import (
    CancellationToken,
    ReasoningContext,
    ReasoningCancelledException,
    ReasoningTimeoutException,
)
from legalis_reasoner.inference.engine import (
    ReasoningEngine,
    ReasoningResult,
    ReasoningStats,
    ReasoningState,
    ReasoningError,
    ErrorMode,
    MaxIterationsExceededWarning,
    RuleFailure,
)
from legalis_reasoner.inference.explanation import (
    Explanation,
    ExplanationService,
    FactOrigin,
    ProofNode,
    ProvenanceRecord,
)

__all__ = [
    # Rules
    "Rule",
    "DerivingRule",
    "Derivation",
    "RuleApplicationError",
    "ClosureMode",
    "TransitivityRule",
    "SymmetricPropertyRule",
    "SubClassRule",
    "SubPropertyRule",
    "InversePropertyRule",
    "ImplicationRule",
    "CompositionRule",
    "LegalInheritanceRule",
    "TemporalReasoningRule",
    "JurisdictionInheritanceRule",
    # Registry
    "InferenceProfile",
    "RuleDefinition",
    "RuleRegistry",
    "default_registry",
    "default_rules",
    "FactFrame",
    # Engine
    "CancellationToken",
    "ReasoningContext",
    "ReasoningCancelledException",
    "ReasoningTimeoutException",
    "ReasoningEngine",
    "ReasoningResult",
    "ReasoningStats",
    "ReasoningState",
    "ReasoningError",
    "ErrorMode",
    "MaxIterationsExceededWarning",
    "RuleFailure",
    # Explanation
    "Explanation",
    "ExplanationService",
    "FactOrigin",
    "ProofNode",
    "ProvenanceRecord",
]
