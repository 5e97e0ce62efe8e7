"""
Legalis Reasoner: forward-chaining inference over legal knowledge graphs.

Derives new triples from a base fact set by applying an ordered rule chain
to a fixed point, with provenance for every inferred fact.
"""

__version__ = "0.1.0"

from legalis_reasoner.models import Triple, RdfValue, ValueKind, Namespaces
from legalis_reasoner.config import ReasonerConfig, ConfigValidationError
from legalis_reasoner.inference import (
    ReasoningEngine,
    ReasoningResult,
    ReasoningError,
    ErrorMode,
    MaxIterationsExceededWarning,
    Rule,
    Explanation,
    ExplanationService,
)

__all__ = [
    "Triple",
    "RdfValue",
    "ValueKind",
    "Namespaces",
    "ReasonerConfig",
    "ConfigValidationError",
    "ReasoningEngine",
    "ReasoningResult",
    "ReasoningError",
    "ErrorMode",
    "MaxIterationsExceededWarning",
    "Rule",
    "Explanation",
    "ExplanationService",
]
