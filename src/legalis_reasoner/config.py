"""
Reasoner Configuration.

Provides:
- Vocabulary settings (which predicate IRIs the rules look at)
- Engine settings (profile or explicit rule chain, bound, error mode)
- YAML/JSON load and save
- Configuration validation
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from legalis_reasoner.models import (
    ELI_JURISDICTION,
    LEGALIS_DEPENDS_ON,
    LEGALIS_PART_OF,
    LEGALIS_REFERENCES,
    LEGALIS_REPLACES,
    LEGALIS_SUPERSEDES,
    OWL_SAME_AS,
    RDF_TYPE,
    RDFS_SUBCLASS_OF,
    RDFS_SUBPROPERTY_OF,
    Namespaces,
)
from legalis_reasoner.inference.engine import ErrorMode
from legalis_reasoner.inference.registry import InferenceProfile, RuleRegistry, default_registry
from legalis_reasoner.inference.rules import ClosureMode

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def _expand_group(ns: Namespaces, entry: Any) -> Tuple[str, ...]:
    # Malformed entries keep their length so that ConfigValidator reports them
    if isinstance(entry, (list, tuple)):
        return tuple(ns.expand(p) if isinstance(p, str) else p for p in entry)
    return (ns.expand(entry) if isinstance(entry, str) else entry,)


@dataclass
class VocabularyConfig:
    """Predicate IRIs used by the built-in rules."""
    rdf_type: str = RDF_TYPE
    subclass_of: str = RDFS_SUBCLASS_OF
    subproperty_of: str = RDFS_SUBPROPERTY_OF
    references: str = LEGALIS_REFERENCES
    jurisdiction: str = ELI_JURISDICTION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rdf_type": self.rdf_type,
            "subclass_of": self.subclass_of,
            "subproperty_of": self.subproperty_of,
            "references": self.references,
            "jurisdiction": self.jurisdiction,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], namespaces: Optional[Namespaces] = None) -> "VocabularyConfig":
        ns = namespaces or Namespaces()
        return cls(
            rdf_type=ns.expand(data.get("rdf_type", RDF_TYPE)),
            subclass_of=ns.expand(data.get("subclass_of", RDFS_SUBCLASS_OF)),
            subproperty_of=ns.expand(data.get("subproperty_of", RDFS_SUBPROPERTY_OF)),
            references=ns.expand(data.get("references", LEGALIS_REFERENCES)),
            jurisdiction=ns.expand(data.get("jurisdiction", ELI_JURISDICTION)),
        )


@dataclass
class ReasonerConfig:
    """
    Complete configuration for a ReasoningEngine.

    When rules is non-empty it names the exact chain, in order; otherwise
    the chain comes from profile.
    """
    profile: InferenceProfile = InferenceProfile.LEGAL
    rules: List[str] = field(default_factory=list)
    max_iterations: int = 10
    error_mode: ErrorMode = ErrorMode.FAIL_FAST
    parallel: bool = False
    max_workers: Optional[int] = None
    timeout_seconds: Optional[float] = None
    closure_mode: ClosureMode = ClosureMode.DEPTH_FIRST
    transitive_predicates: List[str] = field(
        default_factory=lambda: [RDFS_SUBCLASS_OF, RDFS_SUBPROPERTY_OF]
    )
    symmetric_predicates: List[str] = field(default_factory=lambda: [OWL_SAME_AS])
    inverse_properties: List[Tuple[str, str]] = field(default_factory=list)
    implications: List[Tuple[str, str]] = field(
        default_factory=lambda: [(LEGALIS_REPLACES, LEGALIS_SUPERSEDES)]
    )
    compositions: List[Tuple[str, str, str]] = field(
        default_factory=lambda: [(LEGALIS_DEPENDS_ON, LEGALIS_PART_OF, LEGALIS_DEPENDS_ON)]
    )
    vocabulary: VocabularyConfig = field(default_factory=VocabularyConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile.value,
            "rules": list(self.rules),
            "max_iterations": self.max_iterations,
            "error_mode": self.error_mode.value,
            "parallel": self.parallel,
            "max_workers": self.max_workers,
            "timeout_seconds": self.timeout_seconds,
            "closure_mode": self.closure_mode.value,
            "transitive_predicates": list(self.transitive_predicates),
            "symmetric_predicates": list(self.symmetric_predicates),
            "inverse_properties": [list(pair) for pair in self.inverse_properties],
            "implications": [list(pair) for pair in self.implications],
            "compositions": [list(chain) for chain in self.compositions],
            "vocabulary": self.vocabulary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReasonerConfig":
        """
        Build from a plain dict.

        Predicate IRIs may be written as CURIEs (``rdfs:subClassOf``).
        Unknown enum values fall back to defaults.
        """
        ns = Namespaces(custom=dict(data.get("prefixes", {})))

        try:
            profile = InferenceProfile(data.get("profile", "legal"))
        except ValueError:
            logger.warning(f"Unknown profile {data.get('profile')!r}, using 'legal'")
            profile = InferenceProfile.LEGAL

        try:
            error_mode = ErrorMode(data.get("error_mode", "fail_fast"))
        except ValueError:
            logger.warning(f"Unknown error_mode {data.get('error_mode')!r}, using 'fail_fast'")
            error_mode = ErrorMode.FAIL_FAST

        try:
            closure_mode = ClosureMode(data.get("closure_mode", "depth_first"))
        except ValueError:
            closure_mode = ClosureMode.DEPTH_FIRST

        defaults = cls()
        transitive = data.get("transitive_predicates", defaults.transitive_predicates)
        symmetric = data.get("symmetric_predicates", defaults.symmetric_predicates)
        implications = data.get("implications", defaults.implications)
        compositions = data.get("compositions", defaults.compositions)

        return cls(
            profile=profile,
            rules=list(data.get("rules", [])),
            max_iterations=data.get("max_iterations", 10),
            error_mode=error_mode,
            parallel=data.get("parallel", False),
            max_workers=data.get("max_workers"),
            timeout_seconds=data.get("timeout_seconds"),
            closure_mode=closure_mode,
            transitive_predicates=[ns.expand(p) for p in transitive],
            symmetric_predicates=[ns.expand(p) for p in symmetric],
            inverse_properties=[
                _expand_group(ns, entry) for entry in data.get("inverse_properties", [])
            ],
            implications=[_expand_group(ns, entry) for entry in implications],
            compositions=[_expand_group(ns, entry) for entry in compositions],
            vocabulary=VocabularyConfig.from_dict(data.get("vocabulary", {}), ns),
        )

    def save(self, path: Union[str, Path]) -> None:
        """Save as YAML (.yaml/.yml) or JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.suffix in (".yaml", ".yml"):
            path.write_text(yaml.safe_dump(self.to_dict(), sort_keys=False), encoding="utf-8")
        else:
            path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ReasonerConfig":
        """Load from YAML (.yaml/.yml) or JSON."""
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
        if not isinstance(data, dict):
            raise ConfigValidationError(f"Configuration in {path} must be a mapping")
        return cls.from_dict(data)


class ConfigValidator:
    """Validates reasoner configuration."""

    @staticmethod
    def validate(config: ReasonerConfig, registry: Optional[RuleRegistry] = None) -> List[str]:
        """
        Validate configuration.

        Returns list of error messages (empty if valid).
        """
        errors = []

        if not isinstance(config.max_iterations, int) or config.max_iterations < 1:
            errors.append("max_iterations must be a positive integer")

        if config.max_workers is not None and config.max_workers < 1:
            errors.append("max_workers must be at least 1")

        if config.timeout_seconds is not None and config.timeout_seconds <= 0:
            errors.append("timeout_seconds must be positive")

        known = {d.name for d in (registry or default_registry()).list_rules()}
        for name in config.rules:
            if name not in known:
                errors.append(f"Unknown rule: {name}")

        if len(set(config.rules)) != len(config.rules):
            errors.append("rules must not contain duplicates")

        errors.extend(_check_groups("inverse_properties", config.inverse_properties, 2))
        errors.extend(_check_groups("implications", config.implications, 2))
        errors.extend(_check_groups("compositions", config.compositions, 3))

        for name, value in config.vocabulary.to_dict().items():
            if not value:
                errors.append(f"vocabulary.{name} must not be empty")

        return errors

    @staticmethod
    def validate_or_raise(config: ReasonerConfig, registry: Optional[RuleRegistry] = None) -> None:
        """Validate configuration, raising on errors."""
        errors = ConfigValidator.validate(config, registry)
        if errors:
            raise ConfigValidationError("; ".join(errors))


def _check_groups(name: str, entries: Sequence[Any], size: int) -> List[str]:
    kind = "pairs" if size == 2 else f"{size}-tuples"
    errors = []
    for entry in entries:
        if (
            not isinstance(entry, (list, tuple))
            or len(entry) != size
            or not all(isinstance(p, str) and p for p in entry)
        ):
            errors.append(f"{name} entries must be {kind} of predicate IRIs: {entry!r}")
    return errors
