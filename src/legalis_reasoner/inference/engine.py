"""
Forward-chaining inference engine.

Applies an ordered chain of rules to a base set of triples, round after
round, until a round derives nothing new (the fixed point) or the
iteration bound is reached.

Guarantees within one call:
- No triple is emitted twice (dedup on the structural triple key)
- The inferred set only grows
- Identical input gives identical output, in the same order

The engine holds only its configuration (rule chain, bound, modes) and is
safe to share read-only between threads.
"""

import logging
import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

import polars as pl

from legalis_reasoner.models import Triple, TripleKey, unique_triples
from legalis_reasoner.inference.context import (
    ReasoningCancelledException,
    ReasoningContext,
    ReasoningTimeoutException,
)
from legalis_reasoner.inference.explanation import (
    Explanation,
    ProvenanceRecord,
    explain_with_rules,
)
from legalis_reasoner.inference.facts import triples_to_frame
from legalis_reasoner.inference.registry import RuleRegistry, default_registry, default_rules
from legalis_reasoner.inference.rules import Derivation, Rule

if TYPE_CHECKING:
    from legalis_reasoner.config import ReasonerConfig

logger = logging.getLogger(__name__)


class ErrorMode(str, Enum):
    """What a rule failure does to the reasoning call."""
    FAIL_FAST = "fail_fast"      # Abort the whole call
    PERMISSIVE = "permissive"    # Skip the rule for that round, continue


class ReasoningState(str, Enum):
    """Why reasoning stopped."""
    CONVERGED = "converged"            # A round derived nothing new
    MAX_ITERATIONS = "max_iterations"  # Bound reached before the fixed point
    RULE_ERRORS = "rule_errors"        # Nothing new, but some rules were skipped
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


class ReasoningError(Exception):
    """A rule failed and the engine aborted (fail-fast mode)."""

    def __init__(self, rule_name: str, cause: Union[BaseException, str]):
        self.rule_name = rule_name
        self.cause = cause
        super().__init__(f"Rule '{rule_name}' failed: {cause}")


class MaxIterationsExceededWarning(UserWarning):
    """The iteration bound was reached before the fixed point."""
    pass


@dataclass
class RuleFailure:
    """A rule failure skipped in permissive mode."""
    rule_name: str
    iteration: int
    error: str


@dataclass
class ReasoningStats:
    """Statistics for one reasoning call."""
    iterations: int = 0
    triples_inferred: int = 0
    inferences_by_rule: Dict[str, int] = field(default_factory=dict)
    rules_failed: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iterations": self.iterations,
            "triples_inferred": self.triples_inferred,
            "inferences_by_rule": dict(self.inferences_by_rule),
            "rules_failed": self.rules_failed,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ReasoningResult:
    """
    Output of ReasoningEngine.run().

    inferred keeps derivation order. provenance maps each inferred triple's
    key to the record of the rule that first produced it.
    """
    base: List[Triple]
    inferred: List[Triple]
    state: ReasoningState
    stats: ReasoningStats
    provenance: Dict[TripleKey, ProvenanceRecord] = field(default_factory=dict)
    errors: List[RuleFailure] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        """True only when a full round derived nothing new."""
        return self.state == ReasoningState.CONVERGED

    def all_triples(self) -> List[Triple]:
        return self.base + self.inferred

    def contains(self, triple: Triple) -> bool:
        key = triple.key()
        return key in self.provenance or any(t.key() == key for t in self.base)

    def provenance_for(self, triple: Triple) -> Optional[ProvenanceRecord]:
        return self.provenance.get(triple.key())

    def to_frame(self) -> pl.DataFrame:
        """Inferred triples as a Polars DataFrame with rule and iteration columns."""
        records = [self.provenance[t.key()] for t in self.inferred]
        return triples_to_frame(self.inferred).drop("idx").with_columns(
            pl.Series("rule", [r.rule_name for r in records], dtype=pl.Utf8),
            pl.Series("iteration", [r.iteration for r in records], dtype=pl.Int64),
        )


ContextLike = Union[ReasoningContext, Callable[[], bool], None]


class ReasoningEngine:
    """
    Fixed-point driver over an ordered rule chain.

    Rule order is registration order and is significant: it decides which
    rule is credited with a triple several rules can derive, and the order
    of the output.

    Example:
        engine = ReasoningEngine(max_iterations=10)
        result = engine.run(triples)
        if not result.converged:
            ...  # partially saturated
    """

    DEFAULT_MAX_ITERATIONS = 10

    def __init__(
        self,
        rules: Optional[Iterable[Rule]] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        error_mode: ErrorMode = ErrorMode.FAIL_FAST,
        parallel: bool = False,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self._rules: Tuple[Rule, ...] = tuple(default_rules() if rules is None else rules)
        self._max_iterations = max_iterations
        self._error_mode = ErrorMode(error_mode)
        self._parallel = parallel
        self._max_workers = max_workers
        self._timeout_seconds = timeout_seconds

        names = [r.name for r in self._rules]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate rule names: {sorted(duplicates)}")

    @classmethod
    def from_config(
        cls,
        config: "ReasonerConfig",
        registry: Optional[RuleRegistry] = None,
    ) -> "ReasoningEngine":
        """Build an engine from a validated ReasonerConfig."""
        from legalis_reasoner.config import ConfigValidator

        registry = registry or default_registry()
        ConfigValidator.validate_or_raise(config, registry)
        if config.rules:
            rules = registry.build_named(config.rules, config)
        else:
            rules = registry.build(config.profile, config)
        return cls(
            rules=rules,
            max_iterations=config.max_iterations,
            error_mode=config.error_mode,
            parallel=config.parallel,
            max_workers=config.max_workers,
            timeout_seconds=config.timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def error_mode(self) -> ErrorMode:
        return self._error_mode

    @property
    def parallel(self) -> bool:
        return self._parallel

    def get_rule(self, name: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.name == name:
                return rule
        return None

    def with_rule(self, rule: Rule) -> "ReasoningEngine":
        """A new engine with rule appended to the chain."""
        return self.with_options(rules=self._rules + (rule,))

    def with_options(self, **options) -> "ReasoningEngine":
        """A new engine with some settings replaced."""
        settings = {
            "rules": self._rules,
            "max_iterations": self._max_iterations,
            "error_mode": self._error_mode,
            "parallel": self._parallel,
            "max_workers": self._max_workers,
            "timeout_seconds": self._timeout_seconds,
        }
        settings.update(options)
        return ReasoningEngine(**settings)

    # -------------------------------------------------------------------------
    # Reasoning
    # -------------------------------------------------------------------------

    def reason(self, base: Sequence[Triple], context: ContextLike = None) -> List[Triple]:
        """Inferred triples only, in derivation order."""
        return self._run(base, context).inferred

    def reason_all(self, base: Sequence[Triple], context: ContextLike = None) -> List[Triple]:
        """Base triples followed by inferred triples."""
        return self._run(base, context).all_triples()

    def run(self, base: Sequence[Triple], context: ContextLike = None) -> ReasoningResult:
        """
        Run rules to a fixed point.

        Args:
            base: Asserted triples; never modified
            context: ReasoningContext, or a callable returning True to cancel.
                Checked between rounds. Without a ReasoningContext the
                engine's timeout_seconds applies.

        Returns:
            ReasoningResult; check .converged for saturation.

        Raises:
            ReasoningError: a rule failed in FAIL_FAST mode
        """
        return self._run(base, context)

    def _run(self, base: Sequence[Triple], context: ContextLike) -> ReasoningResult:
        # Only called from the public entry points, so warnings use stacklevel=3
        # Repeated base facts are kept once
        base = unique_triples(base)
        ctx = self._make_context(context)
        ctx.start()
        start = time.time()

        seen: Set[TripleKey] = {t.key() for t in base}
        inferred: List[Triple] = []
        provenance: Dict[TripleKey, ProvenanceRecord] = {}
        errors: List[RuleFailure] = []
        stats = ReasoningStats(inferences_by_rule={r.name: 0 for r in self._rules})
        state = ReasoningState.MAX_ITERATIONS

        for iteration in range(1, self._max_iterations + 1):
            try:
                ctx.check()
            except ReasoningCancelledException:
                logger.info(f"Reasoning cancelled before round {iteration}")
                state = ReasoningState.CANCELLED
                break
            except ReasoningTimeoutException as e:
                logger.warning(f"{e}; stopping before round {iteration}")
                state = ReasoningState.TIMEOUT
                break

            stats.iterations = iteration
            failures_before = len(errors)
            new_this_round = 0

            for rule, derivations in self._round(base, inferred, iteration, errors):
                added = 0
                for derivation in derivations:
                    key = derivation.triple.key()
                    if key in seen:
                        continue
                    seen.add(key)
                    inferred.append(derivation.triple)
                    provenance[key] = ProvenanceRecord(
                        triple=derivation.triple,
                        rule_name=rule.name,
                        sources=tuple(derivation.sources),
                        iteration=iteration,
                    )
                    added += 1
                stats.inferences_by_rule[rule.name] += added
                new_this_round += added
                logger.debug(f"Round {iteration}: rule '{rule.name}' added {added} triples")

            logger.debug(f"Round {iteration}: {new_this_round} new triples")

            if new_this_round == 0:
                if len(errors) > failures_before:
                    state = ReasoningState.RULE_ERRORS
                else:
                    state = ReasoningState.CONVERGED
                break

        stats.triples_inferred = len(inferred)
        stats.rules_failed = len(errors)
        stats.duration_ms = (time.time() - start) * 1000

        if state == ReasoningState.MAX_ITERATIONS:
            message = (
                f"Fixed point not reached after {self._max_iterations} iterations; "
                f"result is partially saturated ({len(inferred)} triples inferred)"
            )
            logger.warning(message)
            warnings.warn(message, MaxIterationsExceededWarning, stacklevel=3)

        logger.info(
            f"Reasoning finished: state={state.value}, iterations={stats.iterations}, "
            f"inferred={stats.triples_inferred}, failed_rules={stats.rules_failed}"
        )

        return ReasoningResult(
            base=base,
            inferred=inferred,
            state=state,
            stats=stats,
            provenance=provenance,
            errors=errors,
        )

    def _make_context(self, context: ContextLike) -> ReasoningContext:
        if isinstance(context, ReasoningContext):
            return context
        return ReasoningContext(timeout_seconds=self._timeout_seconds, should_cancel=context)

    def _round(
        self,
        base: List[Triple],
        inferred: List[Triple],
        iteration: int,
        errors: List[RuleFailure],
    ) -> Iterable[Tuple[Rule, List[Derivation]]]:
        """
        Yield (rule, derivations) in registration order.

        Sequentially, each rule sees what earlier rules of the same round
        added, because the caller merges before the next rule runs. In
        parallel mode all rules see the start-of-round snapshot.
        """
        if not self._parallel:
            for rule in self._rules:
                yield rule, self._apply_or_skip(rule, base, tuple(inferred), iteration, errors)
            return

        snapshot = tuple(inferred)
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = [
                executor.submit(self._invoke, rule, base, snapshot)
                for rule in self._rules
            ]
            results = []
            for rule, future in zip(self._rules, futures):
                try:
                    results.append((rule, future.result()))
                except ReasoningError as e:
                    self._handle_failure(e, iteration, errors)
                    results.append((rule, []))
        yield from results

    def _apply_or_skip(
        self,
        rule: Rule,
        base: List[Triple],
        snapshot: Tuple[Triple, ...],
        iteration: int,
        errors: List[RuleFailure],
    ) -> List[Derivation]:
        try:
            return self._invoke(rule, base, snapshot)
        except ReasoningError as e:
            self._handle_failure(e, iteration, errors)
            return []

    @staticmethod
    def _invoke(rule: Rule, base: List[Triple], snapshot: Tuple[Triple, ...]) -> List[Derivation]:
        try:
            return list(rule.derive(base, snapshot))
        except ReasoningError:
            raise
        except Exception as e:
            raise ReasoningError(rule.name, e) from e

    def _handle_failure(
        self,
        error: ReasoningError,
        iteration: int,
        errors: List[RuleFailure],
    ) -> None:
        if self._error_mode == ErrorMode.FAIL_FAST:
            logger.error(f"Round {iteration}: {error}")
            raise error
        logger.warning(f"Round {iteration}: skipping rule '{error.rule_name}': {error.cause}")
        errors.append(RuleFailure(error.rule_name, iteration, str(error.cause)))

    # -------------------------------------------------------------------------
    # Explanation
    # -------------------------------------------------------------------------

    def explain(self, triple: Triple, original_triples: Sequence[Triple]) -> List[Explanation]:
        """
        Coarse explanation: every rule, in order, that could have derived a
        triple shaped like this one from original_triples.
        """
        return explain_with_rules(self._rules, triple, list(original_triples))
