"""
Columnar fact access for inference rules.

Rules see the knowledge graph as ``base ++ inferred_so_far``. FactFrame
lays those triples out in a Polars DataFrame (one row per triple, input
order preserved) so rules can filter by predicate without rescanning
Python lists, and maps matching rows back to the original Triple objects.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import polars as pl

from legalis_reasoner.models import RdfValue, Triple


FACT_SCHEMA = {
    "idx": pl.Int64,
    "s": pl.Utf8,
    "p": pl.Utf8,
    "o": pl.Utf8,
    "o_kind": pl.Utf8,
    "o_datatype": pl.Utf8,
    "o_lang": pl.Utf8,
}


def triples_to_frame(triples: Sequence[Triple]) -> pl.DataFrame:
    """Build a DataFrame with one row per triple, in input order."""
    return pl.DataFrame(
        {
            "idx": list(range(len(triples))),
            "s": [t.subject for t in triples],
            "p": [t.predicate for t in triples],
            "o": [t.object.value for t in triples],
            "o_kind": [t.object.kind.value for t in triples],
            "o_datatype": [t.object.datatype for t in triples],
            "o_lang": [t.object.lang for t in triples],
        },
        schema=FACT_SCHEMA,
    )


class FactFrame:
    """
    Read-only view over the facts visible to a rule.

    Row order is base first, then inferred triples in derivation order.
    All lookups return results in that order.
    """

    def __init__(
        self,
        base: Sequence[Triple],
        inferred: Sequence[Triple] = (),
    ):
        self._triples: List[Triple] = list(base) + list(inferred)
        self._base_count = len(base)
        self._df = triples_to_frame(self._triples)
        self._pairs_cache: Dict[str, List[Tuple[str, RdfValue]]] = {}

    def __len__(self) -> int:
        return len(self._triples)

    @property
    def triples(self) -> List[Triple]:
        return self._triples

    def _select(self, condition: pl.Expr) -> List[Triple]:
        idx = self._df.filter(condition).get_column("idx").to_list()
        return [self._triples[i] for i in idx]

    def with_predicate(self, predicate: str) -> List[Triple]:
        """All triples with the given predicate."""
        return self._select(pl.col("p") == predicate)

    def with_predicates(self, predicates: Sequence[str]) -> List[Triple]:
        return self._select(pl.col("p").is_in(list(predicates)))

    def pairs(self, predicate: str) -> List[Tuple[str, RdfValue]]:
        """Ordered (subject, object) pairs for a predicate."""
        cached = self._pairs_cache.get(predicate)
        if cached is None:
            cached = [(t.subject, t.object) for t in self.with_predicate(predicate)]
            self._pairs_cache[predicate] = cached
        return cached

    def values_for(self, subject: str, predicate: str) -> List[RdfValue]:
        """Objects of ``(subject, predicate, ?)`` in row order."""
        return [
            t.object
            for t in self._select((pl.col("s") == subject) & (pl.col("p") == predicate))
        ]

    def subjects_with(self, predicate: str, base_only: bool = False) -> List[str]:
        """Distinct subjects having at least one fact with the predicate."""
        df = self._df
        if base_only:
            df = df.filter(pl.col("idx") < self._base_count)
        subjects = (
            df.filter(pl.col("p") == predicate)
            .get_column("s")
            .unique(maintain_order=True)
            .to_list()
        )
        return subjects

    def find(
        self,
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
    ) -> List[Triple]:
        """Pattern lookup with optional subject and predicate."""
        condition = pl.lit(True)
        if subject is not None:
            condition = condition & (pl.col("s") == subject)
        if predicate is not None:
            condition = condition & (pl.col("p") == predicate)
        return self._select(condition)


def adjacency(pairs: Sequence[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Ordered adjacency map subject -> [objects] without duplicate edges."""
    graph: Dict[str, List[str]] = {}
    for s, o in pairs:
        targets = graph.setdefault(s, [])
        if o not in targets:
            targets.append(o)
    return graph


def reachable(graph: Dict[str, List[str]], root: str) -> List[Tuple[str, str]]:
    """
    Depth-first traversal from root with a per-root visited set.

    Returns (node, parent) pairs for every node reached other than the
    root itself, in discovery order. Terminates on cyclic graphs.
    """
    visited = {root}
    found: List[Tuple[str, str]] = []
    stack = [(root, child) for child in reversed(graph.get(root, []))]
    while stack:
        parent, node = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        found.append((node, parent))
        for child in reversed(graph.get(node, [])):
            if child not in visited:
                stack.append((node, child))
    return found
