"""
Core data model for the Legalis reasoner.

Provides the immutable fact values the inference engine works on:
- RdfValue: object position of a triple (URI, literal, blank node)
- Triple: subject-predicate-object statement
- Namespaces: standard prefix table with CURIE expansion

Key design decisions:
- Value objects: frozen dataclasses, compared structurally
- Canonical keys: structural tuples, never string concatenation
"""

from dataclasses import dataclass, field
from datetime import date as _date, datetime as _datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


# =============================================================================
# Vocabulary
# =============================================================================

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDFS_NS = "http://www.w3.org/2000/01/rdf-schema#"
OWL_NS = "http://www.w3.org/2002/07/owl#"
XSD_NS = "http://www.w3.org/2001/XMLSchema#"
ELI_NS = "http://data.europa.eu/eli/ontology#"
LEGALIS_NS = "https://legalis.dev/ontology#"

RDF_TYPE = RDF_NS + "type"
RDFS_SUBCLASS_OF = RDFS_NS + "subClassOf"
RDFS_SUBPROPERTY_OF = RDFS_NS + "subPropertyOf"
OWL_SAME_AS = OWL_NS + "sameAs"

ELI_JURISDICTION = ELI_NS + "jurisdiction"
LEGALIS_REFERENCES = LEGALIS_NS + "references"
LEGALIS_REPLACES = LEGALIS_NS + "replaces"
LEGALIS_SUPERSEDES = LEGALIS_NS + "supersedes"
LEGALIS_DEPENDS_ON = LEGALIS_NS + "dependsOn"
LEGALIS_PART_OF = LEGALIS_NS + "partOf"

XSD_INTEGER = XSD_NS + "integer"
XSD_BOOLEAN = XSD_NS + "boolean"
XSD_DATE = XSD_NS + "date"
XSD_DATETIME = XSD_NS + "dateTime"


# =============================================================================
# Values
# =============================================================================

class ValueKind(str, Enum):
    """Kind of an RDF object value."""
    URI = "uri"
    LITERAL = "literal"
    BLANK_NODE = "bnode"


# (kind, value, datatype, lang)
ValueKey = Tuple[str, str, Optional[str], Optional[str]]
# (subject, predicate, object key)
TripleKey = Tuple[str, str, ValueKey]


@dataclass(frozen=True, slots=True)
class RdfValue:
    """
    Object of a triple.

    Attributes:
        kind: URI, LITERAL or BLANK_NODE
        value: IRI string, literal lexical form, or blank node label
        datatype: Datatype IRI (typed literals only)
        lang: Language tag (language-tagged literals only)
    """
    kind: ValueKind
    value: str
    datatype: Optional[str] = None
    lang: Optional[str] = None

    def __post_init__(self):
        if self.kind != ValueKind.LITERAL and (self.datatype or self.lang):
            raise ValueError(f"Only literals carry a datatype or language tag: {self.value!r}")
        if self.datatype and self.lang:
            raise ValueError("A literal cannot have both a datatype and a language tag")

    @classmethod
    def uri(cls, value: str) -> "RdfValue":
        """Create a URI reference."""
        return cls(kind=ValueKind.URI, value=value)

    @classmethod
    def literal(cls, value: str, datatype: Optional[str] = None) -> "RdfValue":
        """Create a plain or typed literal."""
        return cls(kind=ValueKind.LITERAL, value=value, datatype=datatype)

    @classmethod
    def typed(cls, value: str, datatype: str) -> "RdfValue":
        """Create a typed literal."""
        return cls(kind=ValueKind.LITERAL, value=value, datatype=datatype)

    @classmethod
    def lang_string(cls, value: str, lang: str) -> "RdfValue":
        """Create a language-tagged literal."""
        return cls(kind=ValueKind.LITERAL, value=value, lang=lang)

    @classmethod
    def blank(cls, label: str) -> "RdfValue":
        """Create a blank node."""
        return cls(kind=ValueKind.BLANK_NODE, value=label)

    @classmethod
    def integer(cls, n: int) -> "RdfValue":
        return cls.typed(str(n), XSD_INTEGER)

    @classmethod
    def boolean(cls, b: bool) -> "RdfValue":
        return cls.typed("true" if b else "false", XSD_BOOLEAN)

    @classmethod
    def date(cls, d: _date) -> "RdfValue":
        return cls.typed(d.strftime("%Y-%m-%d"), XSD_DATE)

    @classmethod
    def datetime(cls, d: _datetime) -> "RdfValue":
        return cls.typed(d.isoformat(), XSD_DATETIME)

    @property
    def is_uri(self) -> bool:
        return self.kind == ValueKind.URI

    @property
    def is_literal(self) -> bool:
        return self.kind == ValueKind.LITERAL

    @property
    def is_resource(self) -> bool:
        """True when the value can stand in subject position."""
        return self.kind in (ValueKind.URI, ValueKind.BLANK_NODE)

    def as_subject(self) -> str:
        """Subject-position form: the IRI, or ``_:label`` for blank nodes."""
        if self.kind == ValueKind.BLANK_NODE:
            return f"_:{self.value}"
        return self.value

    @classmethod
    def from_subject(cls, subject: str) -> "RdfValue":
        """Inverse of as_subject()."""
        if subject.startswith("_:"):
            return cls.blank(subject[2:])
        return cls.uri(subject)

    def key(self) -> ValueKey:
        """Structural key used for deduplication."""
        return (self.kind.value, self.value, self.datatype, self.lang)

    def n3(self) -> str:
        """Render in N-Triples-like syntax."""
        if self.kind == ValueKind.URI:
            return f"<{self.value}>"
        if self.kind == ValueKind.BLANK_NODE:
            return f"_:{self.value}"
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"')
        if self.lang:
            return f'"{escaped}"@{self.lang}'
        if self.datatype:
            return f'"{escaped}"^^<{self.datatype}>'
        return f'"{escaped}"'

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value, "value": self.value}
        if self.datatype:
            d["datatype"] = self.datatype
        if self.lang:
            d["lang"] = self.lang
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RdfValue":
        return cls(
            kind=ValueKind(data.get("kind", "uri")),
            value=data["value"],
            datatype=data.get("datatype"),
            lang=data.get("lang"),
        )

    def __str__(self) -> str:
        return self.n3()


# =============================================================================
# Triples
# =============================================================================

@dataclass(frozen=True, slots=True)
class Triple:
    """
    A subject-predicate-object fact.

    Immutable and compared structurally. Subject and predicate are IRI
    strings (or blank node labels in subject position).
    """
    subject: str
    predicate: str
    object: RdfValue

    @classmethod
    def uri(cls, subject: str, predicate: str, obj: str) -> "Triple":
        """Create a triple whose object is a URI reference."""
        return cls(subject, predicate, RdfValue.uri(obj))

    @classmethod
    def literal(
        cls,
        subject: str,
        predicate: str,
        value: str,
        datatype: Optional[str] = None,
    ) -> "Triple":
        """Create a triple whose object is a literal."""
        return cls(subject, predicate, RdfValue.literal(value, datatype))

    def key(self) -> TripleKey:
        """Canonical dedup key: (subject, predicate, object key)."""
        return (self.subject, self.predicate, self.object.key())

    def n3(self) -> str:
        subject = self.subject if self.subject.startswith("_:") else f"<{self.subject}>"
        return f"{subject} <{self.predicate}> {self.object.n3()} ."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Triple":
        return cls(
            subject=data["subject"],
            predicate=data["predicate"],
            object=RdfValue.from_dict(data["object"]),
        )

    def __str__(self) -> str:
        return self.n3()


def unique_triples(triples: Iterable[Triple]) -> List[Triple]:
    """Drop duplicates, keeping first occurrence order."""
    seen = set()
    result = []
    for t in triples:
        k = t.key()
        if k not in seen:
            seen.add(k)
            result.append(t)
    return result


# =============================================================================
# Namespaces
# =============================================================================

STANDARD_PREFIXES: Dict[str, str] = {
    "rdf": RDF_NS,
    "rdfs": RDFS_NS,
    "owl": OWL_NS,
    "xsd": XSD_NS,
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "eli": ELI_NS,
    "frbr": "http://purl.org/vocab/frbr/core#",
    "skos": "http://www.w3.org/2004/02/skos/core#",
    "void": "http://rdfs.org/ns/void#",
    "prov": "http://www.w3.org/ns/prov#",
    "cc": "http://creativecommons.org/ns#",
    "time": "http://www.w3.org/2006/time#",
    "legalis": LEGALIS_NS,
}


@dataclass
class Namespaces:
    """
    Prefix table for compact IRIs.

    Collaborators that emit CURIEs (``eli:jurisdiction``) can normalize
    their output with expand_triple() before reasoning.
    """
    custom: Dict[str, str] = field(default_factory=dict)

    def add(self, prefix: str, uri: str) -> None:
        self.custom[prefix] = uri

    def prefixes(self) -> Dict[str, str]:
        merged = dict(STANDARD_PREFIXES)
        merged.update(self.custom)
        return merged

    def expand(self, name: str) -> str:
        """Expand ``prefix:local`` to a full IRI; other strings pass through."""
        if "://" in name or name.startswith("_:") or ":" not in name:
            return name
        prefix, local = name.split(":", 1)
        ns = self.prefixes().get(prefix)
        if ns is None:
            return name
        return ns + local

    def compact(self, iri: str) -> str:
        """Compact a full IRI using the longest matching namespace."""
        best: Optional[Tuple[str, str]] = None
        for prefix, ns in self.prefixes().items():
            if iri.startswith(ns) and (best is None or len(ns) > len(best[1])):
                best = (prefix, ns)
        if best is None:
            return iri
        return f"{best[0]}:{iri[len(best[1]):]}"

    def expand_triple(self, triple: Triple) -> Triple:
        obj = triple.object
        if obj.is_uri:
            obj = RdfValue.uri(self.expand(obj.value))
        elif obj.datatype:
            obj = RdfValue.typed(obj.value, self.expand(obj.datatype))
        return Triple(
            subject=self.expand(triple.subject),
            predicate=self.expand(triple.predicate),
            object=obj,
        )
