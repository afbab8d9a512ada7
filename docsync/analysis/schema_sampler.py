# ==============================================
# SchemaSampler
# ==============================================
#
# PURPOSE:
#   Observe a bounded sample of documents from one collection and
#   infer a FieldDescriptor (field name + kind) for every field.
#
# WHY THIS CLASS EXISTS:
#   A document store has no schema. Before a destination table can
#   be created we need to guess one, and the guess must never fail:
#   a field that disagrees with itself becomes "mixed" and is stored
#   as TEXT rather than raising.
#
# CLASS: SchemaSampler
# --------------------
#   Stateful: accumulates observed kinds across sampled documents.
#
#   Methods:
#   --------
#   - analyze_batch(documents: list[dict]) -> None
#       Walk each document. Nested sub-documents are recorded under
#       dot-notation keys (e.g. "address.city"); arrays are leaves.
#
#   - build_schema() -> CollectionSchema
#       Resolve every field's observed kinds into one FieldKind:
#         {date}              → date
#         {date, null}        → date        (nulls carry no type)
#         {integer, double}   → double      (numeric widening)
#         {null}              → null
#         anything else       → mixed
#
#   - reset() -> None
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Set

from docsync.normalization import FieldKind, TypeDetector


@dataclass
class FieldDescriptor:
    """One inferred field of a collection."""
    field_name: str  # dot notation for nested fields
    kind: FieldKind
    observed_kinds: List[FieldKind] = field(default_factory=list)
    is_nullable: bool = True

    @property
    def is_nested(self) -> bool:
        return "." in self.field_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "kind": self.kind.value,
            "observed_kinds": [k.value for k in self.observed_kinds],
            "is_nullable": self.is_nullable,
        }


@dataclass
class CollectionSchema:
    """Result of sampling a collection."""
    collection_name: str
    fields: List[FieldDescriptor] = field(default_factory=list)
    sample_size: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def top_level_fields(self) -> List[FieldDescriptor]:
        return [f for f in self.fields if not f.is_nested]


class SchemaSampler:
    """
    Accumulates kinds per field over sampled documents.
    """

    def __init__(self, collection_name: str = "", type_detector: TypeDetector = None):
        self.collection_name = collection_name
        self.type_detector = type_detector or TypeDetector()
        self.observed: Dict[str, Set[FieldKind]] = {}  # insertion order = first seen
        self.total_documents: int = 0

    def analyze_batch(self, documents: Iterable[Mapping[str, Any]]) -> None:
        for document in documents:
            self._analyze_document(document)
            self.total_documents += 1

    def _analyze_document(self, document: Mapping[str, Any], prefix: str = "") -> None:
        for key, value in document.items():
            field_name = self._flatten_key(prefix, str(key))
            kind = self.type_detector.detect(value)
            self.observed.setdefault(field_name, set()).add(kind)

            # Recurse into sub-documents, never into arrays
            if kind == FieldKind.OBJECT:
                self._analyze_document(value, field_name)

    def _flatten_key(self, prefix: str, key: str) -> str:
        if not prefix:
            return key
        return f"{prefix}.{key}"

    def build_schema(self) -> CollectionSchema:
        fields = [
            FieldDescriptor(
                field_name=name,
                kind=self.resolve_kind(kinds),
                observed_kinds=sorted(kinds, key=lambda k: k.value),
            )
            for name, kinds in self.observed.items()
        ]
        return CollectionSchema(
            collection_name=self.collection_name,
            fields=fields,
            sample_size=self.total_documents,
        )

    @staticmethod
    def resolve_kind(kinds: Set[FieldKind]) -> FieldKind:
        informative = set(kinds) - {FieldKind.NULL}
        if not informative:
            return FieldKind.NULL
        if len(informative) == 1:
            return next(iter(informative))
        if informative == {FieldKind.INTEGER, FieldKind.DOUBLE}:
            return FieldKind.DOUBLE
        return FieldKind.MIXED

    def reset(self) -> None:
        self.observed = {}
        self.total_documents = 0


def infer_schema_from_documents(collection_name: str, documents: Iterable[Mapping[str, Any]]) -> CollectionSchema:
    """Sample-and-resolve in one call."""
    sampler = SchemaSampler(collection_name)
    sampler.analyze_batch(documents)
    return sampler.build_schema()
