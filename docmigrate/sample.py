# ==============================================
# SampleSet — read-only document arena
# ==============================================
#
# PURPOSE:
#   Holds the accepted sample of one container as an indexed tuple so
#   every checker can iterate it independently (no shared cursors).
#
# CLASS: SampleSet (frozen dataclass)
# -----------------------------------
#   - container: str
#   - documents: tuple[dict, ...]
#   - document_ids: tuple[str, ...]   (parallel to documents)
#
#   Methods:
#   --------
#   - from_documents(container, documents, id_field) -> SampleSet
#   - values(path) -> Iterator[(document_id, value | MISSING)]
#
# FUNCTION:
# ---------
# - resolve_path(document, "address.city") -> value | MISSING
#     MISSING when any segment is absent or a parent is not an object.
#     An explicit null stays None, so callers can tell them apart.
#     A literal key such as "user.name" matches before the split.
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Tuple


class _Missing:
    """Marker for an absent key (distinct from an explicit null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve_path(document: Any, path: str) -> Any:
    if not isinstance(document, dict):
        return MISSING
    if path in document:
        return document[path]

    # Keys may contain dots themselves: try the longest matching key first
    parts = path.split(".")
    for cut in range(len(parts) - 1, 0, -1):
        head = ".".join(parts[:cut])
        if head in document:
            found = resolve_path(document[head], ".".join(parts[cut:]))
            if found is not MISSING:
                return found
    return MISSING


def document_id(document: Any, index: int, id_field: str = "id") -> str:
    """
    Stable id for a sampled document.

    Uses id_field, then "_id", then the 1-based sample ordinal.
    """
    if isinstance(document, dict):
        for key in (id_field, "_id"):
            value = document.get(key)
            if value is not None and not isinstance(value, (dict, list)):
                return str(value)
    return f"#{index + 1}"


@dataclass(frozen=True)
class SampleSet:
    container: str
    documents: Tuple[dict, ...]
    document_ids: Tuple[str, ...]

    @classmethod
    def from_documents(cls, container: str, documents: Iterable[dict], id_field: str = "id") -> "SampleSet":
        docs = tuple(documents)
        ids = tuple(document_id(doc, index, id_field) for index, doc in enumerate(docs))
        return cls(container=container, documents=docs, document_ids=ids)

    def __len__(self) -> int:
        return len(self.documents)

    def values(self, path: str) -> Iterator[Tuple[str, Any]]:
        for doc_id, document in zip(self.document_ids, self.documents):
            yield doc_id, resolve_path(document, path)
