"""Core marketsearch data models."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

LOGGER = logging.getLogger(__name__)

FacetValue = Union[str, List[str]]

RESERVED_PARAMS = frozenset({"searchTerm", "searchScope", "category-path", "exclude", "from", "size"})


def _single(value: Any) -> Any:
    """Last value of a repeated parameter."""
    if isinstance(value, (list, tuple)):
        return value[-1] if value else None
    return value


class FieldKind(str, Enum):
    """How a catalog field is indexed."""

    TEXT = "text"
    FILTER = "filter"

    @classmethod
    def parse(cls, descriptor: Any) -> "FieldKind | None":
        """Read the kind from a ``{"indexes": [...]}`` descriptor.

        Only the first declared index decides; anything else yields ``None``.
        """
        if not isinstance(descriptor, Mapping):
            return None
        indexes = descriptor.get("indexes") or []
        if isinstance(indexes, str):
            indexes = [indexes]
        if not indexes:
            return None
        try:
            return cls(indexes[0])
        except ValueError:
            return None


@dataclass(slots=True)
class Catalog:
    """Category node scoping a search, with the kind of each of its fields."""

    path: str
    name: str | None = None
    fields: Dict[str, FieldKind] = field(default_factory=dict)
    children: List[Dict[str, Any]] = field(default_factory=list)
    source: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(
        cls, path: str, document: Mapping[str, Any] | None, children: List[Dict[str, Any]] | None = None
    ) -> "Catalog":
        document = dict(document or {})
        fields: Dict[str, FieldKind] = {}
        for name, descriptor in (document.get("metadata") or {}).items():
            kind = FieldKind.parse(descriptor)
            if kind is None:
                LOGGER.debug("Ignoring field %s with unknown index kind", name)
                continue
            fields[name] = kind
        return cls(
            path=path,
            name=document.get("name"),
            fields=fields,
            children=list(children or []),
            source=document,
        )

    def fields_of(self, kind: FieldKind) -> List[str]:
        return [name for name, field_kind in self.fields.items() if field_kind is kind]

    def text_fields(self) -> List[str]:
        return self.fields_of(FieldKind.TEXT)

    def filter_fields(self) -> List[str]:
        return self.fields_of(FieldKind.FILTER)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.source, "path": self.path, "children": self.children}


@dataclass(slots=True)
class SearchRequest:
    """Parameters of one search call."""

    search_term: str | None = None
    search_scope: str | None = None
    category_path: str | None = None
    facets: Dict[str, FacetValue] = field(default_factory=dict)
    exclude: str | None = None
    offset: int = 0
    limit: int = 10

    @classmethod
    def from_params(cls, params: Mapping[str, Any], *, page_size: int = 10) -> "SearchRequest":
        """Build a request from flat query parameters.

        Reserved keys map onto the request attributes; every other key is a
        facet selection. A list value (a repeated parameter) is a multi-valued
        selection; a repeated reserved key keeps its last value.
        """
        facets: Dict[str, FacetValue] = {}
        reserved = {key: _single(params.get(key)) for key in RESERVED_PARAMS}
        for key, value in params.items():
            if key in RESERVED_PARAMS or value is None:
                continue
            if isinstance(value, (list, tuple)):
                values = [str(v) for v in value]
                facets[key] = values[0] if len(values) == 1 else values
            else:
                facets[key] = str(value)
        return cls(
            search_term=reserved["searchTerm"],
            search_scope=reserved["searchScope"],
            category_path=reserved["category-path"],
            facets=facets,
            exclude=reserved["exclude"],
            offset=int(reserved["from"] or 0),
            limit=int(reserved["size"] or page_size),
        )

    def text_terms(self) -> List[str]:
        """Non-blank free-text terms, search term first."""
        terms = [self.search_term, self.search_scope]
        return [term for term in terms if term is not None and term.strip()]


@dataclass(slots=True)
class ResultEnvelope:
    data: List[Dict[str, Any]] = field(default_factory=list)
    total_items: int = 0
    filters: Dict[str, List[Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "totalItems": self.total_items, "filters": self.filters}
