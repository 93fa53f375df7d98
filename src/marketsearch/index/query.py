"""Query and aggregation builders for dataset searches."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from marketsearch.models import Catalog, FacetValue, SearchRequest

ROOT_CATEGORY_PATH = "0"
CATEGORY_PATH_FIELD = "categories.path"
SORT_ORDER: List[Dict[str, Any]] = [
    {"_score": {"order": "desc"}},
    {"raw_title": {"order": "asc", "unmapped_type": "keyword"}},
]


def category_path_filter(category_path: str) -> Dict[str, Any]:
    """Match the category at ``category_path`` and everything below it."""
    return {
        "bool": {
            "should": [
                {"term": {CATEGORY_PATH_FIELD: category_path}},
                {"prefix": {CATEGORY_PATH_FIELD: f"{category_path}."}},
            ],
            "minimum_should_match": 1,
        }
    }


def filter_term(field_name: str, value: str) -> Dict[str, Any]:
    return {"term": {field_name: value}}


def filter_terms(field_name: str, values: Iterable[str]) -> Dict[str, Any]:
    """Require every one of ``values`` to be present on ``field_name``."""
    return {"bool": {"must": [filter_term(field_name, value) for value in values]}}


def _facet_filter(field_name: str, value: FacetValue) -> Dict[str, Any]:
    if isinstance(value, (list, tuple)):
        return filter_terms(field_name, value)
    return filter_term(field_name, value)


def text_clauses(text_fields: Sequence[str], request: SearchRequest) -> List[Dict[str, Any]]:
    clauses = []
    for term in request.text_terms():
        multi_match: Dict[str, Any] = {"query": term, "type": "phrase_prefix", "operator": "and"}
        if text_fields:
            multi_match["fields"] = list(text_fields)
        clauses.append({"multi_match": multi_match})
    return clauses


def structural_filters(filter_fields: Sequence[str], request: SearchRequest) -> List[Dict[str, Any]]:
    filters = [category_path_filter(request.category_path or ROOT_CATEGORY_PATH)]
    for field_name in filter_fields:
        value = request.facets.get(field_name)
        if value is None or (isinstance(value, (list, tuple)) and not value):
            continue
        filters.append(_facet_filter(field_name, value))
    return filters


def negative_filters(request: SearchRequest) -> List[Dict[str, Any]]:
    if request.exclude:
        return [{"ids": {"values": [request.exclude]}}]
    return []


def build_query(catalog: Catalog, request: SearchRequest) -> Dict[str, Any]:
    """Compose the text, structural and negative clauses into one bool query.

    Text clauses score; filters only restrict membership.
    """
    return {
        "bool": {
            "must": text_clauses(catalog.text_fields(), request),
            "filter": structural_filters(catalog.filter_fields(), request),
            "must_not": negative_filters(request),
        }
    }


def build_aggregations(filter_fields: Sequence[str]) -> Dict[str, Any]:
    return {field_name: {"terms": {"field": field_name}} for field_name in filter_fields}
