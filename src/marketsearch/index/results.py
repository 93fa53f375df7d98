"""Normalization of raw search responses."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from marketsearch.models import ResultEnvelope


def total_hits(response: Mapping[str, Any]) -> int:
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, Mapping):
        return int(total.get("value", 0))
    return int(total or 0)


def transform_results(response: Mapping[str, Any]) -> ResultEnvelope:
    """Flatten hits into documents tagged with the index they came from."""
    hits = response.get("hits", {}).get("hits", [])
    data = [{**hit.get("_source", {}), "index": hit.get("_index")} for hit in hits]
    return ResultEnvelope(data=data, total_items=total_hits(response), filters={})


def facet_values(response: Mapping[str, Any], filter_fields: Sequence[str]) -> Dict[str, List[Any]]:
    """Bucket keys per requested facet; a facet with no aggregation is empty."""
    aggregations = response.get("aggregations") or {}
    facets: Dict[str, List[Any]] = {}
    for field_name in filter_fields:
        buckets = (aggregations.get(field_name) or {}).get("buckets", [])
        facets[field_name] = [bucket["key"] for bucket in buckets]
    return facets
