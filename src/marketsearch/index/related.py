"""Related-dataset lookup."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from marketsearch.catalog.paths import dataset_catalog_path
from marketsearch.index.search import Searcher
from marketsearch.models import SearchRequest

RELATED_LIMIT = 5


def related_request(dataset_id: str, dataset: Mapping[str, Any]) -> SearchRequest:
    """Search parameters for datasets related to ``dataset``.

    Related datasets share the two-level catalog and all of the dataset's tags.
    """
    facets: Dict[str, Any] = {}
    tags = dataset.get("tags")
    if tags:
        facets["tags"] = list(tags) if isinstance(tags, (list, tuple)) else tags
    return SearchRequest(
        category_path=dataset_catalog_path(dataset),
        facets=facets,
        exclude=str(dataset_id),
        offset=0,
        limit=RELATED_LIMIT,
    )


def find_related(
    searcher: Searcher, index_name: str, dataset_id: str, dataset: Mapping[str, Any]
) -> List[Dict[str, Any]]:
    envelope = searcher.find_matching(index_name, related_request(dataset_id, dataset))
    return envelope.data[:RELATED_LIMIT]
