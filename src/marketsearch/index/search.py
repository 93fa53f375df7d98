"""Faceted dataset search."""

from __future__ import annotations

import logging
from typing import Sequence

from marketsearch.catalog.categories import CategoryProvider
from marketsearch.catalog.paths import extract_catalog_path
from marketsearch.index.documents import ALL_DATASET_INDICES, DatasetIndex
from marketsearch.index.query import SORT_ORDER, build_aggregations, build_query
from marketsearch.index.results import facet_values, transform_results
from marketsearch.models import ResultEnvelope, SearchRequest
from marketsearch.relations.joiner import RelationshipJoiner

LOGGER = logging.getLogger(__name__)

FIND_BY_IDS_SIZE = 10


class Searcher:
    """High-level API to query the dataset index.

    ``find_matching`` is the single search path: top-level searches and
    related-item lookups both go through it.
    """

    def __init__(
        self,
        index: DatasetIndex,
        categories: CategoryProvider,
        joiner: RelationshipJoiner,
    ) -> None:
        self.index = index
        self.categories = categories
        self.joiner = joiner

    def find_matching(self, index_name: str, request: SearchRequest) -> ResultEnvelope:
        catalog_path = extract_catalog_path(request.category_path)
        catalog = self.categories.fetch(index_name, catalog_path)
        filter_fields = catalog.filter_fields()

        LOGGER.debug("Searching %s in catalog %s: %s", index_name, catalog_path, request)
        response = self.index.search(
            index_name,
            query=build_query(catalog, request),
            aggs=build_aggregations(filter_fields),
            sort=SORT_ORDER,
            from_=request.offset,
            size=request.limit,
        )

        envelope = transform_results(response)
        envelope.filters = facet_values(response, filter_fields)
        return self.joiner.join_ratings(envelope, index_name)

    def find_by_ids(self, ids: Sequence[str]) -> ResultEnvelope:
        """Look datasets up by id across every partition."""
        if not ids:
            return ResultEnvelope()
        response = self.index.search(
            ALL_DATASET_INDICES,
            query={"ids": {"values": [str(dataset_id) for dataset_id in ids]}},
            size=FIND_BY_IDS_SIZE,
        )
        return transform_results(response)
