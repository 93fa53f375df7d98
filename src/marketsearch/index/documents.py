"""Elasticsearch-backed dataset and category storage."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from elasticsearch import Elasticsearch, helpers

LOGGER = logging.getLogger(__name__)

CATEGORIES_SUFFIX = "_categories"
ALL_DATASET_INDICES = f"*,-*{CATEGORIES_SUFFIX}"
MAX_CATEGORIES = 1000


def categories_index(index: str) -> str:
    """Name of the index holding the category tree of ``index``."""
    return f"{index}{CATEGORIES_SUFFIX}"


def _body(response: Any) -> Dict[str, Any]:
    return getattr(response, "body", response)


def dataset_mappings(text_fields: Sequence[str] = ()) -> Dict[str, Any]:
    """Mappings for a dataset index.

    Strings default to ``keyword`` so facet filters and aggregations match
    exact values; fields declared as text are analysed for phrase-prefix
    matching.
    """
    properties: Dict[str, Any] = {
        "id": {"type": "keyword"},
        "raw_title": {"type": "keyword"},
        "categories": {"properties": {"path": {"type": "keyword"}}},
    }
    for field_name in text_fields:
        properties[field_name] = {"type": "text"}
    return {
        "dynamic_templates": [
            {"strings_as_keywords": {"match_mapping_type": "string", "mapping": {"type": "keyword"}}}
        ],
        "properties": properties,
    }


def category_mappings() -> Dict[str, Any]:
    return {
        "dynamic_templates": [
            {"strings_as_keywords": {"match_mapping_type": "string", "mapping": {"type": "keyword"}}}
        ],
        "properties": {
            "path": {"type": "keyword"},
            "metadata": {"type": "object", "enabled": False},
        },
    }


class DatasetIndex:
    """Persistence layer for dataset and category documents."""

    def __init__(self, client: Elasticsearch, *, refresh: str | bool = "wait_for") -> None:
        self.client = client
        self.refresh = refresh
        self._ensured: set[str] = set()

    def close(self) -> None:
        self.client.close()

    def ensure_index(self, index: str, *, text_fields: Sequence[str] = ()) -> bool:
        """Create the dataset and category indices of ``index`` unless they exist.

        Returns True if the dataset index was created. Indices already
        checked by this instance are not looked up again.
        """
        if index in self._ensured:
            return False
        if not self.client.indices.exists(index=categories_index(index)):
            self.client.indices.create(index=categories_index(index), mappings=category_mappings())
        created = False
        if not self.client.indices.exists(index=index):
            self.client.indices.create(index=index, mappings=dataset_mappings(text_fields))
            LOGGER.info("Created index %s", index)
            created = True
        self._ensured.add(index)
        return created

    def search(
        self,
        index: str,
        *,
        query: Mapping[str, Any],
        aggs: Mapping[str, Any] | None = None,
        sort: List[Any] | None = None,
        from_: int = 0,
        size: int = 10,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "index": index,
            "query": query,
            "from_": from_,
            "size": size,
            "track_total_hits": True,
        }
        if aggs:
            kwargs["aggs"] = aggs
        if sort:
            kwargs["sort"] = sort
        return _body(self.client.search(**kwargs))

    def count(self, index: str, *, query: Mapping[str, Any]) -> int:
        return int(_body(self.client.count(index=index, query=query))["count"])

    def get(self, index: str, doc_id: str) -> Dict[str, Any]:
        return _body(self.client.get(index=index, id=doc_id))["_source"]

    def create(self, index: str, document: Mapping[str, Any]) -> str:
        response = _body(self.client.index(index=index, document=dict(document), refresh=self.refresh))
        return response["_id"]

    def update_partial(self, index: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self.client.update(index=index, id=doc_id, doc=dict(fields), refresh=self.refresh)

    def put(self, index: str, doc_id: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        return _body(
            self.client.index(index=index, id=doc_id, document=dict(document), refresh=self.refresh)
        )

    def delete(self, index: str, doc_id: str) -> Dict[str, Any]:
        return _body(self.client.delete(index=index, id=doc_id, refresh=self.refresh))

    def bulk(self, index: str, documents: Iterable[Mapping[str, Any]]) -> int:
        """Index ``documents`` in one bulk request keyed by their ``id``.

        Raises ``elasticsearch.helpers.BulkIndexError`` if any item is rejected.
        """
        actions = (
            {"_index": index, "_id": document["id"], "_source": dict(document)}
            for document in documents
        )
        success, _ = helpers.bulk(self.client, actions, refresh=self.refresh)
        return success

    def read_categories(self, index: str) -> List[Dict[str, Any]]:
        """All category documents of ``index``; ``id`` defaults to the document ``_id``."""
        response = self.search_categories(index, query={"match_all": {}}, size=MAX_CATEGORIES)
        return [{"id": hit["_id"], **hit["_source"]} for hit in response["hits"]["hits"]]

    def search_categories(
        self, index: str, *, query: Mapping[str, Any], size: int = MAX_CATEGORIES
    ) -> Dict[str, Any]:
        return _body(
            self.client.search(
                index=categories_index(index),
                query=query,
                size=size,
                ignore_unavailable=True,
            )
        )

    def put_category(self, index: str, category: Mapping[str, Any]) -> str:
        document = {key: value for key, value in category.items() if key != "id"}
        kwargs: Dict[str, Any] = {"index": categories_index(index), "document": document, "refresh": self.refresh}
        if category.get("id") is not None:
            kwargs["id"] = str(category["id"])
        return _body(self.client.index(**kwargs))["_id"]

    def update_category(self, index: str, category_id: str, fields: Mapping[str, Any]) -> None:
        self.client.update(index=categories_index(index), id=category_id, doc=dict(fields))
