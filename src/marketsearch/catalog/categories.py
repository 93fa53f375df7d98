"""Category metadata lookup and dataset categorization."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from marketsearch.index.documents import DatasetIndex
from marketsearch.models import Catalog
from marketsearch.utils.text import normalize_title

LOGGER = logging.getLogger(__name__)


class CategoryProvider:
    """Reads catalogs (category nodes with field metadata) from a partition."""

    def __init__(self, index: DatasetIndex) -> None:
        self.index = index

    def fetch(self, index_name: str, catalog_path: str) -> Catalog:
        """Return the catalog at ``catalog_path`` with its direct children.

        A path with no category document yields an empty catalog.
        """
        response = self.index.search_categories(
            index_name,
            query={
                "bool": {
                    "should": [
                        {"term": {"path": catalog_path}},
                        {"prefix": {"path": f"{catalog_path}."}},
                    ]
                }
            },
        )
        node: Dict[str, Any] | None = None
        children: List[Dict[str, Any]] = []
        depth = catalog_path.count(".") + 1
        for hit in response["hits"]["hits"]:
            category = {"id": hit["_id"], **hit["_source"]}
            path = str(category.get("path", ""))
            if path == catalog_path:
                node = category
            elif path.count(".") == depth:
                children.append(category)

        if node is None:
            LOGGER.debug("No category at %s in %s", catalog_path, index_name)
        children.sort(key=lambda category: str(category.get("path", "")))
        return Catalog.from_document(catalog_path, node, children)


def text_fields_of(categories: Sequence[Mapping[str, Any]]) -> List[str]:
    """Fields declared as text by any of ``categories``, in first-seen order."""
    fields: List[str] = []
    for category in categories:
        catalog = Catalog.from_document(str(category.get("path", "")), category)
        fields.extend(name for name in catalog.text_fields() if name not in fields)
    return fields


def prepare_dataset(categories: Sequence[Mapping[str, Any]], dataset: Mapping[str, Any]) -> Dict[str, Any]:
    """Denormalize category references and the title sort key onto ``dataset``.

    Category entries carrying a known ``id`` are replaced by that category's
    ``id``, ``name`` and ``path``; unknown entries are kept untouched.
    """
    by_id = {str(category["id"]): category for category in categories if "id" in category}
    prepared = dict(dataset)

    resolved = []
    for entry in dataset.get("categories") or []:
        known = by_id.get(str(entry.get("id"))) if isinstance(entry, Mapping) else None
        if known is None:
            resolved.append(entry)
            continue
        resolved.append({"id": known["id"], "name": known.get("name"), "path": known.get("path")})
    if "categories" in dataset:
        prepared["categories"] = resolved

    prepared["raw_title"] = normalize_title(dataset.get("title"))
    return prepared
