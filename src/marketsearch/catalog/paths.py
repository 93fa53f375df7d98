"""Catalog path resolution."""

from __future__ import annotations

from typing import Any, Mapping

DEFAULT_CATALOG_PATH = "0.1"
CATALOG_DEPTH = 2


def extract_catalog_path(category_path: str | None) -> str:
    """Return the two-level catalog path of ``category_path``.

    ``"1.2.3"`` becomes ``"1.2"``; a missing path falls back to ``"0.1"``.
    """
    if not category_path:
        return DEFAULT_CATALOG_PATH
    return ".".join(str(category_path).split(".")[:CATALOG_DEPTH])


def dataset_catalog_path(dataset: Mapping[str, Any]) -> str:
    categories = dataset.get("categories") or []
    category = categories[0] if categories else {}
    path = category.get("path") if isinstance(category, Mapping) else None
    return extract_catalog_path(path)
