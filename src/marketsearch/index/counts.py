"""Background recomputation of per-category dataset counts."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict

from marketsearch.index.documents import DatasetIndex
from marketsearch.index.query import category_path_filter

LOGGER = logging.getLogger(__name__)


class CountUpdater:
    """Keeps the ``count`` field of every category in step with the dataset index.

    Counts are advisory: ``schedule`` returns nothing and failures only reach
    the log.
    """

    def __init__(self, index: DatasetIndex, *, executor: Executor | None = None) -> None:
        self.index = index
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="category-counts")

    def update_counts(self, index_name: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for category in self.index.read_categories(index_name):
            path = category.get("path")
            if not path:
                continue
            count = self.index.count(index_name, query=category_path_filter(str(path)))
            self.index.update_category(index_name, str(category["id"]), {"count": count})
            counts[str(path)] = count
        LOGGER.debug("Updated %d category counts in %s", len(counts), index_name)
        return counts

    def schedule(self, index_name: str) -> None:
        future = self.executor.submit(self.update_counts, index_name)
        future.add_done_callback(lambda done: self._report(index_name, done))

    @staticmethod
    def _report(index_name: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Category count update failed for %s: %s", index_name, exc)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
