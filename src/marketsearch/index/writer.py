"""Dataset writes and bulk loading."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence

from marketsearch.catalog.categories import prepare_dataset, text_fields_of
from marketsearch.index.counts import CountUpdater
from marketsearch.index.documents import DatasetIndex

LOGGER = logging.getLogger(__name__)


class BulkStage(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


class BulkJob:
    """Status handle of one bulk load."""

    def __init__(self, index_name: str, size: int) -> None:
        self.index_name = index_name
        self.size = size
        self.stage = BulkStage.PENDING
        self.indexed = 0
        self.error: BaseException | None = None
        self._finished = threading.Event()

    def advance(self, stage: BulkStage) -> None:
        self.stage = stage
        if stage in (BulkStage.INDEXED, BulkStage.FAILED):
            self._finished.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the job finishes or ``timeout`` seconds pass. True if finished."""
        return self._finished.wait(timeout)


class DatasetWriter:
    """Coordinates dataset writes and the count recomputation that follows them."""

    def __init__(
        self,
        index: DatasetIndex,
        counts: CountUpdater,
        *,
        bulk_wait_ms: int = 5000,
        executor: Executor | None = None,
    ) -> None:
        self.index = index
        self.counts = counts
        self.bulk_wait_ms = bulk_wait_ms
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="bulk-index")

    def _categories(self, index_name: str) -> List[Dict[str, Any]]:
        """Read the categories of ``index_name``, creating its indices on first write."""
        categories = self.index.read_categories(index_name)
        self.index.ensure_index(index_name, text_fields=text_fields_of(categories))
        return categories

    def _prepare(self, index_name: str, documents: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        categories = self._categories(index_name)
        prepared = []
        for document in documents:
            dataset = prepare_dataset(categories, document)
            if dataset.get("id") is None:
                dataset["id"] = uuid.uuid4().hex
            prepared.append(dataset)
        return prepared

    def _run_bulk(self, job: BulkJob, documents: Sequence[Mapping[str, Any]]) -> None:
        try:
            job.advance(BulkStage.PREPARING)
            prepared = self._prepare(job.index_name, documents)
            job.advance(BulkStage.INDEXING)
            job.indexed = self.index.bulk(job.index_name, prepared)
        except Exception as exc:
            LOGGER.exception("Bulk load into %s failed: %s", job.index_name, exc)
            job.error = exc
            job.advance(BulkStage.FAILED)
            return
        job.advance(BulkStage.INDEXED)
        LOGGER.info("Bulk loaded %d datasets into %s", job.indexed, job.index_name)

    def submit_bulk(self, index_name: str, documents: Sequence[Mapping[str, Any]]) -> BulkJob:
        job = BulkJob(index_name, len(documents))
        self.executor.submit(self._run_bulk, job, list(documents))
        return job

    def create_many(self, index_name: str, documents: Sequence[Mapping[str, Any]]) -> bool:
        """Bulk load ``documents``; True only if indexing finished within the wait bound.

        A job still running at the bound is reported as False and keeps
        running; it is neither cancelled nor retried.
        """
        job = self.submit_bulk(index_name, documents)
        job.wait(self.bulk_wait_ms / 1000.0)
        if job.stage is not BulkStage.INDEXED:
            LOGGER.warning(
                "Bulk load into %s not indexed after %d ms (stage: %s)",
                index_name,
                self.bulk_wait_ms,
                job.stage.value,
            )
            return False
        return True

    def create_one(self, index_name: str, document: Mapping[str, Any]) -> str:
        categories = self._categories(index_name)
        created_id = self.index.create(index_name, prepare_dataset(categories, document))
        # the index assigns the id; expose it as a regular field for callers
        self.index.update_partial(index_name, created_id, {"id": created_id})
        self.counts.schedule(index_name)
        return created_id

    def update_one(self, index_name: str, dataset_id: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        categories = self._categories(index_name)
        dataset = prepare_dataset(categories, document)
        dataset["id"] = str(dataset_id)
        ack = self.index.put(index_name, str(dataset_id), dataset)
        self.counts.schedule(index_name)
        return ack

    def delete_one(self, index_name: str, dataset_id: str) -> Dict[str, Any]:
        ack = self.index.delete(index_name, str(dataset_id))
        self.counts.schedule(index_name)
        return ack

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
        self.counts.shutdown(wait=wait)
