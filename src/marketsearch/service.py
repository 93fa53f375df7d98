"""Dataset operations exposed to the API and CLI layers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

from marketsearch.catalog.categories import CategoryProvider
from marketsearch.catalog.paths import dataset_catalog_path
from marketsearch.config import AppConfig
from marketsearch.index.connection import connect_to_es
from marketsearch.index.counts import CountUpdater
from marketsearch.index.documents import DatasetIndex
from marketsearch.index.related import find_related
from marketsearch.index.search import Searcher
from marketsearch.index.writer import DatasetWriter
from marketsearch.models import ResultEnvelope, SearchRequest
from marketsearch.relations.joiner import RelationshipJoiner
from marketsearch.relations.store import SQLiteRelationStore

LOGGER = logging.getLogger(__name__)


class DatasetService:
    """Search, fetch and write datasets of a partition."""

    def __init__(
        self,
        index: DatasetIndex,
        relations: SQLiteRelationStore,
        *,
        writer: DatasetWriter | None = None,
        bulk_wait_ms: int = 5000,
    ) -> None:
        self.index = index
        self.relations = relations
        self.categories = CategoryProvider(index)
        self.joiner = RelationshipJoiner(relations)
        self.searcher = Searcher(index, self.categories, self.joiner)
        self.writer = writer or DatasetWriter(index, CountUpdater(index), bulk_wait_ms=bulk_wait_ms)

    @classmethod
    def from_config(cls, config: AppConfig, *, base_dir: Path | None = None) -> "DatasetService":
        index = DatasetIndex(connect_to_es(config), refresh=config.refresh)
        db_path = config.resolve_db_path(base_dir)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        relations = SQLiteRelationStore(db_path)
        return cls(index, relations, bulk_wait_ms=config.bulk_wait_ms)

    def close(self) -> None:
        """Wait for pending bulk jobs and count updates, then release connections."""
        self.writer.shutdown(wait=True)
        self.relations.close()
        self.index.close()

    def search_datasets(self, index_name: str, request: SearchRequest) -> ResultEnvelope:
        return self.searcher.find_matching(index_name, request)

    def get_dataset(self, index_name: str, dataset_id: str, *, user_id: str | None = None) -> Dict[str, Any]:
        """Fetch a dataset with its catalog, subscribers and related datasets."""
        dataset = self.index.get(index_name, dataset_id)
        catalog_path = dataset_catalog_path(dataset)
        related = find_related(self.searcher, index_name, dataset_id, dataset)
        result = {
            **dataset,
            "catalog": self.categories.fetch(index_name, catalog_path).to_dict(),
            "index": index_name,
            "subscriberIds": self.joiner.list_subscribers(index_name, dataset_id),
            "related": related,
        }
        if user_id is not None:
            result["subscribed"] = self.joiner.is_subscribed(dataset_id, index_name, user_id)
        return result

    def find_by_ids(self, ids: Sequence[str]) -> ResultEnvelope:
        return self.searcher.find_by_ids(ids)

    def subscribed_datasets(self, user_id: str) -> ResultEnvelope:
        subscriptions = self.relations.user_datasets(user_id)
        return self.find_by_ids([subscription["id"] for subscription in subscriptions])

    def create_datasets_bulk(self, index_name: str, payload: Mapping[str, Any]) -> bool:
        datasets = payload.get("datasets") or []
        LOGGER.info("Bulk loading %d datasets into %s", len(datasets), index_name)
        return self.writer.create_many(index_name, datasets)

    def create_dataset(self, index_name: str, document: Mapping[str, Any]) -> str:
        return self.writer.create_one(index_name, document)

    def update_dataset(self, index_name: str, dataset_id: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        return self.writer.update_one(index_name, dataset_id, document)

    def delete_dataset(self, index_name: str, dataset_id: str) -> Dict[str, Any]:
        return self.writer.delete_one(index_name, dataset_id)
