"""Joins relationship-store attributes onto search results."""

from __future__ import annotations

import logging
import sqlite3
from typing import List

from marketsearch.models import ResultEnvelope
from marketsearch.relations.store import SQLiteRelationStore

LOGGER = logging.getLogger(__name__)


class RelationshipJoiner:
    def __init__(self, store: SQLiteRelationStore) -> None:
        self.store = store

    def join_ratings(self, envelope: ResultEnvelope, index_name: str) -> ResultEnvelope:
        """Merge each document's average rating into it, keeping result order.

        A failed lookup leaves that document without rating attributes.
        """
        joined = []
        for document in envelope.data:
            try:
                rating = self.store.avg_rating(str(document.get("id")), index_name)
            except sqlite3.Error as exc:
                LOGGER.warning("Rating lookup failed for %s in %s: %s", document.get("id"), index_name, exc)
                joined.append(document)
                continue
            joined.append({**document, **rating})
        envelope.data = joined
        return envelope

    def list_subscribers(self, index_name: str, dataset_id: str) -> List[str]:
        return self.store.dataset_users(index_name, dataset_id)

    def is_subscribed(self, dataset_id: str, index_name: str, user_id: str) -> bool:
        return self.store.is_subscribed(dataset_id, index_name, user_id)
