"""Shared fixtures: an in-memory dataset index and a seeded service."""

from __future__ import annotations

from collections import Counter
from concurrent.futures import Future
from typing import Any, Dict, List

import pytest

from marketsearch.index.counts import CountUpdater
from marketsearch.index.documents import ALL_DATASET_INDICES
from marketsearch.index.writer import DatasetWriter
from marketsearch.relations.store import SQLiteRelationStore
from marketsearch.service import DatasetService


class InlineExecutor:
    """Executor running submitted work immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


def _values(source: Dict[str, Any], dotted: str) -> List[Any]:
    current: List[Any] = [source]
    for part in dotted.split("."):
        found: List[Any] = []
        for item in current:
            if isinstance(item, dict) and part in item:
                value = item[part]
                found.extend(value if isinstance(value, list) else [value])
        current = found
    return current


def _phrase_prefix(query: str, text: str) -> bool:
    words = query.lower().split()
    tokens = str(text).lower().split()
    if not words:
        return False
    for start in range(len(tokens) - len(words) + 1):
        window = tokens[start : start + len(words)]
        if window[:-1] == words[:-1] and window[-1].startswith(words[-1]):
            return True
    return False


def _matches(query: Dict[str, Any], doc_id: str, source: Dict[str, Any]) -> bool:
    if "match_all" in query:
        return True
    if "bool" in query:
        clause = query["bool"]
        if not all(_matches(q, doc_id, source) for q in clause.get("must", [])):
            return False
        if not all(_matches(q, doc_id, source) for q in clause.get("filter", [])):
            return False
        if any(_matches(q, doc_id, source) for q in clause.get("must_not", [])):
            return False
        should = clause.get("should", [])
        if should and not any(_matches(q, doc_id, source) for q in should):
            return False
        return True
    if "term" in query:
        ((field_name, value),) = query["term"].items()
        return any(str(v) == str(value) for v in _values(source, field_name))
    if "prefix" in query:
        ((field_name, value),) = query["prefix"].items()
        return any(str(v).startswith(value) for v in _values(source, field_name))
    if "ids" in query:
        return doc_id in [str(v) for v in query["ids"]["values"]]
    if "multi_match" in query:
        spec = query["multi_match"]
        fields = spec.get("fields") or [k for k, v in source.items() if isinstance(v, str)]
        return any(_phrase_prefix(spec["query"], value) for f in fields for value in _values(source, f))
    raise AssertionError(f"Unsupported query clause: {query}")


class FakeDatasetIndex:
    """In-memory stand-in for ``DatasetIndex`` evaluating the queries we emit."""

    def __init__(self) -> None:
        self.datasets: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.categories: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.search_calls: List[Dict[str, Any]] = []
        self._next_id = 0

    def close(self) -> None:
        pass

    def ensure_index(self, index: str, *, text_fields=()) -> bool:
        created = index not in self.datasets
        self.datasets.setdefault(index, {})
        return created

    def _search(self, docs: List[tuple], query, aggs, from_, size) -> Dict[str, Any]:
        matched = [(idx, doc_id, src) for idx, doc_id, src in docs if _matches(query, doc_id, src)]
        matched.sort(key=lambda item: str(item[2].get("raw_title", "")))
        aggregations = {}
        for name, spec in (aggs or {}).items():
            counts = Counter(
                value for _, _, src in matched for value in _values(src, spec["terms"]["field"])
            )
            buckets = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
            aggregations[name] = {"buckets": [{"key": k, "doc_count": c} for k, c in buckets]}
        return {
            "hits": {
                "total": {"value": len(matched), "relation": "eq"},
                "hits": [
                    {"_index": idx, "_id": doc_id, "_score": 1.0, "_source": dict(src)}
                    for idx, doc_id, src in matched[from_ : from_ + size]
                ],
            },
            "aggregations": aggregations,
        }

    def search(self, index, *, query, aggs=None, sort=None, from_=0, size=10):
        self.search_calls.append({"index": index, "query": query, "aggs": aggs, "sort": sort, "from_": from_, "size": size})
        names = list(self.datasets) if index == ALL_DATASET_INDICES else [index]
        docs = [
            (name, doc_id, src)
            for name in names
            for doc_id, src in self.datasets.get(name, {}).items()
        ]
        return self._search(docs, query, aggs, from_, size)

    def count(self, index, *, query) -> int:
        return sum(
            1 for doc_id, src in self.datasets.get(index, {}).items() if _matches(query, doc_id, src)
        )

    def get(self, index, doc_id):
        return dict(self.datasets[index][doc_id])

    def create(self, index, document) -> str:
        self._next_id += 1
        doc_id = f"generated-{self._next_id}"
        self.datasets.setdefault(index, {})[doc_id] = dict(document)
        return doc_id

    def update_partial(self, index, doc_id, fields) -> None:
        self.datasets[index][doc_id].update(fields)

    def put(self, index, doc_id, document):
        self.datasets.setdefault(index, {})[doc_id] = dict(document)
        return {"_id": doc_id, "result": "updated"}

    def delete(self, index, doc_id):
        del self.datasets[index][doc_id]
        return {"_id": doc_id, "result": "deleted"}

    def bulk(self, index, documents) -> int:
        store = self.datasets.setdefault(index, {})
        count = 0
        for document in documents:
            store[document["id"]] = dict(document)
            count += 1
        return count

    def read_categories(self, index):
        return [{"id": cid, **src} for cid, src in self.categories.get(index, {}).items()]

    def search_categories(self, index, *, query, size=1000):
        docs = [(index, cid, src) for cid, src in self.categories.get(index, {}).items()]
        return self._search(docs, query, None, 0, size)

    def put_category(self, index, category) -> str:
        cid = str(category["id"])
        self.categories.setdefault(index, {})[cid] = {k: v for k, v in category.items() if k != "id"}
        return cid

    def update_category(self, index, category_id, fields) -> None:
        self.categories[index][category_id].update(fields)


INDEX = "marketplace"

CATEGORIES = [
    {
        "id": "cat-root",
        "name": "Finance",
        "path": "0.1",
        "metadata": {
            "title": {"indexes": ["text"]},
            "description": {"indexes": ["text"]},
            "tags": {"indexes": ["filter"]},
            "format": {"indexes": ["filter"]},
            "vendor": {"indexes": ["unknown"]},
        },
    },
    {"id": "cat-markets", "name": "Markets", "path": "0.1.2"},
    {"id": "cat-other", "name": "Health", "path": "0.2"},
]

DATASETS = [
    {
        "id": "ds-1",
        "title": "Retail Payments",
        "description": "Card payments across online shops",
        "tags": ["finance", "e-commerce"],
        "format": "csv",
        "categories": [{"id": "cat-root"}],
    },
    {
        "id": "ds-2",
        "title": "Amazon Sales",
        "description": "Marketplace sales by quarter",
        "tags": ["amazon", "e-commerce", "finance"],
        "format": "json",
        "categories": [{"id": "cat-root"}],
    },
    {
        "id": "ds-3",
        "title": "World Bank Indicators",
        "description": "Development indicators by country",
        "tags": ["finance", "world bank"],
        "format": "csv",
        "categories": [{"id": "cat-markets"}],
    },
]


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def fake_index() -> FakeDatasetIndex:
    index = FakeDatasetIndex()
    for category in CATEGORIES:
        index.put_category(INDEX, category)
    return index


@pytest.fixture
def relations(tmp_path):
    store = SQLiteRelationStore(tmp_path / "relations.db")
    yield store
    store.close()


@pytest.fixture
def service(fake_index, relations, inline_executor) -> DatasetService:
    counts = CountUpdater(fake_index, executor=inline_executor)
    writer = DatasetWriter(fake_index, counts, bulk_wait_ms=5000, executor=InlineExecutor())
    return DatasetService(fake_index, relations, writer=writer)


@pytest.fixture
def seeded_service(service) -> DatasetService:
    assert service.create_datasets_bulk(INDEX, {"datasets": DATASETS})
    return service
