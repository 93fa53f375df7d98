"""Tests for category metadata lookup and dataset categorization."""

from __future__ import annotations

from marketsearch.catalog.categories import CategoryProvider, prepare_dataset, text_fields_of
from marketsearch.models import FieldKind

INDEX = "marketplace"


class TestCategoryProvider:
    """Test CategoryProvider.fetch."""

    def test_fetch_catalog_with_children(self, fake_index) -> None:
        catalog = CategoryProvider(fake_index).fetch(INDEX, "0.1")

        assert catalog.path == "0.1"
        assert catalog.name == "Finance"
        assert catalog.fields["title"] is FieldKind.TEXT
        assert catalog.filter_fields() == ["tags", "format"]
        assert [child["path"] for child in catalog.children] == ["0.1.2"]

    def test_fetch_skips_grandchildren(self, fake_index) -> None:
        fake_index.put_category(INDEX, {"id": "deep", "path": "0.1.2.3"})

        catalog = CategoryProvider(fake_index).fetch(INDEX, "0.1")

        assert [child["path"] for child in catalog.children] == ["0.1.2"]

    def test_fetch_missing_catalog(self, fake_index) -> None:
        catalog = CategoryProvider(fake_index).fetch(INDEX, "9.9")

        assert catalog.path == "9.9"
        assert catalog.fields == {}
        assert catalog.children == []

    def test_fetch_unknown_index(self, fake_index) -> None:
        assert CategoryProvider(fake_index).fetch("missing", "0.1").fields == {}


class TestPrepareDataset:
    """Test prepare_dataset."""

    CATEGORIES = [
        {"id": "c1", "name": "Finance", "path": "0.1", "metadata": {}},
        {"id": 7, "name": "Markets", "path": "0.1.2"},
    ]

    def test_denormalizes_known_categories(self) -> None:
        dataset = {"title": "Bonds", "categories": [{"id": "7"}, {"id": "c1", "path": "stale"}]}

        prepared = prepare_dataset(self.CATEGORIES, dataset)

        assert prepared["categories"] == [
            {"id": 7, "name": "Markets", "path": "0.1.2"},
            {"id": "c1", "name": "Finance", "path": "0.1"},
        ]

    def test_keeps_unknown_categories(self) -> None:
        dataset = {"title": "Bonds", "categories": [{"id": "nope", "path": "5.5"}, "loose"]}

        prepared = prepare_dataset(self.CATEGORIES, dataset)

        assert prepared["categories"] == [{"id": "nope", "path": "5.5"}, "loose"]

    def test_sets_raw_title(self) -> None:
        assert prepare_dataset([], {"title": " Amazon  Sales"})["raw_title"] == "amazon sales"

    def test_does_not_mutate_input(self) -> None:
        dataset = {"title": "A", "categories": [{"id": "c1"}]}
        prepare_dataset(self.CATEGORIES, dataset)
        assert dataset == {"title": "A", "categories": [{"id": "c1"}]}

    def test_no_categories_key(self) -> None:
        assert "categories" not in prepare_dataset(self.CATEGORIES, {"title": "A"})


class TestTextFieldsOf:
    def test_collects_text_fields_once(self) -> None:
        categories = [
            {"path": "0.1", "metadata": {"title": {"indexes": ["text"]}, "tags": {"indexes": ["filter"]}}},
            {"path": "0.2", "metadata": {"title": {"indexes": ["text"]}, "summary": {"indexes": ["text"]}}},
            {"path": "0.3"},
        ]
        assert text_fields_of(categories) == ["title", "summary"]
