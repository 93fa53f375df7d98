"""Tests for search response normalization."""

from __future__ import annotations

from marketsearch.index.results import facet_values, total_hits, transform_results


def _response(total):
    return {
        "hits": {
            "total": total,
            "hits": [
                {"_index": "marketplace", "_id": "a", "_source": {"id": "a", "title": "A"}},
                {"_index": "archive", "_id": "b", "_source": {"id": "b", "title": "B"}},
            ],
        },
        "aggregations": {
            "tags": {"buckets": [{"key": "finance", "doc_count": 2}, {"key": "amazon", "doc_count": 1}]},
        },
    }


class TestTransformResults:
    def test_tags_documents_with_their_index(self) -> None:
        envelope = transform_results(_response({"value": 2, "relation": "eq"}))

        assert envelope.data == [
            {"id": "a", "title": "A", "index": "marketplace"},
            {"id": "b", "title": "B", "index": "archive"},
        ]
        assert envelope.total_items == 2
        assert envelope.filters == {}

    def test_integer_total(self) -> None:
        assert total_hits(_response(7)) == 7

    def test_empty_response(self) -> None:
        envelope = transform_results({})
        assert envelope.data == []
        assert envelope.total_items == 0


class TestFacetValues:
    def test_keeps_bucket_keys_in_order(self) -> None:
        facets = facet_values(_response(2), ["tags"])
        assert facets == {"tags": ["finance", "amazon"]}

    def test_missing_aggregation_is_empty(self) -> None:
        facets = facet_values(_response(2), ["tags", "format"])
        assert facets["format"] == []
        assert set(facets) == {"tags", "format"}

    def test_no_aggregations_section(self) -> None:
        assert facet_values({"hits": {}}, ["tags"]) == {"tags": []}
