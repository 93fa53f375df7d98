"""Elasticsearch connection factory."""

from __future__ import annotations

import logging

from elasticsearch import Elasticsearch

from marketsearch.config import AppConfig

LOGGER = logging.getLogger(__name__)


def connect_to_es(config: AppConfig) -> Elasticsearch:
    """Open a client for the cluster named in ``config``.

    The client is shared by every request; pooling and retries stay with the
    transport layer.
    """
    LOGGER.debug("Connecting to Elasticsearch at %s", config.es_url)
    return Elasticsearch(config.es_url, request_timeout=config.request_timeout)
