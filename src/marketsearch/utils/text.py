"""Text helpers for denormalized sort keys."""

from __future__ import annotations

from typing import Iterable


def normalize_whitespace(parts: Iterable[str]) -> str:
    """Collapse whitespace and join parts with single spaces."""
    return " ".join(word for part in parts for word in part.split())


def normalize_title(title: object) -> str:
    """Lower-cased, whitespace-collapsed title used as the ``raw_title`` sort key."""
    if title is None:
        return ""
    return normalize_whitespace([str(title)]).lower()
