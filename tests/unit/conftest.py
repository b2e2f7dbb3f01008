"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from arborist.tree import InMemoryTreeQuery
from tests.helpers.trees import query_from

# Two roots, one of them with a nested branch two levels deep.
SAMPLE_SHAPE = {
    "docs": {"invoices": {"2025": {}, "2026": {}}, "receipts": {}},
    "music": {},
}


@pytest.fixture
def sample_query() -> InMemoryTreeQuery:
    """In-memory store holding ``SAMPLE_SHAPE``."""
    return query_from(SAMPLE_SHAPE)
