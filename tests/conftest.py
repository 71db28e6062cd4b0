"""
Shared fixtures for vault tests.
"""

import pytest_asyncio

from dbops.vault_server.store.memory import InMemoryDocumentStore

from .factories import SAMPLE_DATA


@pytest_asyncio.fixture
async def store():
    """Connected, empty in-memory store."""
    store = InMemoryDocumentStore()
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def seeded_store(store):
    """In-memory store holding SAMPLE_DATA."""
    for name, documents in SAMPLE_DATA.items():
        store.seed(name, documents)
    return store
