# tests/conftest.py
import logging
import os
import uuid

import pytest
import pytest_asyncio
from elasticsearch import AsyncElasticsearch

from async_es_query.base.fields import _PROXY_CACHE
from async_es_query.db_implementations.elasticsearch_context import (
    ElasticsearchContext,
)
from tests.fakes import FakeAsyncElasticsearch

# Silence verbose loggers
logging.getLogger("elastic_transport").setLevel(logging.WARNING)
logging.getLogger("elasticsearch").setLevel(logging.WARNING)


# --- Constants ---
ES_URL = os.getenv("TEST_ES_URL")
TEST_INDEX = "people"


# --- Fixtures ---
@pytest.fixture(autouse=True)
def clear_proxy_cache():
    _PROXY_CACHE.clear()
    yield
    _PROXY_CACHE.clear()


@pytest.fixture
def fake_client() -> FakeAsyncElasticsearch:
    return FakeAsyncElasticsearch()


@pytest.fixture
def context(fake_client) -> ElasticsearchContext:
    """A context over the recording fake client with 'people' as default index."""
    return ElasticsearchContext(fake_client, default_index=TEST_INDEX)


# Live Elasticsearch client (Function Scoped)
@pytest_asyncio.fixture(scope="function")
async def es_client():
    """Provides a real AsyncElasticsearch client when TEST_ES_URL is set and reachable."""
    if not ES_URL:
        pytest.skip("TEST_ES_URL not set; skipping live Elasticsearch tests.")
    client = AsyncElasticsearch(ES_URL, request_timeout=5)
    try:
        if not await client.ping():
            pytest.skip(f"Elasticsearch not responsive at {ES_URL}.")
        yield client
    finally:
        await client.close()


@pytest_asyncio.fixture(scope="function")
async def live_context(es_client):
    """A context over a throwaway index that is deleted after the test."""
    index = f"pytest-people-{uuid.uuid4().hex[:8]}"
    yield ElasticsearchContext(es_client, default_index=index)
    await es_client.indices.delete(index=index, ignore_unavailable=True)


# --- Logger Fixtures ---
@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_es_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})


@pytest.fixture
def capturing_logger():
    """A logger adapter whose records reach pytest's caplog."""
    _logger = logging.getLogger(f"test_es_capture.{uuid.uuid4().hex[:6]}")
    _logger.setLevel(logging.DEBUG)
    _logger.propagate = True
    return logging.LoggerAdapter(_logger, {})
