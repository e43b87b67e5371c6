# tests/base/test_response.py
import logging

import pytest
from elasticsearch import ApiError, ConnectionError, ConnectionTimeout

from async_es_query.base.query import SearchRequest
from async_es_query.base.response import ResponseNormalizer, SearchOutcome

from tests.fakes import make_api_error, make_meta, search_response
from tests.models import Person


@pytest.fixture
def request_() -> SearchRequest:
    return SearchRequest(
        index="people", query={"bool": {"must": [{"term": {"age": {"value": 20}}}]}}, size=10
    )


@pytest.fixture
def normalizer() -> ResponseNormalizer[Person]:
    return ResponseNormalizer(Person)


class _ApiResponse:
    """Mimics ObjectApiResponse: a body plus transport meta."""

    def __init__(self, body, status=200):
        self.body = body
        self.meta = make_meta(status)


def test_successful_response_deserializes_in_engine_order(normalizer, request_, logger):
    body = search_response(
        [
            {"id": "b", "name": "B", "age": 30},
            {"id": "a", "name": "A", "age": 20},
        ]
    )
    outcome = normalizer.from_response(request_, body, logger)
    assert isinstance(outcome, SearchOutcome)
    assert outcome.success and outcome.is_valid
    assert [p.id for p in outcome.documents] == ["b", "a"]
    assert all(isinstance(p, Person) for p in outcome)
    assert outcome.total == 2
    assert len(outcome) == 2
    assert outcome.debug_information is None
    assert outcome.original_exception is None
    assert outcome.request_uri == "/people/_search"


def test_api_response_object_and_node_uri(normalizer, request_, logger):
    outcome = normalizer.from_response(
        request_, _ApiResponse(search_response([{"name": "A"}])), logger
    )
    assert outcome.success
    assert outcome.request_uri == "http://localhost:9200/people/_search"


def test_hit_id_fills_missing_entity_id(normalizer, request_, logger):
    body = search_response([{"name": "A"}])
    body["hits"]["hits"][0]["_id"] = "engine-id"
    outcome = normalizer.from_response(request_, body, logger)
    assert outcome.documents[0].id == "engine-id"


def test_bad_hit_is_skipped_and_logged(normalizer, request_, capturing_logger, caplog):
    body = search_response([{"id": "ok", "name": "A"}, {"id": "bad", "age": "old"}])
    with caplog.at_level(logging.ERROR):
        outcome = normalizer.from_response(request_, body, capturing_logger)
    assert [p.id for p in outcome.documents] == ["ok"]
    assert outcome.success and outcome.is_valid
    assert "Skipping hit 'bad'" in caplog.text


def test_timed_out_body_is_success_but_invalid(normalizer, request_, capturing_logger, caplog):
    body = search_response([{"name": "A"}], timed_out=True)
    with caplog.at_level(logging.INFO):
        outcome = normalizer.from_response(request_, body, capturing_logger)
    assert outcome.success
    assert not outcome.is_valid
    assert outcome.timed_out
    assert "[Success:True]\t[IsValid:False]\t/people/_search" in caplog.text
    assert "# Request:" in outcome.debug_information


def test_shard_failures_make_response_invalid(normalizer, request_, logger):
    body = search_response(
        [], _shards={"total": 5, "successful": 4, "skipped": 0, "failed": 1}
    )
    outcome = normalizer.from_response(request_, body, logger)
    assert outcome.success and not outcome.is_valid


def test_inner_hits_are_collected_per_document(normalizer, request_, logger):
    body = search_response([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}])
    body["hits"]["hits"][0]["inner_hits"] = {
        "items": {"hits": {"hits": [{"_source": {"name": "类型"}}]}}
    }
    outcome = normalizer.from_response(request_, body, logger)
    assert outcome.inner_hits == [{"items": [{"name": "类型"}]}, {}]


def test_named_inner_hits_are_merged_under_their_path(normalizer, logger):
    request = SearchRequest(
        index="people",
        query={"bool": {}},
        inner_hit_paths={"items": "items", "items_1": "items"},
    )
    body = search_response([{"id": "a", "name": "A"}])
    body["hits"]["hits"][0]["inner_hits"] = {
        "items": {"hits": {"hits": [{"_source": {"quantity": 1}}]}},
        "items_1": {"hits": {"hits": [{"_source": {"name": "b"}}]}},
    }
    outcome = normalizer.from_response(request, body, logger)
    assert outcome.inner_hits == [{"items": [{"quantity": 1}, {"name": "b"}]}]


def test_total_as_plain_int(normalizer, request_, logger):
    body = search_response([])
    body["hits"]["total"] = 7
    assert normalizer.from_response(request_, body, logger).total == 7


def test_api_error_becomes_failed_outcome(normalizer, request_, capturing_logger, caplog):
    error = make_api_error(ApiError, 400, {"error": {"type": "parsing_exception"}})
    with caplog.at_level(logging.INFO):
        outcome = normalizer.from_error(request_, error, capturing_logger)
    assert not outcome.success and not outcome.is_valid
    assert not outcome.timed_out
    assert outcome.original_exception is error
    assert outcome.request_uri == "http://localhost:9200/people/_search"
    assert "parsing_exception" in outcome.debug_information
    assert "[Success:False]\t[IsValid:False]" in caplog.text
    assert "Original exception" in caplog.text


def test_connection_timeout_is_distinguishable(normalizer, request_, logger):
    outcome = normalizer.from_error(request_, ConnectionTimeout("timed out"), logger)
    assert outcome.timed_out
    assert not outcome.success
    assert outcome.request_uri == "/people/_search"


def test_transport_error_without_response(normalizer, request_, logger):
    outcome = normalizer.from_error(request_, ConnectionError("refused"), logger)
    assert not outcome.success and not outcome.timed_out
    assert "# Response:\n<none>" in outcome.debug_information


def test_untyped_normalizer_returns_dicts(request_, logger):
    outcome = ResponseNormalizer().from_response(
        request_, search_response([{"anything": 1}]), logger
    )
    assert outcome.documents == [{"anything": 1}]


def test_request_uri_without_index():
    request = SearchRequest(index=None, query={"bool": {}})
    assert ResponseNormalizer.request_uri(request) == "/_search"


def test_logging_failure_never_raises(normalizer, request_):
    class BrokenLogger:
        def __getattr__(self, name):
            def fail(*args, **kwargs):
                raise RuntimeError("handler exploded")

            return fail

    outcome = normalizer.from_error(request_, ConnectionTimeout("slow"), BrokenLogger())
    assert outcome.timed_out
