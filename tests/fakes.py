# tests/fakes.py
"""In-memory stand-ins for AsyncElasticsearch that record every call."""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import ApiError, NotFoundError


def make_meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.01,
        node=NodeConfig("http", "localhost", 9200),
    )


def make_api_error(cls=ApiError, status: int = 400, body: Any = None) -> ApiError:
    body = body if body is not None else {"error": {"type": "search_phase_execution_exception"}}
    return cls(message=f"HTTP {status}", meta=make_meta(status), body=body)


def search_response(sources: List[Dict[str, Any]], **overrides: Any) -> Dict[str, Any]:
    """Builds a `_search` response body around the given sources."""
    hits = []
    for source in sources:
        hit = {"_index": "people", "_id": source.get("id"), "_score": 1.0, "_source": source}
        hits.append(hit)
    body: Dict[str, Any] = {
        "took": 3,
        "timed_out": False,
        "_shards": {"total": 5, "successful": 5, "skipped": 0, "failed": 0},
        "hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": hits},
    }
    body.update(overrides)
    return body


class FakeIndices:
    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.existing: set = set()
        self.error: Optional[Exception] = None

    def _record(self, name: str, kwargs: Dict[str, Any]) -> None:
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    async def exists(self, **kwargs):
        self._record("exists", kwargs)
        return kwargs["index"] in self.existing

    async def create(self, **kwargs):
        self._record("create", kwargs)
        self.existing.add(kwargs["index"])
        return {"acknowledged": True, "index": kwargs["index"]}

    async def put_settings(self, **kwargs):
        self._record("put_settings", kwargs)
        return {"acknowledged": True}

    async def put_mapping(self, **kwargs):
        self._record("put_mapping", kwargs)
        return {"acknowledged": True}


class FakeAsyncElasticsearch:
    """
    Records calls and answers from configured responses.

    `search_response` / `search_error` drive `search`; documents written with
    `index` or `bulk` can be read back with `get`.
    """

    def __init__(
        self,
        search_response: Optional[Dict[str, Any]] = None,
        search_error: Optional[BaseException] = None,
    ):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.options_calls: List[Dict[str, Any]] = []
        self.search_response = search_response or search_response_empty()
        self.search_error = search_error
        self.bulk_response: Optional[Dict[str, Any]] = None
        self.documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.indices = FakeIndices()

    def options(self, **kwargs):
        self.options_calls.append(kwargs)
        return self

    async def search(self, **kwargs):
        self.calls.append(("search", kwargs))
        if self.search_error is not None:
            raise self.search_error
        return self.search_response

    async def get(self, **kwargs):
        self.calls.append(("get", kwargs))
        key = (kwargs["index"], kwargs["id"])
        if key not in self.documents:
            raise make_api_error(
                NotFoundError, 404, {"_index": key[0], "_id": key[1], "found": False}
            )
        return {
            "_index": key[0],
            "_id": key[1],
            "found": True,
            "_source": self.documents[key],
        }

    async def index(self, **kwargs):
        self.calls.append(("index", kwargs))
        doc_id = kwargs.get("id") or uuid.uuid4().hex
        key = (kwargs["index"], doc_id)
        result = "updated" if key in self.documents else "created"
        self.documents[key] = dict(kwargs["document"])
        return {"_index": key[0], "_id": doc_id, "result": result}

    async def bulk(self, **kwargs):
        self.calls.append(("bulk", kwargs))
        if self.bulk_response is not None:
            return self.bulk_response
        operations = kwargs["operations"]
        items = []
        for action, source in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            doc_id = meta.get("_id") or uuid.uuid4().hex
            self.documents[(meta["_index"], doc_id)] = dict(source)
            items.append({"index": {"_index": meta["_index"], "_id": doc_id, "status": 201}})
        return {"took": 1, "errors": False, "items": items}

    async def update(self, **kwargs):
        self.calls.append(("update", kwargs))
        key = (kwargs["index"], kwargs["id"])
        if key not in self.documents:
            raise make_api_error(NotFoundError, 404, {"error": "document_missing_exception"})
        current = self.documents[key]
        merged = {**current, **kwargs["doc"]}
        result = "noop" if merged == current else "updated"
        self.documents[key] = merged
        return {"_index": key[0], "_id": key[1], "result": result}

    def last_call(self, name: str) -> Dict[str, Any]:
        for call_name, kwargs in reversed(self.calls):
            if call_name == name:
                return kwargs
        raise AssertionError(f"No '{name}' call recorded; calls: {self.calls}")


def search_response_empty() -> Dict[str, Any]:
    return search_response([])
