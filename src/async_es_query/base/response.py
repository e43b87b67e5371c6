# src/async_es_query/base/response.py

import json
import logging
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, Type, TypeVar

from elasticsearch import ApiError, ConnectionTimeout, TransportError

from .query import SearchRequest
from .utils import deserialize_document

# --- Setup Logging ---
log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SearchOutcome(Generic[T]):
    """
    Normalized result of one search round trip.

    ``success`` tells whether the engine answered; ``is_valid`` additionally
    requires a complete answer (no timeout, no failed shards). The diagnostic
    fields are only populated when something went wrong.
    """

    success: bool
    is_valid: bool
    documents: List[T] = field(default_factory=list)
    total: int = 0
    timed_out: bool = False
    inner_hits: List[Dict[str, List[Dict[str, Any]]]] = field(default_factory=list)
    request_uri: Optional[str] = None
    debug_information: Optional[str] = None
    original_exception: Optional[BaseException] = None

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)

    def __repr__(self) -> str:
        parts = [
            f"success={self.success!r}",
            f"is_valid={self.is_valid!r}",
            f"documents={len(self.documents)}",
            f"total={self.total!r}",
        ]
        if self.timed_out:
            parts.append("timed_out=True")
        if self.request_uri:
            parts.append(f"request_uri={self.request_uri!r}")
        if self.original_exception is not None:
            parts.append(f"original_exception={self.original_exception!r}")
        return f"SearchOutcome({', '.join(parts)})"


def _dump(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def _node_url(meta: Any) -> Optional[str]:
    node = getattr(meta, "node", None)
    if node is None:
        return None
    try:
        return f"{node.scheme}://{node.host}:{node.port}{node.path_prefix or ''}"
    except AttributeError:
        return str(node)


class ResponseNormalizer(Generic[T]):
    """
    Turns raw engine responses and transport errors into SearchOutcomes.

    Purely observational: nothing in here raises. A hit whose source cannot be
    deserialized is logged and left out of the documents.
    """

    def __init__(
        self,
        entity_type: Optional[Type[T]] = None,
        app_id_field: str = "id",
        naming: Optional[Callable[[str], str]] = None,
    ):
        self.entity_type = entity_type
        self.app_id_field = app_id_field
        self.naming = naming

    # --- Helpers ---
    @staticmethod
    def request_uri(request: SearchRequest, meta: Any = None) -> str:
        path = f"/{request.index}/_search" if request.index else "/_search"
        base = _node_url(meta) if meta is not None else None
        return f"{base}{path}" if base else path

    @staticmethod
    def _split(response: Any) -> Tuple[Mapping[str, Any], Any, Optional[int]]:
        """Returns (body, meta, status) for an ObjectApiResponse or a plain dict."""
        body = getattr(response, "body", response)
        meta = getattr(response, "meta", None)
        status = getattr(meta, "status", None) if meta is not None else None
        if not isinstance(body, Mapping):
            body = {}
        return body, meta, status

    def _debug_information(
        self,
        request: SearchRequest,
        uri: str,
        valid: bool,
        status: Optional[int],
        response_body: Any = None,
        error: Optional[BaseException] = None,
    ) -> Optional[str]:
        try:
            state = "Valid" if valid else "Invalid"
            lines = [
                f"{state} response built from a "
                f"{'successful' if status and 200 <= status < 300 else 'unsuccessful'} "
                f"({status if status is not None else 'no status'}) call on POST: {uri}",
                "# Request:",
                _dump(request.to_body()),
                "# Response:",
                _dump(response_body) if response_body is not None else "<none>",
            ]
            if error is not None:
                lines.append(f"# Exception: {type(error).__name__}: {error}")
            return "\n".join(lines)
        except Exception as e:
            log.warning(f"Could not render debug information: {e}")
            return None

    def _collect_hits(
        self,
        body: Mapping[str, Any],
        logger: LoggerAdapter,
        inner_hit_paths: Optional[Mapping[str, str]] = None,
    ) -> Tuple[List[Any], List[Dict[str, List[Dict[str, Any]]]]]:
        documents: List[Any] = []
        inner_hit_paths = inner_hit_paths or {}
        inner_hits: List[Dict[str, List[Dict[str, Any]]]] = []
        hits = (body.get("hits") or {}).get("hits") or []
        for hit in hits:
            source = hit.get("_source")
            try:
                if self.entity_type is None:
                    document = dict(source or {})
                else:
                    document = deserialize_document(
                        self.entity_type,
                        source,
                        hit.get("_id"),
                        self.app_id_field,
                        self.naming,
                    )
            except Exception as e:
                logger.error(
                    f"Skipping hit '{hit.get('_id')}': cannot deserialize "
                    f"into {getattr(self.entity_type, '__name__', 'dict')}: {e}",
                    exc_info=True,
                )
                continue
            documents.append(document)
            matched: Dict[str, List[Dict[str, Any]]] = {}
            for name, payload in (hit.get("inner_hits") or {}).items():
                inner = ((payload or {}).get("hits") or {}).get("hits") or []
                path = inner_hit_paths.get(name, name)
                matched.setdefault(path, []).extend(h.get("_source", {}) for h in inner)
            inner_hits.append(matched)
        return documents, inner_hits

    @staticmethod
    def _total(body: Mapping[str, Any]) -> int:
        total = (body.get("hits") or {}).get("total")
        if isinstance(total, Mapping):
            return int(total.get("value", 0))
        if isinstance(total, int):
            return total
        return 0

    def _log_outcome(self, outcome: SearchOutcome, logger: LoggerAdapter) -> None:
        try:
            logger.info(
                f"[Success:{outcome.success}]\t[IsValid:{outcome.is_valid}]"
                f"\t{outcome.request_uri}"
            )
            if not outcome.is_valid:
                logger.error(
                    outcome.debug_information
                    if outcome.debug_information
                    else "No debug information available."
                )
                if outcome.original_exception is not None:
                    logger.error(
                        f"Original exception: {outcome.original_exception!r}"
                    )
        except Exception as e:
            log.warning(f"Diagnostic logging failed: {e}")

    # --- Public API ---
    def from_response(
        self, request: SearchRequest, response: Any, logger: LoggerAdapter
    ) -> SearchOutcome[T]:
        """Normalizes a completed search call."""
        body, meta, status = self._split(response)
        uri = self.request_uri(request, meta)
        success = status is None or 200 <= status < 300
        timed_out = bool(body.get("timed_out", False))
        shards = body.get("_shards") or {}
        failed_shards = int(shards.get("failed", 0) or 0)
        is_valid = success and not timed_out and failed_shards == 0

        documents, inner_hits = self._collect_hits(
            body, logger, request.inner_hit_paths
        )
        outcome: SearchOutcome[T] = SearchOutcome(
            success=success,
            is_valid=is_valid,
            documents=documents,
            total=self._total(body),
            timed_out=timed_out,
            inner_hits=inner_hits,
            request_uri=uri,
        )
        if not is_valid:
            outcome.debug_information = self._debug_information(
                request, uri, is_valid, status, dict(body)
            )
        self._log_outcome(outcome, logger)
        return outcome

    def from_error(
        self, request: SearchRequest, error: BaseException, logger: LoggerAdapter
    ) -> SearchOutcome[T]:
        """Normalizes a search call that raised in the client."""
        meta = getattr(error, "meta", None) if isinstance(error, ApiError) else None
        status = getattr(meta, "status", None)
        response_body = getattr(error, "body", None) if isinstance(error, ApiError) else None
        uri = self.request_uri(request, meta)
        timed_out = isinstance(error, ConnectionTimeout)
        if not isinstance(error, (ApiError, TransportError)):
            log.debug(f"Non-transport error during search: {type(error).__name__}")

        outcome: SearchOutcome[T] = SearchOutcome(
            success=False,
            is_valid=False,
            timed_out=timed_out,
            request_uri=uri,
            debug_information=self._debug_information(
                request, uri, False, status, response_body, error
            ),
            original_exception=error,
        )
        self._log_outcome(outcome, logger)
        return outcome
