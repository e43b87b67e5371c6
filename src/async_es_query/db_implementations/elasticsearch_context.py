# src/async_es_query/db_implementations/elasticsearch_context.py

import logging
from logging import LoggerAdapter
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar

# --- Elasticsearch Client Import ---
from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

# --- Framework Imports ---
from async_es_query.base.exceptions import ObjectNotFoundException
from async_es_query.base.interfaces import SearchContext
from async_es_query.base.mapping import build_mappings
from async_es_query.base.query import SearchRequest
from async_es_query.base.response import ResponseNormalizer, SearchOutcome
from async_es_query.base.types import DEFAULT_ROUNDING, DEFAULT_TIME_ZONE, DateRounding
from async_es_query.base.utils import (
    apply_field_naming,
    deserialize_document,
    prepare_for_storage,
)

# --- Type Variables ---
T = TypeVar("T")
DB_RECORD_TYPE = Dict[str, Any]

NUMBER_OF_SHARDS = 5
NUMBER_OF_REPLICAS = 1


class ElasticsearchContext(SearchContext):
    """
    SearchContext backed by the official async Elasticsearch client.

    The client is created and closed by the application; the context only
    borrows it. Documents are stored under the entity's application id
    (`app_id_field`) as `_id`.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        default_index: Optional[str] = None,
        default_time_zone: str = DEFAULT_TIME_ZONE,
        default_rounding: DateRounding = DEFAULT_ROUNDING,
        naming: Optional[Callable[[str], str]] = None,
        app_id_field: str = "id",
    ):
        """
        Args:
            client: A configured AsyncElasticsearch instance.
            default_index: Index used when a query or call names none.
            default_time_zone: Offset applied to date ranges, e.g. "+08:00".
            default_rounding: Unit date-range values are rounded to.
            naming: Optional attribute-name to field-name function for
                query paths (e.g. `camel_case`).
            app_id_field: Entity attribute used as the document `_id`.
        """
        if default_index is not None and not default_index.strip():
            raise ValueError("default_index must be a non-blank string or None.")
        self._client = client
        self._default_index = default_index
        self._default_time_zone = default_time_zone
        self._default_rounding = default_rounding
        self._naming = naming
        self._app_id_field = app_id_field

        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._logger.info(
            f"Search context created (default index: '{default_index}', "
            f"time zone: '{default_time_zone}', rounding: '{default_rounding.value}')."
        )

    @property
    def default_index(self) -> Optional[str]:
        return self._default_index

    @property
    def default_time_zone(self) -> str:
        return self._default_time_zone

    @property
    def default_rounding(self) -> DateRounding:
        return self._default_rounding

    @property
    def naming(self) -> Optional[Callable[[str], str]]:
        return self._naming

    @property
    def app_id_field(self) -> str:
        return self._app_id_field

    @property
    def client(self) -> AsyncElasticsearch:
        return self._client

    def _client_for(self, timeout: Optional[float]) -> AsyncElasticsearch:
        if not timeout:
            return self._client
        return self._client.options(request_timeout=timeout)

    @staticmethod
    def _search_kwargs(request: SearchRequest) -> Dict[str, Any]:
        body = request.to_body()
        kwargs: Dict[str, Any] = {"query": body["query"], "from_": body["from"]}
        if "size" in body:
            kwargs["size"] = body["size"]
        if "sort" in body:
            kwargs["sort"] = body["sort"]
        return kwargs

    def _serialize_entity(self, entity: Any) -> DB_RECORD_TYPE:
        data = prepare_for_storage(entity)
        if not isinstance(data, dict):
            raise TypeError(
                f"Cannot serialize entity of type {type(entity).__name__} to a document."
            )
        # Stored keys must match the names queries and mappings use.
        return apply_field_naming(data, type(entity), self._naming)

    @staticmethod
    def _body(response: Any) -> DB_RECORD_TYPE:
        """Unwraps an ObjectApiResponse; plain dicts pass through."""
        body = getattr(response, "body", response)
        return body if isinstance(body, dict) else {}

    def _document_id(self, entity: Any) -> Optional[str]:
        app_id = getattr(entity, self._app_id_field, None)
        return str(app_id) if app_id is not None else None

    # --- Search ---

    async def search(
        self,
        request: SearchRequest,
        entity_type: Optional[Type[T]],
        logger: LoggerAdapter,
        timeout: Optional[float] = None,
    ) -> SearchOutcome[T]:
        normalizer: ResponseNormalizer[T] = ResponseNormalizer(
            entity_type, self._app_id_field, self._naming
        )
        effective_timeout = timeout or request.timeout
        logger.debug(f"Searching with {request!r} (timeout: {effective_timeout})")
        try:
            response = await self._client_for(effective_timeout).search(
                index=request.index, **self._search_kwargs(request)
            )
        except (ApiError, TransportError) as e:
            return normalizer.from_error(request, e, logger)
        return normalizer.from_response(request, response, logger)

    # --- Document pass-throughs ---

    async def get(
        self,
        id: str,
        entity_type: Type[T],
        logger: LoggerAdapter,
        index: Optional[str] = None,
    ) -> T:
        target = self.resolve_index(index)
        logger.debug(f"Getting {entity_type.__name__} '{id}' from index '{target}'")
        try:
            response = await self._client.get(index=target, id=id)
        except NotFoundError as e:
            logger.warning(f"{entity_type.__name__} with ID '{id}' not found in '{target}'.")
            raise ObjectNotFoundException(
                f"{entity_type.__name__} with ID '{id}' not found."
            ) from e
        except (ApiError, TransportError) as e:
            self._handle_db_error(e, f"getting document ID {id}")

        body = self._body(response)
        entity = deserialize_document(
            entity_type,
            body.get("_source"),
            body.get("_id"),
            self._app_id_field,
            self._naming,
        )
        logger.info(f"Retrieved {entity_type.__name__} with ID '{id}' from '{target}'")
        return entity

    async def store(
        self, entity: T, logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        target = self.resolve_index(index)
        doc_id = self._document_id(entity)
        document = self._serialize_entity(entity)
        logger.debug(f"Indexing {type(entity).__name__} '{doc_id}' into '{target}'")
        try:
            if doc_id is None:
                response = await self._client.index(index=target, document=document)
            else:
                response = await self._client.index(
                    index=target, id=doc_id, document=document
                )
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to index document '{doc_id}' into '{target}': {e}")
            return False
        body = self._body(response)
        success = body.get("result") in ("created", "updated")
        logger.info(
            f"[Success:{success}]\tIndexed {type(entity).__name__} "
            f"'{body.get('_id', doc_id)}' into '{target}'"
        )
        return success

    async def store_many(
        self, entities: Iterable[T], logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        target = self.resolve_index(index)
        operations: List[Dict[str, Any]] = []
        for entity in entities:
            action: Dict[str, Any] = {"_index": target}
            doc_id = self._document_id(entity)
            if doc_id is not None:
                action["_id"] = doc_id
            operations.append({"index": action})
            operations.append(self._serialize_entity(entity))
        if not operations:
            logger.info("store_many called with no entities; nothing to index.")
            return True

        count = len(operations) // 2
        logger.debug(f"Bulk indexing {count} documents into '{target}'")
        try:
            response = await self._client.bulk(operations=operations)
        except (ApiError, TransportError) as e:
            logger.error(f"Bulk request to '{target}' failed: {e}")
            return False

        body = self._body(response)
        if body.get("errors"):
            failed = [
                item.get("index", {})
                for item in body.get("items", [])
                if item.get("index", {}).get("error")
            ]
            for item in failed:
                logger.error(
                    f"Bulk item '{item.get('_id')}' failed: {item.get('error')}"
                )
            logger.info(f"[Success:False]\tBulk indexed {count - len(failed)}/{count} into '{target}'")
            return False
        logger.info(f"[Success:True]\tBulk indexed {count} documents into '{target}'")
        return True

    async def update(
        self, entity: T, logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        target = self.resolve_index(index)
        doc_id = self._document_id(entity)
        if doc_id is None:
            raise ValueError(
                f"Entity {type(entity).__name__} must have ID field "
                f"'{self._app_id_field}' set to be updated."
            )
        document = self._serialize_entity(entity)
        logger.debug(f"Updating {type(entity).__name__} '{doc_id}' in '{target}'")
        try:
            response = await self._client.update(index=target, id=doc_id, doc=document)
        except NotFoundError:
            logger.warning(f"Cannot update '{doc_id}': not found in '{target}'.")
            return False
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to update document '{doc_id}' in '{target}': {e}")
            return False
        success = self._body(response).get("result") in ("updated", "noop")
        logger.info(f"[Success:{success}]\tUpdated '{doc_id}' in '{target}'")
        return success

    # --- Index lifecycle ---

    async def ensure_index(
        self,
        entity_type: Type[T],
        logger: LoggerAdapter,
        index: Optional[str] = None,
        max_result_window: int = 100000,
    ) -> None:
        target = self.resolve_index(index)
        mappings = build_mappings(entity_type, self._naming)
        logger.info(f"Ensuring index '{target}' for {entity_type.__name__}...")
        try:
            exists = await self._client.indices.exists(index=target)
            if exists:
                await self._client.indices.put_settings(
                    index=target,
                    settings={"index": {"max_result_window": max_result_window}},
                )
                await self._client.indices.put_mapping(
                    index=target, properties=mappings["properties"]
                )
                logger.info(f"[{target}]\tIndex updated.")
            else:
                await self._client.indices.create(
                    index=target,
                    settings={
                        "number_of_shards": NUMBER_OF_SHARDS,
                        "number_of_replicas": NUMBER_OF_REPLICAS,
                        "max_result_window": max_result_window,
                    },
                    mappings=mappings,
                )
                logger.info(f"[{target}]\tIndex created.")
        except (ApiError, TransportError) as e:
            self._handle_db_error(e, f"ensuring index '{target}'")

    def _handle_db_error(self, error: Exception, context: str = "operation") -> None:
        self._logger.error(f"Elasticsearch error during {context}: {error}", exc_info=True)
        raise RuntimeError(
            f"An unexpected Elasticsearch error occurred during {context}"
        ) from error
