# src/async_es_query/base/interfaces.py

from abc import ABC, abstractmethod
from logging import LoggerAdapter
from typing import Callable, Iterable, Optional, Type, TypeVar

from async_es_query.base.query import QueryBuilder, SearchRequest
from async_es_query.base.response import SearchOutcome
from async_es_query.base.types import DateRounding

# Type variable for any entity
T = TypeVar("T")


class SearchContext(ABC):
    """
    Owns the engine client handle and the defaults every query inherits
    (index, date-range time zone and rounding, field naming).

    Creates QueryBuilders through `query()` and performs the network round
    trips for them and for the document pass-throughs.
    """

    @property
    @abstractmethod
    def default_index(self) -> Optional[str]:
        """Index used when a query or call does not name one."""
        pass

    @property
    @abstractmethod
    def default_time_zone(self) -> str:
        pass

    @property
    @abstractmethod
    def default_rounding(self) -> DateRounding:
        pass

    @property
    @abstractmethod
    def naming(self) -> Optional[Callable[[str], str]]:
        """Maps attribute names to stored field names; None keeps them as-is."""
        pass

    @property
    @abstractmethod
    def app_id_field(self) -> str:
        """The entity attribute that doubles as the document `_id`."""
        pass

    def query(self, entity_type: Type[T], index: Optional[str] = None) -> QueryBuilder[T]:
        """
        Creates a QueryBuilder bound to this context.

        Args:
            entity_type: The entity class hits are deserialized into.
            index: Optional explicit index; must be non-blank when given.

        Raises:
            QueryArgumentError: If `index` is given but blank.
        """
        return QueryBuilder(entity_type, context=self, index=index)

    def resolve_index(self, index: Optional[str]) -> str:
        target = index or self.default_index
        if not target:
            raise ValueError("No index given and the context has no default index.")
        return target

    # --- Search ---

    @abstractmethod
    async def search(
        self,
        request: SearchRequest,
        entity_type: Optional[Type[T]],
        logger: LoggerAdapter,
        timeout: Optional[float] = None,
    ) -> SearchOutcome[T]:
        """
        Sends a compiled search and normalizes the response.

        Args:
            request: The compiled request from `QueryBuilder.build()`.
            entity_type: Class hits are deserialized into; None keeps dicts.
            logger: Logger adapter for recording operations.
            timeout: Overrides `request.timeout` when given.

        Returns:
            A SearchOutcome. Engine and transport failures are reported
            through its flags, never raised.
        """
        pass

    # --- Document pass-throughs ---

    @abstractmethod
    async def get(
        self,
        id: str,
        entity_type: Type[T],
        logger: LoggerAdapter,
        index: Optional[str] = None,
    ) -> T:
        """
        Retrieve a document by its `_id`.

        Raises:
            ObjectNotFoundException: If the engine answers 404.
            RuntimeError: For any other engine error.
        """
        pass

    @abstractmethod
    async def store(
        self, entity: T, logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        """Index one entity. Returns the engine's success flag."""
        pass

    @abstractmethod
    async def store_many(
        self, entities: Iterable[T], logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        """Bulk-index entities. Returns False if any item failed."""
        pass

    @abstractmethod
    async def update(
        self, entity: T, logger: LoggerAdapter, index: Optional[str] = None
    ) -> bool:
        """Partial-document update keyed by the entity's id. Returns the success flag."""
        pass

    # --- Index lifecycle ---

    @abstractmethod
    async def ensure_index(
        self,
        entity_type: Type[T],
        logger: LoggerAdapter,
        index: Optional[str] = None,
        max_result_window: int = 100000,
    ) -> None:
        """
        Create the index with a mapping derived from `entity_type`, or update
        `max_result_window` and the mapping of an existing one.

        Raises:
            RuntimeError: If the engine rejects any step.
        """
        pass
