# src/async_es_query/base/query.py
import logging
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Type,
    Tuple,
    TypeVar,
    Union,
)

from .clauses import Clause, ClauseOperator, build_clause
from .exceptions import InvalidExpressionError, QueryArgumentError
from .fields import (
    FieldDescriptor,
    FieldPath,
    FieldPathResolver,
    FilterCondition,
    GenericFieldsProxy,
    _generate_fields_proxy,
)
from .types import DEFAULT_ROUNDING, DEFAULT_TIME_ZONE, DateRounding

if TYPE_CHECKING:
    from .interfaces import SearchContext
    from .response import SearchOutcome

# --- Setup Logging ---
log = logging.getLogger(__name__)

M = TypeVar("M")


# --- Compiled Request ---
@dataclass(frozen=True)
class SortDirective:
    """The single sort key of a request."""

    field: FieldPath
    descending: bool = False

    def to_dsl(self) -> Dict[str, Any]:
        return {self.field.wire_name: {"order": "desc" if self.descending else "asc"}}


@dataclass
class SearchRequest:
    """A compiled search: target index, bool query, pagination and sort."""

    index: Optional[str]
    query: Dict[str, Any]
    from_: int = 0
    size: Optional[int] = None
    sort: List[Dict[str, Any]] = field(default_factory=list)
    timeout: Optional[float] = None
    # Inner hits name -> the nested path it was requested for.
    inner_hit_paths: Dict[str, str] = field(default_factory=dict)

    def to_body(self) -> Dict[str, Any]:
        """Returns the JSON body sent to the `_search` endpoint."""
        body: Dict[str, Any] = {"query": self.query, "from": self.from_}
        if self.size is not None:
            body["size"] = self.size
        if self.sort:
            body["sort"] = self.sort
        return body

    def __repr__(self) -> str:
        parts = [f"index={self.index!r}", f"body={self.to_body()!r}"]
        if self.timeout is not None:
            parts.append(f"timeout={self.timeout!r}")
        return f"SearchRequest({', '.join(parts)})"


# --- Query Builder ---
class QueryBuilder(Generic[M]):
    """
    Accumulates must / must-not clauses, pagination and one sort key for a
    single search, then compiles them into a bool query.

    Predicates take a field descriptor (``qb.fields.age`` or ``"age"``), a
    value and optionally the nested array that scopes the field::

        outcome = await (
            ctx.query(Person)
            .equal("name", "alice")
            .greater_than_or_equal("age", 20)
            .like("name", "type", nested="items")
            .take(50)
            .sort_descending("age")
            .execute(logger)
        )

    A builder is owned by one caller and used for one request.
    """

    model_cls: Optional[Type[M]]
    fields: Any  # SimpleNamespace or GenericFieldsProxy
    _resolver: FieldPathResolver[M]
    _must: List[Clause]
    _must_not: List[Clause]
    _logger: logging.Logger

    _CONDITION_OPERATORS = {op.value: op for op in ClauseOperator}

    def __init__(
        self,
        model_cls: Optional[Type[M]] = None,
        context: Optional["SearchContext"] = None,
        index: Optional[str] = None,
        naming: Optional[Callable[[str], str]] = None,
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
    ):
        self._logger = log
        self.model_cls = model_cls
        self._context = context
        self._must = []
        self._must_not = []
        self._index: Optional[str] = None
        self._skip = 0
        self._take = 0
        self._sort: Optional[SortDirective] = None
        self._timeout: Optional[float] = None

        if naming is None and context is not None:
            naming = context.naming
        self._time_zone = time_zone or (
            context.default_time_zone if context is not None else DEFAULT_TIME_ZONE
        )
        self._rounding = rounding or (
            context.default_rounding if context is not None else DEFAULT_ROUNDING
        )

        if model_cls:
            self._logger.debug(f"Initializing QueryBuilder for: {model_cls.__name__}")
            self.fields = _generate_fields_proxy(model_cls)
        else:
            self._logger.debug("Initializing QueryBuilder WITHOUT model validation.")
            self.fields = GenericFieldsProxy()
        self._resolver = FieldPathResolver(model_cls, naming=naming)

        if index is not None:
            self.index(index)

    # --- Target and clause lists ---
    def index(self, name: str) -> "QueryBuilder[M]":
        """Targets an explicit index instead of the context default."""
        if name is None or not isinstance(name, str) or not name.strip():
            raise QueryArgumentError("Index name must be a non-blank string.")
        self._index = name
        self._logger.debug(f"Query index set to: {name}")
        return self

    def add_must(self, clause: Clause) -> "QueryBuilder[M]":
        if not isinstance(clause, Clause):
            raise TypeError(f"add_must() requires a Clause, got {type(clause).__name__}")
        self._must.append(clause)
        self._logger.debug(f"Added must clause: {clause!r}")
        return self

    def add_must_not(self, clause: Clause) -> "QueryBuilder[M]":
        if not isinstance(clause, Clause):
            raise TypeError(
                f"add_must_not() requires a Clause, got {type(clause).__name__}"
            )
        self._must_not.append(clause)
        self._logger.debug(f"Added must_not clause: {clause!r}")
        return self

    def _add(self, clause: Clause, exclude: bool = False) -> "QueryBuilder[M]":
        if clause.negated != exclude:
            return self.add_must_not(clause)
        return self.add_must(clause)

    def _predicate(
        self,
        operator: ClauseOperator,
        field_descriptor: FieldDescriptor,
        value: Any,
        nested: Optional[FieldDescriptor],
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
        exclude: bool = False,
    ) -> "QueryBuilder[M]":
        resolved = self._resolver.resolve(field_descriptor, nested)
        clause = build_clause(
            resolved,
            operator,
            value,
            time_zone=time_zone or self._time_zone,
            rounding=rounding or self._rounding,
        )
        return self._add(clause, exclude)

    # --- Predicates ---
    def equal(
        self, field: FieldDescriptor, value: Any, nested: Optional[FieldDescriptor] = None
    ) -> "QueryBuilder[M]":
        return self._predicate(ClauseOperator.EQ, field, value, nested)

    def not_equal(
        self, field: FieldDescriptor, value: Any, nested: Optional[FieldDescriptor] = None
    ) -> "QueryBuilder[M]":
        return self._predicate(ClauseOperator.NE, field, value, nested)

    def greater_than(
        self,
        field: FieldDescriptor,
        value: Any,
        nested: Optional[FieldDescriptor] = None,
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
    ) -> "QueryBuilder[M]":
        return self._predicate(
            ClauseOperator.GT, field, value, nested, time_zone, rounding
        )

    def greater_than_or_equal(
        self,
        field: FieldDescriptor,
        value: Any,
        nested: Optional[FieldDescriptor] = None,
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
    ) -> "QueryBuilder[M]":
        return self._predicate(
            ClauseOperator.GTE, field, value, nested, time_zone, rounding
        )

    def less_than(
        self,
        field: FieldDescriptor,
        value: Any,
        nested: Optional[FieldDescriptor] = None,
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
    ) -> "QueryBuilder[M]":
        return self._predicate(
            ClauseOperator.LT, field, value, nested, time_zone, rounding
        )

    def less_than_or_equal(
        self,
        field: FieldDescriptor,
        value: Any,
        nested: Optional[FieldDescriptor] = None,
        time_zone: Optional[str] = None,
        rounding: Optional[DateRounding] = None,
    ) -> "QueryBuilder[M]":
        return self._predicate(
            ClauseOperator.LTE, field, value, nested, time_zone, rounding
        )

    def like(
        self,
        field: FieldDescriptor,
        value: Union[str, List[Any]],
        nested: Optional[FieldDescriptor] = None,
    ) -> "QueryBuilder[M]":
        """Free-text match for a string, membership for a collection."""
        return self._predicate(ClauseOperator.LIKE, field, value, nested)

    def not_like(
        self,
        field: FieldDescriptor,
        value: Union[str, List[Any]],
        nested: Optional[FieldDescriptor] = None,
    ) -> "QueryBuilder[M]":
        return self._predicate(ClauseOperator.NOT_LIKE, field, value, nested)

    def _condition(
        self,
        condition: FilterCondition,
        nested: Optional[FieldDescriptor],
        exclude: bool,
    ) -> "QueryBuilder[M]":
        if not isinstance(condition, FilterCondition):
            raise InvalidExpressionError(
                f"Expected a field condition such as `fields.age >= 20`, "
                f"got {type(condition).__name__}: {condition!r}"
            )
        operator = self._CONDITION_OPERATORS.get(condition.operator)
        if operator is None:
            raise InvalidExpressionError(
                f"Unsupported condition operator '{condition.operator}'"
            )
        return self._predicate(
            operator, condition.field_path, condition.value, nested, exclude=exclude
        )

    def filter(
        self, condition: FilterCondition, nested: Optional[FieldDescriptor] = None
    ) -> "QueryBuilder[M]":
        """Adds a condition built from the fields proxy (``fields.age >= 20``)."""
        return self._condition(condition, nested, exclude=False)

    def exclude(
        self, condition: FilterCondition, nested: Optional[FieldDescriptor] = None
    ) -> "QueryBuilder[M]":
        """Adds the negation of a condition built from the fields proxy."""
        return self._condition(condition, nested, exclude=True)

    # --- Pagination and sort ---
    def skip(self, num: int) -> "QueryBuilder[M]":
        """Sets the offset of the first hit returned."""
        if not isinstance(num, int) or isinstance(num, bool) or num < 0:
            raise QueryArgumentError("Skip must be a non-negative integer.")
        self._skip = num
        self._logger.info(f"Query skip set to: {num}")
        return self

    def take(self, num: int) -> "QueryBuilder[M]":
        """Sets the page size; 0 leaves the engine default in place."""
        if not isinstance(num, int) or isinstance(num, bool) or num < 0:
            raise QueryArgumentError("Take must be a non-negative integer.")
        self._take = num
        self._logger.info(f"Query take set to: {num}")
        return self

    def sort_by(self, field: FieldDescriptor, descending: bool = False) -> "QueryBuilder[M]":
        """Sets the sort key, replacing any previous one."""
        resolved = self._resolver.resolve(field)
        if self._sort is not None:
            self._logger.debug(f"Replacing sort directive {self._sort!r}")
        self._sort = SortDirective(resolved, descending)
        self._logger.info(
            f"Sort order set: field='{resolved.wire_name}', descending={descending}"
        )
        return self

    def sort_ascending(self, field: FieldDescriptor) -> "QueryBuilder[M]":
        return self.sort_by(field, descending=False)

    def sort_descending(self, field: FieldDescriptor) -> "QueryBuilder[M]":
        return self.sort_by(field, descending=True)

    def timeout(self, seconds: Optional[float]) -> "QueryBuilder[M]":
        """Sets the request timeout in seconds; 0 leaves the client default in place."""
        if seconds is not None and (
            not isinstance(seconds, (int, float))
            or isinstance(seconds, bool)
            or seconds < 0
        ):
            raise QueryArgumentError("Timeout must be a non-negative number or None.")
        self._timeout = seconds
        self._logger.info(f"Query timeout set to: {seconds}")
        return self

    # --- Compilation ---
    @staticmethod
    def _render(clause: Clause, inner_hit_paths: Dict[str, str]) -> Dict[str, Any]:
        if not clause.requests_inner_hits:
            return clause.to_dsl()
        path = clause.field.nested_path
        name, n = path, 1
        while name in inner_hit_paths:
            name = f"{path}_{n}"
            n += 1
        inner_hit_paths[name] = path
        return clause.to_dsl(inner_hits_name=None if name == path else name)

    def _compile_query(self) -> Tuple[Dict[str, Any], Dict[str, str]]:
        inner_hit_paths: Dict[str, str] = {}
        bool_query: Dict[str, Any] = {}
        if self._must:
            bool_query["must"] = [self._render(c, inner_hit_paths) for c in self._must]
        if self._must_not:
            bool_query["must_not"] = [
                self._render(c, inner_hit_paths) for c in self._must_not
            ]
        return {"bool": bool_query}, inner_hit_paths

    def build(self) -> SearchRequest:
        """Compiles the accumulated state; the builder is left unchanged."""
        index = self._index
        if index is None and self._context is not None:
            index = self._context.default_index
        query, inner_hit_paths = self._compile_query()
        request = SearchRequest(
            index=index,
            query=query,
            from_=self._skip,
            size=self._take if self._take > 0 else None,
            sort=[self._sort.to_dsl()] if self._sort else [],
            timeout=self._timeout or None,
            inner_hit_paths=inner_hit_paths,
        )
        model_name = self.model_cls.__name__ if self.model_cls else "Generic"
        self._logger.debug(f"Built search request for {model_name} model: {request!r}")
        return request

    async def execute(self, logger: Optional[LoggerAdapter] = None) -> "SearchOutcome[M]":
        """
        Compiles the request and runs it through the bound context.

        Engine failures come back as an unsuccessful SearchOutcome rather than
        an exception.
        """
        if self._context is None:
            raise RuntimeError(
                "QueryBuilder is not bound to a search context; "
                "create it with context.query(...)"
            )
        if logger is None:
            logger = LoggerAdapter(self._logger, {})
        request = self.build()
        return await self._context.search(request, self.model_cls, logger)
