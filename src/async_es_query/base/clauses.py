# src/async_es_query/base/clauses.py

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import ValueTypeError
from .fields import FieldPath
from .types import DEFAULT_ROUNDING, DEFAULT_TIME_ZONE, DateRounding, FieldKind

# --- Setup Logging ---
log = logging.getLogger(__name__)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ClauseKind(Enum):
    TERM = "term"
    TERM_NOT = "term_not"
    RANGE = "range"
    LONG_RANGE = "long_range"
    DATE_RANGE = "date_range"
    MATCH = "match"
    MATCH_NOT = "match_not"
    TERMS = "terms"
    TERMS_NOT = "terms_not"

    @property
    def negated(self) -> bool:
        return self in (ClauseKind.TERM_NOT, ClauseKind.MATCH_NOT, ClauseKind.TERMS_NOT)


class ClauseOperator(Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "ge"
    LT = "lt"
    LTE = "le"
    LIKE = "like"
    NOT_LIKE = "not_like"


# Range operators as the engine spells them.
_RANGE_KEYS = {
    ClauseOperator.GT: "gt",
    ClauseOperator.GTE: "gte",
    ClauseOperator.LT: "lt",
    ClauseOperator.LTE: "lte",
}


@dataclass(frozen=True)
class Clause:
    """
    One atomic condition of a bool query.

    Negated kinds are placed in ``must_not`` by the QueryBuilder; their body
    is the same as the positive counterpart.
    """

    kind: ClauseKind
    field: FieldPath
    value: Any
    range_op: Optional[str] = None
    time_zone: Optional[str] = None
    rounding: Optional[DateRounding] = None
    minimum_should_match: Optional[int] = None

    @property
    def negated(self) -> bool:
        return self.kind.negated

    def _inner_dsl(self) -> Dict[str, Any]:
        name = self.field.wire_name
        if self.kind in (ClauseKind.TERM, ClauseKind.TERM_NOT):
            return {"term": {name: {"value": self.value}}}
        if self.kind in (ClauseKind.RANGE, ClauseKind.LONG_RANGE):
            return {"range": {name: {self.range_op: self.value}}}
        if self.kind is ClauseKind.DATE_RANGE:
            body: Dict[str, Any] = {self.range_op: self.value}
            if self.time_zone:
                body["time_zone"] = self.time_zone
            return {"range": {name: body}}
        if self.kind in (ClauseKind.MATCH, ClauseKind.MATCH_NOT):
            qs: Dict[str, Any] = {"default_field": name, "query": self.value}
            if self.minimum_should_match is not None:
                qs["minimum_should_match"] = self.minimum_should_match
            return {"query_string": qs}
        # TERMS / TERMS_NOT
        return {"terms": {name: list(self.value)}}

    @property
    def requests_inner_hits(self) -> bool:
        """Nested membership clauses ask the engine for the matching elements."""
        return self.field.is_nested and self.kind in (ClauseKind.TERMS, ClauseKind.TERMS_NOT)

    def to_dsl(self, inner_hits_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns the clause as a query DSL fragment, nested-wrapped if scoped.

        `inner_hits_name` names the inner hits of a nested membership clause;
        the engine defaults to the nested path, which must stay unique per
        request.
        """
        inner = self._inner_dsl()
        path = self.field.nested_path
        if path is None:
            return inner
        if self.requests_inner_hits:
            inner_hits: Dict[str, Any] = {"explain": True}
            if inner_hits_name is not None:
                inner_hits = {"name": inner_hits_name, **inner_hits}
            return {
                "nested": {
                    "path": path,
                    "inner_hits": inner_hits,
                    "query": inner,
                }
            }
        return {"nested": {"path": path, "query": {"bool": {"must": [inner]}}}}


# --- Value helpers ---
def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _scalar(value: Any) -> Any:
    """Converts a comparison value to its JSON form."""
    if isinstance(value, Enum):
        return _scalar(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _coerce_operator(operator: Union[ClauseOperator, str]) -> ClauseOperator:
    if isinstance(operator, ClauseOperator):
        return operator
    try:
        return ClauseOperator(operator)
    except ValueError as e:
        raise ValueTypeError(f"Unsupported operator: {operator!r}") from e


def _quoted_phrase(value: str) -> str:
    """Wraps a value as a query_string phrase, escaping `\\` and `"` inside it."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _anchored(value: Union[datetime, date], rounding: DateRounding) -> str:
    return f"{value.isoformat()}||/{rounding.value}"


# --- Clause construction ---
def _equality_clause(field: FieldPath, op: ClauseOperator, value: Any) -> Clause:
    negated = op is ClauseOperator.NE
    if value is None:
        raise ValueTypeError(
            f"Equality on '{field.wire_name}' needs a value; None cannot be matched."
        )
    if _is_collection(value):
        raise ValueTypeError(
            f"Equality on '{field.wire_name}' takes a single value; use like() "
            f"for membership in {type(value).__name__}."
        )
    if field.kind is FieldKind.TEXT and isinstance(value, str):
        # Nested text equality is an exact phrase; at the root it is a token match.
        query = _quoted_phrase(value) if field.is_nested else value
        kind = ClauseKind.MATCH_NOT if negated else ClauseKind.MATCH
        return Clause(kind, field, query)
    kind = ClauseKind.TERM_NOT if negated else ClauseKind.TERM
    return Clause(kind, field, _scalar(value))


def _range_clause(
    field: FieldPath,
    op: ClauseOperator,
    value: Any,
    time_zone: str,
    rounding: DateRounding,
) -> Clause:
    range_op = _RANGE_KEYS[op]
    if value is None or isinstance(value, bool) or _is_collection(value):
        raise ValueTypeError(
            f"Ordering comparison '{range_op}' on '{field.wire_name}' is not "
            f"defined for {type(value).__name__} values."
        )
    if field.kind in (FieldKind.KEYWORD, FieldKind.TEXT):
        log.warning(
            f"Range '{range_op}' on {field.kind.value} field '{field.wire_name}' "
            "compares lexicographically."
        )

    if isinstance(value, (datetime, date)):
        return Clause(
            ClauseKind.DATE_RANGE,
            field,
            _anchored(value, rounding),
            range_op=range_op,
            time_zone=time_zone,
            rounding=rounding,
        )
    if isinstance(value, str) and field.kind in (FieldKind.DATE, FieldKind.UNKNOWN):
        # Raw date math such as "now-1d/d" is passed through untouched.
        return Clause(
            ClauseKind.DATE_RANGE, field, value, range_op=range_op, time_zone=time_zone
        )
    if isinstance(value, str) and field.kind in (FieldKind.KEYWORD, FieldKind.TEXT):
        return Clause(ClauseKind.RANGE, field, value, range_op=range_op)
    if isinstance(value, int):
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise ValueTypeError(
                f"Value {value} for '{field.wire_name}' is outside the signed "
                "64-bit range."
            )
        return Clause(ClauseKind.LONG_RANGE, field, value, range_op=range_op)
    if isinstance(value, (float, Decimal)):
        return Clause(ClauseKind.RANGE, field, float(value), range_op=range_op)
    raise ValueTypeError(
        f"Ordering comparison '{range_op}' on '{field.wire_name}' is not "
        f"defined for {type(value).__name__} values."
    )


def _like_clause(field: FieldPath, op: ClauseOperator, value: Any) -> Clause:
    negated = op is ClauseOperator.NOT_LIKE
    if isinstance(value, str):
        kind = ClauseKind.MATCH_NOT if negated else ClauseKind.MATCH
        msm = None if field.is_nested else 1
        return Clause(kind, field, value, minimum_should_match=msm)
    if _is_collection(value):
        values: List[Any] = [_scalar(v) for v in value]
        kind = ClauseKind.TERMS_NOT if negated else ClauseKind.TERMS
        return Clause(kind, field, tuple(values))
    raise ValueTypeError(
        f"like/not_like on '{field.wire_name}' takes a string or a collection of "
        f"values, got {type(value).__name__}."
    )


def build_clause(
    field: FieldPath,
    operator: Union[ClauseOperator, str],
    value: Any,
    *,
    time_zone: str = DEFAULT_TIME_ZONE,
    rounding: DateRounding = DEFAULT_ROUNDING,
) -> Clause:
    """
    Builds one clause for a resolved field.

    The clause form follows from the operator, the value's type and the
    field's kind; nesting follows from ``field.nested_path``.

    Raises:
        ValueTypeError: the operator is unknown or cannot take this value.
    """
    op = _coerce_operator(operator)
    log.debug(f"build_clause: {field.wire_name} {op.value} {value!r}")
    if op in (ClauseOperator.EQ, ClauseOperator.NE):
        return _equality_clause(field, op, value)
    if op in _RANGE_KEYS:
        return _range_clause(field, op, value, time_zone, rounding)
    return _like_clause(field, op, value)
