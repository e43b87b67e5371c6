# src/async_es_query/base/types.py

from enum import Enum


class FieldKind(Enum):
    """How a schema field is indexed by the engine."""

    KEYWORD = "keyword"
    TEXT = "text"
    LONG = "long"
    NUMBER = "double"
    DATE = "date"
    BOOLEAN = "boolean"
    OBJECT = "object"
    NESTED = "nested"
    UNKNOWN = "unknown"


class DateRounding(Enum):
    """Date-math rounding units understood by the engine."""

    YEAR = "y"
    MONTH = "M"
    WEEK = "w"
    DAY = "d"
    HOUR = "h"
    MINUTE = "m"
    SECOND = "s"


DEFAULT_TIME_ZONE = "+08:00"
DEFAULT_ROUNDING = DateRounding.DAY


# --- Annotation markers ---
class Text:
    """Marks a str field as analyzed full text: Annotated[str, Text()]."""

    def __repr__(self) -> str:
        return "Text()"


class Keyword:
    """Marks a field as an exact-value keyword: Annotated[str, Keyword()]."""

    def __repr__(self) -> str:
        return "Keyword()"
