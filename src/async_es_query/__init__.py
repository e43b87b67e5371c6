# src/async_es_query/__init__.py

"""
Async Elasticsearch Query Library Initialization.

This package provides a typed query-construction layer in front of
Elasticsearch: field paths checked against entity models, a fluent builder
compiling must / must-not clauses, pagination and sort into a bool query, and
a search context that sends it through the official async client.

It initializes a logger with a NullHandler and makes the context, the query
builder, clause types, exceptions and the Elasticsearch implementation
available at the top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging for "async_es_query".
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Core Interface and Exception Exports
# --------------------------------------------------------------------------
from .base.interfaces import SearchContext
from .base.exceptions import (
    ObjectNotFoundException,
    QueryArgumentError,
    ValidationError,
    InvalidExpressionError,
    InvalidPathError,
    ValueTypeError,
)

# --------------------------------------------------------------------------
# Query Building Exports
# --------------------------------------------------------------------------
# QueryBuilder is the primary way to construct searches; SearchRequest is the
# compiled form and SearchOutcome the normalized result.
from .base.fields import Field, FieldPath, FieldPathResolver, camel_case
from .base.clauses import Clause, ClauseKind, ClauseOperator, build_clause
from .base.query import QueryBuilder, SearchRequest, SortDirective
from .base.response import ResponseNormalizer, SearchOutcome
from .base.types import DateRounding, FieldKind, Keyword, Text
from .base.mapping import build_mappings

# --------------------------------------------------------------------------
# Context Implementation Exports
# --------------------------------------------------------------------------
from .db_implementations.elasticsearch_context import ElasticsearchContext

# --------------------------------------------------------------------------
# __all__ Definition
# --------------------------------------------------------------------------
__all__ = [
    # Core
    "SearchContext",
    # Exceptions
    "ObjectNotFoundException",
    "QueryArgumentError",
    "ValidationError",
    "InvalidExpressionError",
    "InvalidPathError",
    "ValueTypeError",
    # Fields
    "Field",
    "FieldPath",
    "FieldPathResolver",
    "camel_case",
    # Clauses
    "Clause",
    "ClauseKind",
    "ClauseOperator",
    "build_clause",
    # Query
    "QueryBuilder",
    "SearchRequest",
    "SortDirective",
    "ResponseNormalizer",
    "SearchOutcome",
    # Types
    "DateRounding",
    "FieldKind",
    "Keyword",
    "Text",
    "build_mappings",
    # Implementations
    "ElasticsearchContext",
    # Logging
    "logger",
]

__version__ = "0.1.0"
