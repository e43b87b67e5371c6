# src/async_es_query/base/fields.py

import logging
import re
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from .exceptions import InvalidExpressionError
from .model_validator import ModelValidator
from .types import FieldKind

# --- Setup Logging ---
log = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M")

_MEMBER_CHAIN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def camel_case(name: str) -> str:
    """snake_case -> camelCase, the default inflection of .NET/Java clients."""
    head, *rest = name.split("_")
    return head[:1].lower() + head[1:] + "".join(p[:1].upper() + p[1:] for p in rest)


# --- Field Conditions ---
class FilterCondition(Generic[T]):
    """Represents a field comparison (field OP value) awaiting resolution."""

    field_path: str
    operator: str
    value: Any

    def __init__(self, field_path: str, operator: str, value: Any):
        self.field_path = field_path
        self.operator = operator
        self.value = value

    def __repr__(self) -> str:
        return (
            f"FilterCondition({self.field_path!r}, {self.operator!r}, "
            f"{self.value!r})"
        )


# --- Field Representation ---
class Field(Generic[T]):
    """
    Represents a queryable document field path.

    Sub-fields are reached by attribute access (``fields.items.name``). A
    sub-field whose name collides with a Field member (``path``, ``like``,
    ``not_like``, ``in_``, ``nin``) is reached by item access instead:
    ``fields.items["like"]``.
    """

    _path: str

    def __init__(self, path: str):
        object.__setattr__(self, "_path", path)

    @property
    def path(self) -> str:
        return self._path

    def _op(self, op_name: str, other: Any) -> FilterCondition[T]:
        log.debug(f"Creating filter: Field('{self._path}') {op_name} {other!r}")
        value_to_use = other
        if isinstance(other, (set, tuple)):
            value_to_use = list(other)
        return FilterCondition(self._path, op_name, value_to_use)

    # Comparison operators
    def __eq__(self, other: Any) -> FilterCondition[T]:  # type: ignore[override]
        return self._op("eq", other)

    def __ne__(self, other: Any) -> FilterCondition[T]:  # type: ignore[override]
        return self._op("ne", other)

    def __gt__(self, other: Any) -> FilterCondition[T]:
        return self._op("gt", other)

    def __lt__(self, other: Any) -> FilterCondition[T]:
        return self._op("lt", other)

    def __ge__(self, other: Any) -> FilterCondition[T]:
        return self._op("ge", other)

    def __le__(self, other: Any) -> FilterCondition[T]:
        return self._op("le", other)

    __hash__ = None  # type: ignore[assignment]

    # Text and membership
    def like(self, value: Union[str, List[Any]]) -> FilterCondition[T]:
        return self._op("like", value)

    def not_like(self, value: Union[str, List[Any]]) -> FilterCondition[T]:
        return self._op("not_like", value)

    def in_(self, collection: Union[List, set, tuple]) -> FilterCondition[T]:
        if not isinstance(collection, (list, set, tuple)):
            raise TypeError("Operator 'in' requires a list/set/tuple")
        return self._op("like", collection)

    def nin(self, collection: Union[List, set, tuple]) -> FilterCondition[T]:
        if not isinstance(collection, (list, set, tuple)):
            raise TypeError("Operator 'nin' requires a list/set/tuple")
        return self._op("not_like", collection)

    def __getattr__(self, name: str) -> "Field[Any]":
        """Dynamically create nested Field objects."""
        if name.startswith("_"):
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            )
        return Field(f"{self._path}.{name}")

    def __getitem__(self, name: str) -> "Field[Any]":
        if not isinstance(name, str) or not name:
            raise TypeError(f"Sub-field name must be a non-empty string, got {name!r}")
        return Field(f"{self._path}.{name}")

    def __repr__(self) -> str:
        return f"Field(path={self._path!r})"

    def __setattr__(self, name: str, value: Any):
        raise AttributeError(f"Cannot set attribute '{name}' on Field object.")


# --- Fields Proxy Generation ---
_PROXY_CACHE: Dict[Type, SimpleNamespace] = {}


def _generate_fields_proxy(model_cls: Type[M]) -> SimpleNamespace:
    """Introspects model and creates a SimpleNamespace with Field attributes."""
    if model_cls in _PROXY_CACHE:
        return _PROXY_CACHE[model_cls]

    log.debug(f"Generating fields proxy object for {model_cls.__name__}")
    proxy_obj = SimpleNamespace()
    try:
        for name, _, type_hint in ModelValidator(model_cls).iter_fields():
            setattr(proxy_obj, name, Field[type_hint](name))
    except Exception as e:
        log.error(
            f"Failed field proxy generation for {model_cls.__name__}", exc_info=True
        )
        raise TypeError(
            f"Could not generate query fields proxy for {model_cls.__name__}"
        ) from e

    _PROXY_CACHE[model_cls] = proxy_obj
    return proxy_obj


class GenericFieldsProxy:
    """Creates Field instances dynamically for any attribute access."""

    __slots__ = ()

    def __getattr__(self, name: str) -> Field[Any]:
        if name.startswith("_"):
            raise AttributeError(f"No attribute '{name}'")
        return Field(name)

    def __dir__(self) -> List[str]:
        return []


# --- Resolved Paths ---
@dataclass(frozen=True)
class FieldPath:
    """A field as the engine names it, optionally scoped to a nested array."""

    wire_name: str
    kind: FieldKind = FieldKind.UNKNOWN
    nested_path: Optional[str] = None

    @property
    def is_nested(self) -> bool:
        return self.nested_path is not None


FieldDescriptor = Union[Field[Any], str]


class FieldPathResolver(Generic[M]):
    """
    Turns field descriptors into engine field paths.

    A descriptor is a Field taken from a fields proxy (``qb.fields.items.name``)
    or a dotted member chain (``"items.name"``). With a bound model every
    segment is checked against the model's annotations and the field kind is
    derived from its type; without one, paths are trusted and the kind is
    UNKNOWN.
    """

    def __init__(
        self,
        model_cls: Optional[Type[M]] = None,
        naming: Optional[Callable[[str], str]] = None,
    ):
        self.model_cls = model_cls
        self.naming = naming
        self._validator: Optional[ModelValidator[M]] = (
            ModelValidator(model_cls, naming=naming) if model_cls else None
        )

    @staticmethod
    def descriptor_path(descriptor: Any) -> str:
        """Returns the attribute path a descriptor denotes, or raises."""
        if isinstance(descriptor, Field):
            path = descriptor.path
        elif isinstance(descriptor, str):
            path = descriptor.strip()
        else:
            raise InvalidExpressionError(
                f"Expected a field descriptor (Field or dotted member chain), "
                f"got {type(descriptor).__name__}: {descriptor!r}"
            )
        if not _MEMBER_CHAIN.match(path):
            raise InvalidExpressionError(
                f"'{path}' is not a plain member access chain."
            )
        return path

    def _wire(self, attr_path: str) -> str:
        if self._validator:
            return self._validator.get_wire_path(attr_path)
        if self.naming:
            return ".".join(self.naming(p) for p in attr_path.split("."))
        return attr_path

    def _kind(self, attr_path: str) -> FieldKind:
        if self._validator:
            return self._validator.get_field_kind(attr_path)
        return FieldKind.UNKNOWN

    def resolve(
        self, field: FieldDescriptor, nested: Optional[FieldDescriptor] = None
    ) -> FieldPath:
        attr_path = self.descriptor_path(field)
        if nested is None:
            resolved = FieldPath(self._wire(attr_path), self._kind(attr_path))
            log.debug(f"Resolved field '{attr_path}' -> {resolved!r}")
            return resolved

        ancestor = self.descriptor_path(nested)
        if attr_path == ancestor:
            raise InvalidExpressionError(
                f"Field '{attr_path}' must be a member of nested path '{ancestor}', "
                "not the nested path itself."
            )
        if not attr_path.startswith(f"{ancestor}."):
            attr_path = f"{ancestor}.{attr_path}"

        if self._validator and not self._validator.is_nested_array(ancestor):
            raise InvalidExpressionError(
                f"'{ancestor}' is not an array of sub-documents in "
                f"{self.model_cls.__name__}; it cannot scope a nested clause."
            )

        resolved = FieldPath(
            self._wire(attr_path), self._kind(attr_path), self._wire(ancestor)
        )
        log.debug(f"Resolved nested field '{attr_path}' under '{ancestor}' -> {resolved!r}")
        return resolved
