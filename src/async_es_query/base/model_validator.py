# src/async_es_query/base/model_validator.py

import logging
import traceback
import uuid
from dataclasses import is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from inspect import isclass
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .exceptions import InvalidPathError, ValidationError, ValueTypeError
from .types import FieldKind, Keyword, Text

# --- Setup Logging ---
log = logging.getLogger(__name__)

M = TypeVar("M")

_SEQUENCE_ORIGINS = (list, List, tuple, Tuple, set, Set)
_DICT_ORIGINS = (dict, Dict, Mapping)

__all__ = [
    "ModelValidator",
    "classify_type",
    "unwrap_type",
    "is_structured_type",
    "InvalidPathError",
    "ValidationError",
    "ValueTypeError",
]


# --- Helper Functions ---
def _is_none_type(t: Optional[Type]) -> bool:
    return t is type(None)


def unwrap_type(t: Any) -> Tuple[Any, List[Any]]:
    """
    Strips Optional[...] and Annotated[...] wrappers.

    Returns the bare type plus any Annotated metadata found on the way, so
    markers such as Text() survive Optional[Annotated[str, Text()]].
    """
    markers: List[Any] = []
    while True:
        origin = get_origin(t)
        if origin is Annotated:
            markers.extend(getattr(t, "__metadata__", ()))
            t = get_args(t)[0]
            continue
        if origin is Union:
            non_none = [a for a in get_args(t) if not _is_none_type(a)]
            if len(non_none) == 1 and len(non_none) != len(get_args(t)):
                t = non_none[0]
                continue
        return t, markers


def _sequence_item_type(t: Any) -> Optional[Any]:
    """Returns the element type if t is a list/set/tuple type, else None."""
    origin = get_origin(t)
    if origin in _SEQUENCE_ORIGINS or t in (list, tuple, set):
        args = get_args(t)
        if not args:
            return Any
        return args[0]
    return None


def is_structured_type(t: Any) -> bool:
    """True for pydantic models, dataclasses and plain annotated classes."""
    if not isclass(t):
        return False
    if t in (str, bytes, int, float, bool, datetime, date, Decimal, uuid.UUID):
        return False
    if issubclass(t, Enum):
        return False
    return (
        hasattr(t, "model_fields")
        or is_dataclass(t)
        or bool(getattr(t, "__annotations__", None))
    )


def classify_type(t: Any) -> FieldKind:
    """Maps a Python annotation onto the engine field kind it is indexed as."""
    bare, markers = unwrap_type(t)
    item_type = _sequence_item_type(bare)
    if item_type is not None:
        item_bare, item_markers = unwrap_type(item_type)
        if is_structured_type(item_bare):
            return FieldKind.NESTED
        # Arrays of scalars are indexed as their element type.
        markers = markers + item_markers
        bare = item_bare

    if any(isinstance(m, Text) for m in markers):
        return FieldKind.TEXT
    if any(isinstance(m, Keyword) for m in markers):
        return FieldKind.KEYWORD
    if bare is Any or isinstance(bare, TypeVar):
        return FieldKind.UNKNOWN
    if get_origin(bare) in _DICT_ORIGINS or bare is dict:
        return FieldKind.OBJECT
    if not isclass(bare):
        return FieldKind.UNKNOWN
    if bare is bool:
        return FieldKind.BOOLEAN
    if issubclass(bare, Enum):
        return FieldKind.KEYWORD
    if issubclass(bare, int):
        return FieldKind.LONG
    if issubclass(bare, (float, Decimal)):
        return FieldKind.NUMBER
    if issubclass(bare, (datetime, date)):
        return FieldKind.DATE
    if issubclass(bare, (str, uuid.UUID)):
        return FieldKind.KEYWORD
    if is_structured_type(bare):
        return FieldKind.OBJECT
    return FieldKind.UNKNOWN


# --- Model Validator ---
class ModelValidator(Generic[M]):
    """Validates field paths against model M and maps them onto wire names."""

    model_type: Type[M]
    _type_hints_cache: Dict[Type, Dict[str, Type]]
    _field_aliases_cache: Dict[Type, Dict[str, str]]

    def __init__(
        self,
        model_type: Type[M],
        naming: Optional[Callable[[str], str]] = None,
    ):
        log.debug(f"Initializing ModelValidator for type: {model_type!r}")
        if not isclass(model_type):
            log.error(f"Init failed: {model_type!r} is not a class")
            raise TypeError(f"model_type must be a class, received {type(model_type)}.")
        self.model_type = model_type
        self.naming = naming
        self._type_hints_cache = {}
        self._field_aliases_cache = {}

    def _get_type_name(self, type_obj: Any) -> str:
        if _is_none_type(type_obj):
            return "NoneType"
        if type_obj is Any:
            return "Any"
        if hasattr(type_obj, "__name__") and not get_origin(type_obj):
            return type_obj.__name__
        try:
            return str(type_obj).replace("typing.", "")
        except Exception:
            return repr(type_obj)

    def _get_cached_type_hints(self, cls: Type) -> Dict[str, Type]:
        origin_cls = get_origin(cls) or cls
        if not isinstance(origin_cls, type):
            raise TypeError(f"Cannot get hints for non-class/type: {origin_cls!r}")
        if origin_cls not in self._type_hints_cache:
            log.debug(f"Cache miss: hints for {origin_cls.__name__}")
            model_fields = getattr(origin_cls, "model_fields", None)
            if isinstance(model_fields, dict):
                # Pydantic keeps Annotated metadata apart from the annotation.
                hints = {
                    name: (
                        Annotated[(info.annotation, *info.metadata)]
                        if info.metadata
                        else info.annotation
                    )
                    for name, info in model_fields.items()
                }
            else:
                try:
                    hints = get_type_hints(origin_cls, include_extras=True)
                except NameError as e:
                    raise TypeError(
                        f"Unresolved forward ref in {origin_cls.__name__}? Error: {e}"
                    ) from e
                hints = {
                    k: v
                    for k, v in hints.items()
                    if not k.startswith("_") and get_origin(v) is not ClassVar
                }
            log.debug(f"Fetched hints for {origin_cls.__name__}: {hints!r}")
            self._type_hints_cache[origin_cls] = hints
        return self._type_hints_cache[origin_cls]

    def _get_field_aliases(self, cls: Type) -> Dict[str, str]:
        """Maps attribute names to the names stored in the document."""
        origin_cls = get_origin(cls) or cls
        if not isinstance(origin_cls, type):
            return {}
        if origin_cls not in self._field_aliases_cache:
            aliases: Dict[str, str] = {}
            model_fields = getattr(origin_cls, "model_fields", None)
            if isinstance(model_fields, dict):
                for name, info in model_fields.items():
                    alias = getattr(info, "serialization_alias", None) or info.alias
                    if alias and alias != name:
                        aliases[name] = alias
            self._field_aliases_cache[origin_cls] = aliases
            log.debug(f"Cached aliases for {origin_cls.__name__}: {aliases}")
        return self._field_aliases_cache[origin_cls]

    def _wire_name(self, cls: Type, name: str) -> str:
        alias = self._get_field_aliases(cls).get(name)
        if alias:
            return alias
        return self.naming(name) if self.naming else name

    def _traverse_path(self, field_path: str) -> Tuple[Type, List[str]]:
        """Walks a dotted attribute path; returns the final type and wire segments."""
        log.debug(f"Traversing path: '{field_path}' for model: {self.model_type!r}")
        parts = field_path.split(".")
        current_type: Any = self.model_type
        wire_parts: List[str] = []

        for part_index, part in enumerate(parts):
            full_path_str = ".".join(parts[: part_index + 1])
            parent_path_str = ".".join(parts[:part_index]) or "root"

            current_type, _ = unwrap_type(current_type)
            # Arrays are transparent in the document model.
            item_type = _sequence_item_type(current_type)
            while item_type is not None:
                current_type, _ = unwrap_type(item_type)
                item_type = _sequence_item_type(current_type)

            if part.isdigit():
                raise InvalidPathError(
                    f"Positional index '{part}' is not addressable in a document path. "
                    f"Path: '{full_path_str}'."
                )

            if current_type is Any or isinstance(current_type, TypeVar):
                log.debug("    Type is Any, accepting remaining parts verbatim.")
                wire_parts.extend(parts[part_index:])
                return Any, wire_parts

            current_origin = get_origin(current_type)
            if current_origin in _DICT_ORIGINS or current_type is dict:
                args = get_args(current_type)
                if args and args[0] is not str:
                    raise InvalidPathError(
                        f"Cannot traverse Dict path '{full_path_str}' with non-string "
                        f"key type {self._get_type_name(args[0])}."
                    )
                current_type = args[1] if len(args) == 2 else Any
                wire_parts.append(part)
                continue

            if current_origin is Union:
                raise InvalidPathError(
                    f"Cannot access '{part}' on non-Optional Union {current_type!r}"
                )

            if not is_structured_type(current_type):
                p_type_name = self._get_type_name(current_type)
                raise InvalidPathError(
                    f"Cannot access '{part}'. Parent '{parent_path_str}' not "
                    f"traversable (type: {p_type_name}). Path: '{full_path_str}'."
                )

            hints = self._get_cached_type_hints(current_type)
            if part not in hints:
                raise InvalidPathError(
                    f"Field '{part}' does not exist in type {current_type.__name__}. "
                    f"Path: '{full_path_str}'."
                )
            wire_parts.append(self._wire_name(current_type, part))
            current_type = hints[part]
            log.debug(f"  Part '{part}' -> {current_type!r}")

        return current_type, wire_parts

    def _traverse(self, field_path: str) -> Tuple[Type, List[str]]:
        if not field_path:
            raise ValueError("field_path cannot be empty.")
        try:
            return self._traverse_path(field_path)
        except InvalidPathError as e:
            raise InvalidPathError(
                f"{e} in model {self._get_type_name(self.model_type)}"
            ) from e
        except TypeError as e:
            raise TypeError(
                f"Hint error path '{field_path}' in {self.model_type}: {e}"
            ) from e
        except Exception as e:
            tb = traceback.format_exc()
            log.exception(f"Unexpected error traversing path '{field_path}'")
            raise RuntimeError(
                f"Unexpected traverse error path '{field_path}': {e}\n{tb}"
            ) from e

    def get_field_type(self, field_path: str) -> Type:
        return self._traverse(field_path)[0]

    def get_wire_path(self, field_path: str) -> str:
        return ".".join(self._traverse(field_path)[1])

    def get_field_kind(self, field_path: str) -> FieldKind:
        return classify_type(self.get_field_type(field_path))

    def is_nested_array(self, field_path: str) -> bool:
        """True if the path denotes a list of structured sub-documents."""
        return self.get_field_kind(field_path) is FieldKind.NESTED

    def iter_fields(self, cls: Optional[Type] = None) -> List[Tuple[str, str, Type]]:
        """Lists (attribute name, wire name, annotation) for a structured class."""
        target = cls or self.model_type
        hints = self._get_cached_type_hints(target)
        return [(name, self._wire_name(target, name), t) for name, t in hints.items()]
