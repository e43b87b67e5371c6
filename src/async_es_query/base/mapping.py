# src/async_es_query/base/mapping.py

import logging
from typing import Any, Callable, Dict, FrozenSet, Optional, Type

from .model_validator import (
    ModelValidator,
    _sequence_item_type,
    classify_type,
    is_structured_type,
    unwrap_type,
)
from .types import FieldKind

# --- Setup Logging ---
log = logging.getLogger(__name__)

_SCALAR_KINDS = {
    FieldKind.KEYWORD: "keyword",
    FieldKind.TEXT: "text",
    FieldKind.LONG: "long",
    FieldKind.NUMBER: "double",
    FieldKind.DATE: "date",
    FieldKind.BOOLEAN: "boolean",
}


def _structured_class(annotation: Any) -> Optional[Type]:
    """Returns the sub-document class behind an object or nested annotation."""
    bare, _ = unwrap_type(annotation)
    item = _sequence_item_type(bare)
    if item is not None:
        bare, _ = unwrap_type(item)
    return bare if is_structured_type(bare) else None


def _properties(
    validator: ModelValidator, cls: Type, seen: FrozenSet[Type]
) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for name, wire_name, annotation in validator.iter_fields(cls):
        kind = classify_type(annotation)
        if kind in _SCALAR_KINDS:
            properties[wire_name] = {"type": _SCALAR_KINDS[kind]}
        elif kind in (FieldKind.OBJECT, FieldKind.NESTED):
            sub_cls = _structured_class(annotation)
            entry: Dict[str, Any] = {"type": kind.value}
            if sub_cls is not None and sub_cls not in seen:
                entry["properties"] = _properties(validator, sub_cls, seen | {sub_cls})
            properties[wire_name] = entry
        else:
            log.debug(f"No explicit mapping for '{cls.__name__}.{name}'; left dynamic.")
    return properties


def build_mappings(
    model_cls: Type, naming: Optional[Callable[[str], str]] = None
) -> Dict[str, Any]:
    """
    Derives an index mapping from a model's annotations.

    str fields map to keyword unless marked Annotated[str, Text()]; lists of
    structured items become `nested` so that clauses can be scoped to a
    single element. Fields typed Any are left to dynamic mapping.
    """
    validator = ModelValidator(model_cls, naming=naming)
    mappings = {"properties": _properties(validator, model_cls, frozenset({model_cls}))}
    log.debug(f"Derived mapping for {model_cls.__name__}: {mappings}")
    return mappings
