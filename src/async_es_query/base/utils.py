import logging
import uuid
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type, TypeVar, get_type_hints

from .model_validator import (
    ModelValidator,
    _sequence_item_type,
    is_structured_type,
    unwrap_type,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert Pydantic models, dataclasses, and special types to
    JSON-compatible values for the search engine.

    It handles:
    - Pydantic BaseModel instances (field aliases preserved)
    - Python dataclasses
    - Dictionaries (processing values recursively)
    - Lists, tuples and sets (processing each item)
    - Enums (their value) and UUIDs (their string form)
    - Pydantic URL types (converting to strings)

    Datetimes are left as-is; the engine client serializes them.
    """
    if data is None:
        return None

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        return prepare_for_storage(data.model_dump(mode="python", by_alias=True))

    if isinstance(data, Enum):
        return prepare_for_storage(data.value)

    if isinstance(data, uuid.UUID):
        return str(data)

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, (list, tuple, set)):
        return [prepare_for_storage(item) for item in data]

    if hasattr(data, "__class__") and data.__class__.__module__ == "pydantic.networks":
        return str(data)

    if hasattr(data, "__dict__") and hasattr(data.__class__, "__annotations__"):
        # Plain annotated classes are stored by their public attributes.
        return {
            k: prepare_for_storage(v)
            for k, v in vars(data).items()
            if not k.startswith("_")
        }

    return data


def _rename_value(
    value: Any, annotation: Any, naming: Callable[[str], str], to_wire: bool
) -> Any:
    bare, _ = unwrap_type(annotation)
    item_type = _sequence_item_type(bare)
    if item_type is not None:
        item_bare, _ = unwrap_type(item_type)
        if is_structured_type(item_bare) and isinstance(value, list):
            return [apply_field_naming(v, item_bare, naming, to_wire) for v in value]
        return value
    if is_structured_type(bare):
        return apply_field_naming(value, bare, naming, to_wire)
    return value


def apply_field_naming(
    data: Any,
    model_cls: Type,
    naming: Optional[Callable[[str], str]],
    to_wire: bool = True,
) -> Any:
    """
    Renames the keys of a stored document between attribute and field names.

    With `to_wire` the keys of `prepare_for_storage` output (pydantic alias or
    attribute name) become the names the engine indexes; without it the
    rename is reversed for a `_source` read back. Aliased fields keep their
    alias both ways, keys of Dict-typed fields are left untouched, and keys
    the model does not declare pass through.
    """
    if naming is None or not isinstance(data, dict):
        return data
    validator = ModelValidator(model_cls, naming=naming)
    aliases = validator._get_field_aliases(model_cls)
    renamed = dict(data)
    for name, wire_name, annotation in validator.iter_fields():
        stored_key = aliases.get(name, name)
        source_key, target_key = (
            (stored_key, wire_name) if to_wire else (wire_name, stored_key)
        )
        if source_key not in renamed:
            continue
        value = renamed.pop(source_key)
        renamed[target_key] = _rename_value(value, annotation, naming, to_wire)
    return renamed


def deserialize_document(
    entity_type: Type[T], source: Optional[Dict[str, Any]], doc_id: Optional[str] = None,
    app_id_field: str = "id", naming: Optional[Callable[[str], str]] = None,
) -> T:
    """
    Converts an engine `_source` document into an entity of type T.

    Pydantic models go through `model_validate` (aliases honored); other
    classes are instantiated with the known annotated fields as keyword
    arguments. Field names produced by `naming` are mapped back to attribute
    names first. The engine `_id` fills the application id when the source
    lacks it.
    """
    if source is None:
        raise ValueError("Cannot deserialize a hit without _source.")

    raw = dict(apply_field_naming(source, entity_type, naming, to_wire=False))
    if doc_id is not None and app_id_field not in raw:
        raw[app_id_field] = doc_id

    if hasattr(entity_type, "model_validate"):
        return entity_type.model_validate(raw)

    try:
        entity_fields = set(get_type_hints(entity_type).keys())
    except Exception:
        entity_fields = set(getattr(entity_type, "__annotations__", {}).keys())

    kwargs = {k: v for k, v in raw.items() if k in entity_fields}
    try:
        return entity_type(**kwargs)
    except TypeError as e:
        logger.error(
            f"Failed to instantiate {entity_type.__name__}: {e}. Data: {kwargs!r}",
            exc_info=True,
        )
        raise ValueError(
            f"Failed to deserialize document into {entity_type.__name__}"
        ) from e
