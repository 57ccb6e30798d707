"""
Structured (JSON mode) reply parsing.

Replies are matched to the caller's shape leniently: property names and enum
string values compare case-insensitively and unknown properties are ignored.
Anything that still fails validation raises DeserializationError.
"""

from __future__ import annotations

import dataclasses
import json
import types
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import (
    Annotated,
    Any,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.errors import DeserializationError

T = TypeVar("T")

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, Sequence)
_MAPPING_ORIGINS = (dict, Mapping)


def parse_structured(text: str, shape: type[T]) -> T:
    """
    Parse a JSON reply into ``shape``.

    Args:
        text: Raw reply text from the model
        shape: Target type, typically a pydantic model, dataclass or TypedDict

    Raises:
        DeserializationError: text is not JSON or does not fit ``shape``
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise DeserializationError(
            f"Reply is not valid JSON: {e}", raw_text=text
        ) from e

    try:
        return TypeAdapter(shape).validate_python(_normalise(data, shape))
    except ValidationError as e:
        raise DeserializationError(
            f"Reply does not match {getattr(shape, '__name__', shape)}: {e}",
            raw_text=text,
        ) from e


def _field_annotations(shape: type) -> dict[str, tuple[str, Any]] | None:
    """Map case-folded property names to (key to emit, field annotation)."""
    lookup: dict[str, tuple[str, Any]] = {}

    if issubclass(shape, BaseModel):
        for name, info in shape.model_fields.items():
            target = info.alias or name
            lookup[name.casefold()] = (target, info.annotation)
            if info.alias:
                lookup[info.alias.casefold()] = (target, info.annotation)
            if isinstance(info.validation_alias, str):
                lookup[info.validation_alias.casefold()] = (
                    info.validation_alias,
                    info.annotation,
                )
        return lookup

    if dataclasses.is_dataclass(shape) or is_typeddict(shape):
        try:
            hints = get_type_hints(shape, include_extras=True)
        except (NameError, TypeError):
            hints = {}
        names = (
            [f.name for f in dataclasses.fields(shape)]
            if dataclasses.is_dataclass(shape)
            else list(getattr(shape, "__annotations__", {}))
        )
        for name in names:
            lookup[name.casefold()] = (name, hints.get(name, Any))
        return lookup

    return None


def _normalise_object(value: dict[str, Any], shape: type) -> dict[str, Any]:
    lookup = _field_annotations(shape)
    if lookup is None:
        return value

    result: dict[str, Any] = {}
    for key, item in value.items():
        match = lookup.get(key.casefold()) if isinstance(key, str) else None
        if match is None:
            result[key] = item
            continue
        target, annotation = match
        result[target] = _normalise(item, annotation)
    return result


def _match_enum(value: str, enum_type: type[Enum]) -> Any:
    folded = value.casefold()
    for member in enum_type:
        if isinstance(member.value, str) and member.value.casefold() == folded:
            return member
    for member in enum_type:
        if member.name.casefold() == folded:
            return member
    return value


def _pick_union_member(value: Any, members: tuple[Any, ...]) -> Any:
    """Pick the union member a JSON value most plausibly targets."""
    for member in members:
        if member is type(None):
            continue
        origin = get_origin(member) or member
        if isinstance(value, dict) and (
            origin in _MAPPING_ORIGINS or _field_annotations_safe(origin)
        ):
            return member
        if isinstance(value, list) and origin in _SEQUENCE_ORIGINS:
            return member
        if isinstance(value, str) and isinstance(origin, type) and issubclass(origin, Enum):
            return member
    return Any


def _field_annotations_safe(candidate: Any) -> bool:
    return isinstance(candidate, type) and _field_annotations(candidate) is not None


def _normalise(value: Any, annotation: Any) -> Any:
    """Rewrite ``value`` so keys and enum strings line up with ``annotation``."""
    if annotation is Any or annotation is None:
        return value

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return _normalise(value, args[0])

    if origin is Union or origin is types.UnionType:
        return _normalise(value, _pick_union_member(value, args))

    if origin in _SEQUENCE_ORIGINS and isinstance(value, list):
        if origin is tuple and args and args[-1] is not Ellipsis:
            return [_normalise(item, ann) for item, ann in zip(value, args)] + value[len(args):]
        item_type = args[0] if args else Any
        return [_normalise(item, item_type) for item in value]

    if origin in _MAPPING_ORIGINS and isinstance(value, dict):
        value_type = args[1] if len(args) == 2 else Any
        return {key: _normalise(item, value_type) for key, item in value.items()}

    if isinstance(annotation, type):
        if issubclass(annotation, Enum) and isinstance(value, str):
            return _match_enum(value, annotation)
        if isinstance(value, dict):
            return _normalise_object(value, annotation)

    return value
