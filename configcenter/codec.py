"""
Payload encoding.

Values are stored as JSON text. Decoding targets one of:

- ``object``: the plain decoded JSON
- a DRF ``Serializer`` subclass, returning its ``validated_data``
- any type pydantic can validate: JSON types (``dict``, ``list``, ``str``,
  ``int``, ``float``, ``bool``), parameterized generics such as
  ``list[int]``, dataclasses and pydantic models

Typed targets are validated strictly: a JSON number never becomes a string
and a string never becomes a number. Unknown fields of a JSON object are
ignored when building a dataclass.
"""

import dataclasses
import json
import typing
from functools import lru_cache
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder
from pydantic import PydanticUserError, TypeAdapter, ValidationError
from rest_framework import serializers

from configcenter.exceptions import DecodeError, EncodeError


def encode(key: str, payload: Any) -> str:
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        payload = dataclasses.asdict(payload)
    try:
        return json.dumps(payload, cls=DjangoJSONEncoder, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise EncodeError(key, exc) from exc


@lru_cache(maxsize=256)
def _adapter(type_) -> TypeAdapter:
    return TypeAdapter(type_)


def _is_serializer(type_) -> bool:
    return (
        typing.get_origin(type_) is None
        and isinstance(type_, type)
        and issubclass(type_, serializers.BaseSerializer)
    )


def decode(key: str, raw: str, type_: type = object) -> Any:
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(key, type_, exc) from exc

    if type_ is object:
        return data

    if _is_serializer(type_):
        serializer = type_(data=data)
        if not serializer.is_valid():
            raise DecodeError(key, type_, serializer.errors)
        return serializer.validated_data

    try:
        adapter = _adapter(type_)
    except (PydanticUserError, TypeError) as exc:
        # unhashable or not a type pydantic can build a validator for
        raise DecodeError(key, type_, f"unsupported target type: {exc}") from exc

    try:
        return adapter.validate_json(raw, strict=True)
    except ValidationError as exc:
        raise DecodeError(key, type_, exc) from exc
    except (TypeError, ValueError) as exc:
        # raised by a dataclass __post_init__ or model validator
        raise DecodeError(key, type_, exc) from exc
