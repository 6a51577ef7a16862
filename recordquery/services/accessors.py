from __future__ import annotations

import dataclasses
import logging
import types
import typing
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, Union

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect

from recordquery.core.config import settings
from recordquery.core.errors import UnknownFieldError

_LOG = logging.getLogger("recordquery.accessors")

Accessor = Callable[[Any], Any]


@dataclasses.dataclass(frozen=True)
class _DeclaredField:
    name: str
    alias: str | None
    nested_type: type | None


class FieldAccessorMap:
    """Name -> extractor table for one record type.

    Lookup is exact first, then by the lowercased name. Dotted keys walk
    nested members and yield None when an intermediate member is None.
    """

    def __init__(self, accessors: Mapping[str, Accessor], primary_keys: Iterable[str] | None = None):
        self._accessors: dict[str, Accessor] = dict(accessors)
        self._primary_keys: tuple[str, ...] = tuple(primary_keys) if primary_keys is not None else tuple(self._accessors)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Accessor]) -> "FieldAccessorMap":
        accessors: dict[str, Accessor] = {}
        for key, accessor in mapping.items():
            accessors.setdefault(key, accessor)
        for key, accessor in mapping.items():
            accessors.setdefault(key.lower(), accessor)
        return cls(accessors, primary_keys=list(mapping))

    def resolve(self, field: str) -> Accessor | None:
        accessor = self._accessors.get(field)
        if accessor is None:
            accessor = self._accessors.get(str(field or "").lower())
        return accessor

    def require(self, field: str) -> Accessor:
        accessor = self.resolve(field)
        if accessor is None:
            raise UnknownFieldError(f'Unknown field "{field}"', field=field)
        return accessor

    def __contains__(self, field: object) -> bool:
        return isinstance(field, str) and self.resolve(field) is not None

    def __len__(self) -> int:
        return len(self._accessors)

    def keys(self) -> list[str]:
        return list(self._accessors)

    @property
    def primary_keys(self) -> tuple[str, ...]:
        """One key per accessor, the serialization alias where declared."""
        return self._primary_keys


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _sqlalchemy_mapper(record_type: type):
    try:
        return sa_inspect(record_type, raiseerr=False)
    except Exception:
        return None


def _is_record_type(candidate: Any) -> bool:
    if not isinstance(candidate, type):
        return False
    if dataclasses.is_dataclass(candidate):
        return True
    if issubclass(candidate, BaseModel):
        return True
    return _sqlalchemy_mapper(candidate) is not None


def _nested_type(annotation: Any) -> type | None:
    candidate = _unwrap_optional(annotation)
    return candidate if _is_record_type(candidate) else None


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except Exception:
        return dict(getattr(record_type, "__annotations__", {}))


def _declared_fields(record_type: type) -> list[_DeclaredField]:
    if dataclasses.is_dataclass(record_type):
        hints = _type_hints(record_type)
        return [
            _DeclaredField(f.name, f.metadata.get("alias"), _nested_type(hints.get(f.name, f.type)))
            for f in dataclasses.fields(record_type)
            if not f.name.startswith("_")
        ]

    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        return [
            _DeclaredField(name, info.serialization_alias or info.alias, _nested_type(info.annotation))
            for name, info in record_type.model_fields.items()
            if not name.startswith("_")
        ]

    mapper = _sqlalchemy_mapper(record_type)
    if mapper is not None:
        out = []
        for attr in mapper.column_attrs:
            if attr.key.startswith("_"):
                continue
            alias = attr.columns[0].info.get("alias") if attr.columns else None
            out.append(_DeclaredField(attr.key, alias, None))
        for rel in mapper.relationships:
            if rel.key.startswith("_") or rel.uselist:
                continue
            out.append(_DeclaredField(rel.key, rel.info.get("alias"), rel.mapper.class_))
        return out

    out = []
    for name, annotation in _type_hints(record_type).items():
        if name.startswith("_") or typing.get_origin(annotation) is typing.ClassVar:
            continue
        out.append(_DeclaredField(name, None, _nested_type(annotation)))
    return out


def _attribute_accessor(name: str) -> Accessor:
    def extract(record):
        return getattr(record, name, None)

    return extract


def _path_accessor(path: tuple[str, ...]) -> Accessor:
    def extract(record):
        value = record
        for name in path:
            if value is None:
                return None
            value = getattr(value, name, None)
        return value

    return extract


def _collect(
    record_type: type,
    *,
    path: tuple[str, ...],
    canonical_prefix: str,
    alias_prefix: str,
    hops: int,
    max_depth: int,
    accessors: dict[str, Accessor],
    primary: list[str],
) -> None:
    for declared in _declared_fields(record_type):
        field_path = path + (declared.name,)
        accessor = _attribute_accessor(declared.name) if not path else _path_accessor(field_path)
        canonical_key = canonical_prefix + declared.name
        alias_key = alias_prefix + (declared.alias or declared.name)

        primary_key = alias_key if alias_key not in accessors else canonical_key
        if primary_key not in accessors:
            primary.append(primary_key)
        for key in (alias_key, canonical_key, alias_key.lower(), canonical_key.lower()):
            accessors.setdefault(key, accessor)

        if declared.nested_type is not None and hops < max_depth:
            _collect(
                declared.nested_type,
                path=field_path,
                canonical_prefix=canonical_key + ".",
                alias_prefix=alias_key + ".",
                hops=hops + 1,
                max_depth=max_depth,
                accessors=accessors,
                primary=primary,
            )


def build_accessors(record_type: type, max_depth: int | None = None) -> FieldAccessorMap:
    depth = settings.FILTER_MAX_DEPTH if max_depth is None else int(max_depth)
    accessors: dict[str, Accessor] = {}
    primary: list[str] = []
    _collect(
        record_type,
        path=(),
        canonical_prefix="",
        alias_prefix="",
        hops=0,
        max_depth=max(depth, 0),
        accessors=accessors,
        primary=primary,
    )
    _LOG.debug("built %d accessor keys for %s (max_depth=%d)", len(accessors), record_type.__name__, depth)
    return FieldAccessorMap(accessors, primary_keys=primary)


@lru_cache(maxsize=256)
def _cached_accessors(record_type: type, max_depth: int) -> FieldAccessorMap:
    return build_accessors(record_type, max_depth)


def get_accessors(record_type: type, max_depth: int | None = None) -> FieldAccessorMap:
    depth = settings.FILTER_MAX_DEPTH if max_depth is None else int(max_depth)
    return _cached_accessors(record_type, depth)
