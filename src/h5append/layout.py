"""layout.py - Record layout registry, sentinels and packed on-disk layouts.

Every record type written by h5append is registered here once, at import
time of the module that defines it:

- Primitive types map to an atomic numpy dtype with no fields.
- Compound types map to a structured dtype built from an explicit, ordered
  list of fields. Each field names a registered member type and an accessor
  used to read the member from a record instance. Offsets and itemsize are
  the C struct layout numpy derives with ``align=True``, so the in-memory
  buffer keeps the natural padded layout.

``packed()`` turns such a padded dtype into the dense equivalent used as the
dataset's on-disk type. HDF5 converts between the two by field name when a
buffer is written.

Registrations are process-wide and immutable: registering a type twice is
an error.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Sequence

import numpy as np

from .exceptions import LayoutError, LayoutNotRegisteredError
from .logger import get_logger

logger = get_logger(__name__)

Accessor = Callable[[Any], Any]


class Field(NamedTuple):
    """One member of a compound layout."""

    name: str
    offset: int  # byte offset in the padded in-memory layout
    type: Any  # registered member type
    dtype: np.dtype
    accessor: Accessor


class _Entry(NamedTuple):
    dtype: np.dtype
    fields: tuple[Field, ...]
    empty: Any
    to_row: Callable[[Any], Any]


_REGISTRY: dict[Any, _Entry] = {}


def _identity(value: Any) -> Any:
    return value


def _store(record_type: Any, entry: _Entry) -> None:
    if record_type in _REGISTRY:
        raise LayoutError(f"Layout for {_type_name(record_type)} is already registered")
    _REGISTRY[record_type] = entry
    logger.debug(
        f"Registered layout for {_type_name(record_type)}: {entry.dtype} "
        f"(itemsize={entry.dtype.itemsize})"
    )


def _lookup(record_type: Any) -> _Entry:
    try:
        return _REGISTRY[record_type]
    except (KeyError, TypeError):
        raise LayoutNotRegisteredError(record_type) from None


def _type_name(record_type: Any) -> str:
    return getattr(record_type, "__qualname__", repr(record_type))


def register_primitive(record_type: Any, dtype: Any, empty: Any = None) -> np.dtype:
    """Register an atomic type. The sentinel defaults to ``record_type()``."""
    dt = np.dtype(dtype)
    if dt.names is not None or dt.subdtype is not None:
        raise LayoutError(f"Primitive layout must be atomic, got {dt}")
    if empty is None:
        empty = record_type()
    _store(record_type, _Entry(dt, (), empty, _identity))
    return dt


def _field_spec(spec: Sequence[Any]) -> tuple[str, Any, Accessor]:
    if len(spec) == 2:
        name, member_type = spec
        accessor = operator.attrgetter(name)
    elif len(spec) == 3:
        name, member_type, accessor = spec
    else:
        raise LayoutError(
            f"Field spec must be (name, type) or (name, type, accessor), got {spec!r}"
        )
    if not isinstance(name, str) or not name:
        raise LayoutError(f"Field name must be a non-empty string, got {name!r}")
    return name, member_type, accessor


def _compound_converter(fields: tuple[Field, ...]) -> Callable[[Any], tuple]:
    steps = [(f.accessor, _lookup(f.type).to_row) for f in fields]

    def to_row(value: Any) -> tuple:
        return tuple(convert(get(value)) for get, convert in steps)

    return to_row


def register_record(
    record_type: Any, fields: Iterable[Sequence[Any]], empty: Any
) -> np.dtype:
    """Register a compound type from an ordered field list.

    ``fields`` holds ``(name, member_type)`` or ``(name, member_type,
    accessor)`` entries. Member types must already be registered; their
    layouts are nested as-is.
    """
    specs = [_field_spec(spec) for spec in fields]
    if not specs:
        raise LayoutError(f"{_type_name(record_type)} has no fields")
    names = [name for name, _, _ in specs]
    if len(set(names)) != len(names):
        raise LayoutError(f"Duplicate field names in {_type_name(record_type)}: {names}")

    formats = [_lookup(member_type).dtype for _, member_type, _ in specs]
    dt = np.dtype({"names": names, "formats": formats}, align=True)
    described = tuple(
        Field(name, dt.fields[name][1], member_type, fmt, accessor)
        for (name, member_type, accessor), fmt in zip(specs, formats)
    )
    _store(record_type, _Entry(dt, described, empty, _compound_converter(described)))
    return dt


def record(fields: Iterable[Sequence[Any]], empty: Any = None):
    """Class decorator form of register_record().

    ``empty`` may be a sentinel instance or a mapping of constructor keyword
    arguments, since the class cannot be instantiated before it exists.
    Without ``empty`` the sentinel is ``cls(**{name: sentinel_of(member)})``,
    which fits NamedTuples and dataclasses whose field names match their
    constructor arguments.
    """
    fields = list(fields)

    def decorate(cls):
        if isinstance(empty, Mapping):
            sentinel = cls(**empty)
        elif empty is None:
            kwargs = {}
            for spec in fields:
                name, member_type, _ = _field_spec(spec)
                kwargs[name] = sentinel_of(member_type)
            sentinel = cls(**kwargs)
        else:
            sentinel = empty
        register_record(cls, fields, sentinel)
        return cls

    return decorate


def layout_of(record_type: Any) -> np.dtype:
    """Return the padded in-memory dtype of ``record_type``."""
    return _lookup(record_type).dtype


def describe_layout(record_type: Any) -> tuple[Field, ...]:
    """Return the ordered fields of ``record_type`` (empty for primitives)."""
    return _lookup(record_type).fields


def sentinel_of(record_type: Any) -> Any:
    """Return the canonical empty instance used to pad short sequences."""
    return _lookup(record_type).empty


default_value = sentinel_of


def converter_of(record_type: Any) -> Callable[[Any], Any]:
    """Return a function turning a record into a row numpy accepts for layout_of()."""
    return _lookup(record_type).to_row


def to_row(record_type: Any, value: Any) -> Any:
    return converter_of(record_type)(value)


def is_registered(record_type: Any) -> bool:
    try:
        return record_type in _REGISTRY
    except TypeError:
        return False


def packed(dtype: Any) -> np.dtype:
    """Return ``dtype`` with its fields laid out contiguously.

    Field names, order and member types are kept; nested compounds and
    sub-array members are packed recursively. Atomic dtypes come back as-is.
    """
    dt = np.dtype(dtype)
    if dt.subdtype is not None:
        base, shape = dt.subdtype
        return np.dtype((packed(base), shape))
    if dt.names is None:
        return dt
    return np.dtype({
        "names": list(dt.names),
        "formats": [packed(dt.fields[name][0]) for name in dt.names],
    })


_BUILTIN_PRIMITIVES = {
    float: np.float64,
    int: np.intc,
    bool: np.bool_,
    np.float32: np.float32,
    np.float64: np.float64,
    np.int8: np.int8,
    np.int16: np.int16,
    np.int32: np.int32,
    np.int64: np.int64,
    np.uint8: np.uint8,
    np.uint16: np.uint16,
    np.uint32: np.uint32,
    np.uint64: np.uint64,
    np.bool_: np.bool_,
}

for _type, _dtype in _BUILTIN_PRIMITIVES.items():
    register_primitive(_type, _dtype)
del _type, _dtype
