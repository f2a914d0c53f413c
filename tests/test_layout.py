"""
Record layouts: registry lookups, sentinels, padded in-memory offsets and
the packed on-disk layout derived from them.
"""

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import pytest

from h5append.exceptions import LayoutError, LayoutNotRegisteredError
from h5append.layout import (
    default_value,
    describe_layout,
    is_registered,
    layout_of,
    packed,
    record,
    register_primitive,
    register_record,
    sentinel_of,
    to_row,
)
from h5append.records import Track


@record([("flag", bool), ("value", np.float64)])
class Padded(NamedTuple):
    flag: bool = False
    value: float = 0.0


@record([("inner", Padded), ("count", np.int16)])
class Outer(NamedTuple):
    inner: Padded = Padded()
    count: int = 0


@dataclass
class Hit:
    energy: float
    valid: bool


register_record(
    Hit,
    [("e", np.float32, lambda h: h.energy), ("ok", bool, lambda h: h.valid)],
    Hit(energy=-1.0, valid=False),
)


def test_primitive_layouts_are_atomic():
    assert layout_of(float) == np.dtype(np.float64)
    assert layout_of(int) == np.dtype(np.intc)
    assert layout_of(bool) == np.dtype(np.bool_)
    assert layout_of(np.float32) == np.dtype(np.float32)
    for t in (float, int, bool, np.float32, np.uint64):
        assert layout_of(t).names is None
        assert describe_layout(t) == ()


def test_primitive_sentinels_are_zero():
    assert sentinel_of(float) == 0.0
    assert sentinel_of(int) == 0
    assert sentinel_of(bool) is False
    assert sentinel_of(np.float32) == 0


def test_track_layout_matches_c_struct():
    dt = layout_of(Track)
    assert dt.names == ("pt", "mask")
    assert dt.fields["pt"][1] == 0
    assert dt.fields["mask"][1] == 4
    # float32 alignment pads the struct to 8 bytes
    assert dt.itemsize == 8
    assert sentinel_of(Track) == Track(pt=0.0, mask=False)


def test_describe_layout_lists_fields_in_order():
    fields = describe_layout(Padded)
    assert [f.name for f in fields] == ["flag", "value"]
    assert [f.offset for f in fields] == [0, 8]
    assert fields[0].type is bool
    assert fields[1].dtype == np.dtype(np.float64)
    assert layout_of(Padded).itemsize == 16


def test_nested_layout_uses_member_layout():
    dt = layout_of(Outer)
    assert dt.fields["inner"][0] == layout_of(Padded)
    assert dt.fields["inner"][1] == 0
    assert dt.fields["count"][1] == 16
    assert dt.itemsize == 24
    assert sentinel_of(Outer) == Outer(Padded(False, 0.0), 0)


def test_packed_removes_padding():
    dt = packed(layout_of(Padded))
    assert dt.names == ("flag", "value")
    assert dt.fields["flag"][1] == 0
    assert dt.fields["value"][1] == 1
    assert dt.itemsize == 9


def test_packed_is_recursive():
    dt = packed(layout_of(Outer))
    assert dt.fields["inner"][0].itemsize == 9
    assert dt.fields["count"][1] == 9
    assert dt.itemsize == 11


def test_packed_keeps_atomic_and_subarray_members():
    assert packed(np.dtype(np.int16)) == np.dtype(np.int16)
    padded = np.dtype(
        {"names": ["tag", "xyz"], "formats": ["u1", ("<f8", (3,))]}, align=True
    )
    assert padded.itemsize == 32
    dense = packed(padded)
    assert dense.fields["xyz"][1] == 1
    assert dense.fields["xyz"][0].shape == (3,)
    assert dense.itemsize == 25


def test_packed_round_trips_values():
    src = np.array([(True, 1.5), (False, -2.0)], dtype=layout_of(Padded))
    dst = src.astype(packed(layout_of(Padded)))
    assert dst["flag"].tolist() == [True, False]
    assert dst["value"].tolist() == [1.5, -2.0]


def test_custom_accessors_and_sentinel():
    assert layout_of(Hit).names == ("e", "ok")
    assert to_row(Hit, Hit(energy=2.5, valid=True)) == (2.5, True)
    assert default_value(Hit) == Hit(energy=-1.0, valid=False)


@record([("x", np.int32), ("y", np.int32)], empty={"x": -1, "y": -1})
class Cursor(NamedTuple):
    x: int
    y: int


def test_record_sentinel_from_keyword_mapping():
    assert sentinel_of(Cursor) == Cursor(-1, -1)
    assert to_row(Cursor, sentinel_of(Cursor)) == (-1, -1)


def test_record_sentinel_from_instance():
    class Span:
        def __init__(self, lo=0, hi=0):
            self.lo = lo
            self.hi = hi

    empty = Span(3, 3)
    record([("lo", int), ("hi", int)], empty=empty)(Span)
    assert sentinel_of(Span) is empty


def test_to_row_nests_compounds():
    row = to_row(Outer, Outer(Padded(True, 3.0), 7))
    assert row == ((True, 3.0), 7)
    arr = np.array([row], dtype=layout_of(Outer))
    assert arr["inner"]["value"][0] == 3.0
    assert arr["count"][0] == 7


def test_unregistered_type_raises():
    class Unknown:
        pass

    assert not is_registered(Unknown)
    with pytest.raises(LayoutNotRegisteredError):
        layout_of(Unknown)
    with pytest.raises(KeyError):
        sentinel_of(Unknown)
    assert "Unknown" in str(LayoutNotRegisteredError(Unknown))


def test_unregistered_member_type_raises():
    class Loose:
        pass

    with pytest.raises(LayoutNotRegisteredError):
        register_record(Loose, [("x", complex)], Loose())
    assert not is_registered(Loose)


def test_duplicate_registration_raises():
    with pytest.raises(LayoutError):
        register_primitive(float, np.float32)
    with pytest.raises(LayoutError):
        register_record(Track, [("pt", np.float32)], Track())
    # the first registration is untouched
    assert layout_of(float) == np.dtype(np.float64)
    assert layout_of(Track).names == ("pt", "mask")


@pytest.mark.parametrize(
    "fields",
    [
        [],
        [("a", float), ("a", int)],
        [("a",)],
        [("", float)],
    ],
)
def test_invalid_field_lists_raise(fields):
    class Bad:
        pass

    with pytest.raises(LayoutError):
        register_record(Bad, fields, None)
    assert not is_registered(Bad)


def test_primitive_must_be_atomic():
    class Pair:
        pass

    with pytest.raises(LayoutError):
        register_primitive(Pair, [("a", "<f4"), ("b", "<f4")], Pair())
