"""h5append - buffered append-only writers for chunked, compressed HDF5 datasets."""

from .config import DEFAULT_BATCH_SIZE, DEFAULT_COMPRESSION_LEVEL, WriterConfig
from .exceptions import (
    ConfigurationError,
    H5AppendError,
    InvariantViolation,
    LayoutError,
    LayoutNotRegisteredError,
    WriterClosedError,
)
from .layout import (
    Field,
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
from .records import Track
from .storage import Container, DatasetHandle, H5Container, H5Dataset, as_container
from .writer import Writer, Writer1d

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_COMPRESSION_LEVEL",
    "ConfigurationError",
    "Container",
    "DatasetHandle",
    "Field",
    "H5AppendError",
    "H5Container",
    "H5Dataset",
    "InvariantViolation",
    "LayoutError",
    "LayoutNotRegisteredError",
    "Track",
    "Writer",
    "Writer1d",
    "WriterClosedError",
    "WriterConfig",
    "as_container",
    "default_value",
    "describe_layout",
    "is_registered",
    "layout_of",
    "packed",
    "record",
    "register_primitive",
    "register_record",
    "sentinel_of",
    "to_row",
]
