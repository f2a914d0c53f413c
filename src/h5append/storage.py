"""HDF5 storage layer for h5append - the narrow container/dataset interface
the writers consume, and its h5py implementation.

Writers never open or close files. The caller owns an open ``h5py.File``
(or any group inside it) and hands it to the writer, which wraps it with
``as_container()`` and creates exactly one dataset through it.

Note: the low-level h5py objects (SpaceID, TypeID) have no stubs, so the
space objects are typed as Any.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import h5py
import numpy as np
from h5py import h5s, h5t

from .logger import get_logger

logger = get_logger(__name__)

Shape = tuple[Optional[int], ...]


@runtime_checkable
class DatasetHandle(Protocol):
    """Growable on-disk array owned by a single writer."""

    name: str

    def extend(self, new_extent: Sequence[int]) -> None: ...

    def get_space(self) -> Any: ...

    def select_hyperslab(
        self, space: Any, offset: Sequence[int], count: Sequence[int]
    ) -> Any: ...

    def write(
        self,
        buffer: np.ndarray,
        memory_type: np.dtype,
        memory_shape: Sequence[int],
        file_space: Any,
    ) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class Container(Protocol):
    """Open file or group that datasets are created in."""

    def create_dataset(
        self,
        name: str,
        dtype: np.dtype,
        shape: Shape,
        maxshape: Shape,
        chunks: Shape,
        compression_level: int,
    ) -> DatasetHandle: ...


class H5Dataset:
    """DatasetHandle backed by an ``h5py.Dataset``."""

    def __init__(self, dataset: h5py.Dataset) -> None:
        self._ds: Optional[h5py.Dataset] = dataset
        self.name: str = dataset.name

    @property
    def dataset(self) -> h5py.Dataset:
        if self._ds is None:
            raise ValueError(f"Dataset '{self.name}' has been closed")
        return self._ds

    @property
    def shape(self) -> tuple[int, ...]:
        return self.dataset.shape

    def extend(self, new_extent: Sequence[int]) -> None:
        self.dataset.resize(tuple(new_extent))

    def get_space(self) -> Any:
        return self.dataset.id.get_space()

    def select_hyperslab(
        self, space: Any, offset: Sequence[int], count: Sequence[int]
    ) -> Any:
        space.select_hyperslab(tuple(offset), tuple(count), op=h5s.SELECT_SET)
        return space

    def write(
        self,
        buffer: np.ndarray,
        memory_type: np.dtype,
        memory_shape: Sequence[int],
        file_space: Any,
    ) -> None:
        """Write ``buffer`` into the selected region of ``file_space``.

        ``memory_type`` describes the buffer as it sits in memory (padding
        included); HDF5 converts it to the dataset's packed file type.
        """
        data = np.ascontiguousarray(buffer, dtype=memory_type)
        mem_space = h5s.create_simple(tuple(memory_shape))
        mem_type = h5t.py_create(data.dtype)
        self.dataset.id.write(mem_space, file_space, data, mem_type)

    def close(self) -> None:
        """Flush the dataset and drop this handle's reference to it.

        h5py closes the HDF5 dataset identifier when its last Python
        reference goes away; the writer holds the only one, so the dataset
        is released here unless the caller kept its own ``h5py.Dataset``
        for the same path. Calling close() twice is a no-op.
        """
        if self._ds is None:
            return
        self._ds.flush()
        self._ds = None
        logger.debug(f"Released dataset handle {self.name}")


class H5Container:
    """Container backed by an open ``h5py.Group`` (``h5py.File`` included)."""

    def __init__(self, group: h5py.Group) -> None:
        self.group = group

    def create_dataset(
        self,
        name: str,
        dtype: np.dtype,
        shape: Shape,
        maxshape: Shape,
        chunks: Shape,
        compression_level: int,
    ) -> H5Dataset:
        ds = self.group.create_dataset(
            name,
            shape=shape,
            maxshape=maxshape,
            chunks=chunks,
            dtype=dtype,
            compression="gzip",
            compression_opts=compression_level,
        )
        logger.debug(
            f"Created dataset {ds.name} shape={shape} maxshape={maxshape} "
            f"chunks={chunks} gzip={compression_level}"
        )
        return H5Dataset(ds)


def as_container(obj: Any) -> Container:
    """Wrap an h5py group; pass through anything that already is a Container."""
    if isinstance(obj, h5py.Group):
        return H5Container(obj)
    if isinstance(obj, Container):
        return obj
    raise TypeError(
        f"Expected an h5py.Group or a Container, instead got {type(obj).__name__}"
    )
