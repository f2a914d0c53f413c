"""writer.py - Buffered append-only writers for chunked HDF5 datasets.

Two writers share one buffering protocol:

- ``Writer`` (rank 2): every add() takes a sequence of records and stores
  exactly ``max_length`` of them as one row. Longer sequences are truncated
  to their first ``max_length`` entries, shorter ones are padded at the tail
  with the record type's sentinel.
- ``Writer1d`` (rank 1): every add() takes a single record.

Rows are buffered in memory. An add() that finds ``batch_size`` rows already
buffered flushes them first, so a trailing partial batch stays buffered
until flush() is called explicitly. flush() extends the dataset's first
dimension by the buffered row count and writes the rows through a hyperslab
selection starting at the current offset.

close() releases the dataset handle without flushing. Using a writer after
close() raises WriterClosedError.
"""

from __future__ import annotations

from itertools import islice
from typing import Any, Iterable, Optional

import numpy as np

from .config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_COMPRESSION_LEVEL,
    WriterConfig,
)
from .exceptions import InvariantViolation, WriterClosedError
from .layout import converter_of, layout_of, packed, sentinel_of
from .logger import get_logger
from .metrics import WriterMetrics, default_metrics
from .storage import DatasetHandle, as_container

logger = get_logger(__name__)


class _BufferedWriter:
    """Shared state machine and flush protocol (Created -> Accepting -> Closed)."""

    rank: int = 0

    def __init__(
        self,
        container: Any,
        name: str,
        record_type: Any,
        config: WriterConfig,
        metrics: Optional[WriterMetrics],
    ) -> None:
        config.validate()
        self.name = name
        self.record_type = record_type
        self._config = config
        self._batch_size = config.batch_size
        self._type = layout_of(record_type)
        self._file_type = packed(self._type)
        self._to_row = converter_of(record_type)
        self._offset = 0
        self._buffer: list[Any] = []
        self._closed = False
        self._metrics = metrics if metrics is not None else default_metrics()
        self._rank_label = str(self.rank)

        self._ds: DatasetHandle = as_container(container).create_dataset(
            name,
            self._file_type,
            shape=self._extent(0),
            maxshape=self._extent(None),
            chunks=self._extent(self._batch_size),
            compression_level=config.compression_level,
        )
        logger.info(
            f"{type(self).__name__} created dataset '{name}' for "
            f"{getattr(record_type, '__name__', record_type)} "
            f"(batch_size={self._batch_size}, gzip={config.compression_level})"
        )

    # Rank-specific hooks

    def _extent(self, rows: Optional[int]) -> tuple[Optional[int], ...]:
        raise NotImplementedError

    def buffered_row_count(self) -> int:
        raise NotImplementedError

    # Properties

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def compression_level(self) -> int:
        return self._config.compression_level

    @property
    def offset(self) -> int:
        """Rows already committed to disk."""
        return self._offset

    @property
    def dtype(self) -> np.dtype:
        """In-memory (padded) record dtype."""
        return self._type

    @property
    def file_dtype(self) -> np.dtype:
        """On-disk (packed) record dtype."""
        return self._file_type

    @property
    def closed(self) -> bool:
        return self._closed

    # Protocol

    def _check_open(self) -> None:
        if self._closed:
            raise WriterClosedError(self.name)

    def _append_row(self, row: list[Any]) -> None:
        if self.buffered_row_count() == self._batch_size:
            self.flush()
        self._buffer.extend(row)
        self._metrics["rows_added"].labels(rank=self._rank_label).inc()

    def flush(self) -> None:
        """Extend the dataset and write all buffered rows. No-op when empty."""
        self._check_open()
        rows = self.buffered_row_count()
        if rows == 0:
            return
        slab = self._extent(rows)
        start = (self._offset,) + (0,) * (self.rank - 1)

        self._ds.extend(self._extent(self._offset + rows))
        file_space = self._ds.get_space()
        self._ds.select_hyperslab(file_space, start, slab)
        data = np.array(self._buffer, dtype=self._type).reshape(slab)
        self._ds.write(data, self._type, slab, file_space)

        logger.debug(
            f"Flushed {rows} rows to '{self.name}' at offset {self._offset}"
        )
        self._offset += rows
        self._buffer.clear()
        self._metrics["flushes"].labels(rank=self._rank_label).inc()
        self._metrics["rows_written"].labels(rank=self._rank_label).inc(rows)

    def close(self) -> None:
        """Release the dataset handle. Buffered rows are not flushed."""
        self._check_open()
        pending = self.buffered_row_count()
        if pending:
            logger.warning(
                f"Closing '{self.name}' with {pending} unflushed rows; "
                "call flush() before close() to keep them"
            )
        self._ds.close()
        self._closed = True
        logger.info(f"Closed '{self.name}' after {self._offset} rows")

    # Exclusive ownership of the dataset handle

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    # Context-manager support

    def __enter__(self):
        self._check_open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if self._closed:
            return
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"{type(self).__name__}(name={self.name!r}, offset={self._offset}, "
            f"buffered={self.buffered_row_count()}, {state})"
        )


class Writer(_BufferedWriter):
    """Rank-2 writer storing fixed-length sequences of records.

    Dataset shape is ``(rows, max_length)``, unlimited along rows, chunked
    as ``(batch_size, max_length)`` with gzip compression.
    """

    rank = 2

    def __init__(
        self,
        container: Any,
        name: str,
        record_type: Any,
        max_length: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
        metrics: Optional[WriterMetrics] = None,
    ) -> None:
        config = WriterConfig(
            batch_size=batch_size, compression_level=compression_level
        ).with_max_length(max_length)
        # _extent() needs max_length before the dataset is created
        self._max_length = max_length
        self._empty_row = converter_of(record_type)(sentinel_of(record_type))
        super().__init__(container, name, record_type, config, metrics)

    @property
    def max_length(self) -> int:
        return self._max_length

    def _extent(self, rows: Optional[int]) -> tuple[Optional[int], ...]:
        return (rows, self._max_length)

    def buffered_row_count(self) -> int:
        rows, rest = divmod(len(self._buffer), self._max_length)
        if rest:
            raise InvariantViolation(
                f"Buffer of '{self.name}' holds {len(self._buffer)} records, "
                f"not a multiple of max_length={self._max_length}"
            )
        return rows

    def add(self, sequence: Iterable[Any]) -> None:
        """Buffer one row: the first ``max_length`` records of ``sequence``,
        padded with sentinels when it is shorter.
        """
        self._check_open()
        row = [self._to_row(item) for item in islice(sequence, self._max_length)]
        row.extend([self._empty_row] * (self._max_length - len(row)))
        self._append_row(row)

    def add_many(self, sequences: Iterable[Iterable[Any]]) -> None:
        for sequence in sequences:
            self.add(sequence)


class Writer1d(_BufferedWriter):
    """Rank-1 writer storing one record per row.

    Dataset shape is ``(rows,)``, unlimited, chunked as ``(batch_size,)``
    with gzip compression.
    """

    rank = 1

    def __init__(
        self,
        container: Any,
        name: str,
        record_type: Any,
        batch_size: int = DEFAULT_BATCH_SIZE,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
        metrics: Optional[WriterMetrics] = None,
    ) -> None:
        config = WriterConfig(batch_size=batch_size, compression_level=compression_level)
        super().__init__(container, name, record_type, config, metrics)

    def _extent(self, rows: Optional[int]) -> tuple[Optional[int], ...]:
        return (rows,)

    def buffered_row_count(self) -> int:
        return len(self._buffer)

    def add(self, record: Any) -> None:
        self._check_open()
        self._append_row([self._to_row(record)])

    def add_many(self, records: Iterable[Any]) -> None:
        for record in records:
            self.add(record)
