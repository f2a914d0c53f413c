"""
h5append smoke-test driver

Usage:
    h5append-dump <count> [-o OUTPUT] [--batch-size B] [-v]
    python -m h5append.cli <count>

Writes <count> rows of <count> default Track records each to the "tracks"
dataset of OUTPUT (default: test.h5, truncated if it exists). The batch size
and gzip level default to $H5APPEND_BATCH_SIZE / $H5APPEND_COMPRESSION_LEVEL
when set. Any error propagates and aborts the run.
"""

import argparse
import logging
from pathlib import Path

import h5py

from .config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_OUTPUT,
    ENV_BATCH_SIZE,
    ENV_COMPRESSION_LEVEL,
    TRACKS_DATASET,
    WriterConfig,
)
from .records import Track
from .writer import Writer


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def dump(
    count: int,
    output: str | Path = DEFAULT_OUTPUT,
    batch_size: int = DEFAULT_BATCH_SIZE,
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> Path:
    """Write ``count`` rows of ``count`` empty tracks to ``output``."""
    output = Path(output)
    tracks = [Track()] * count
    with h5py.File(str(output), "w") as out_file:
        writer = Writer(
            out_file,
            TRACKS_DATASET,
            Track,
            max_length=count,
            batch_size=batch_size,
            compression_level=compression_level,
        )
        for _ in range(count):
            writer.add(tracks)
        writer.flush()
        writer.close()
    return output


def main(argv=None) -> int:
    defaults = WriterConfig.from_env()
    parser = argparse.ArgumentParser(
        prog="h5append-dump",
        description="Write dummy Track records to an HDF5 file",
    )
    parser.add_argument("count", type=_positive_int, help="Rows to write (also the row length)")
    parser.add_argument(
        "-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT), help="Output HDF5 file"
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=defaults.batch_size,
        help=f"Rows per chunk/flush (default: ${ENV_BATCH_SIZE} or {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--compression-level",
        type=int,
        default=defaults.compression_level,
        choices=range(10),
        metavar="0-9",
        help=f"gzip level (default: ${ENV_COMPRESSION_LEVEL} or {DEFAULT_COMPRESSION_LEVEL})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    output = dump(args.count, args.output, args.batch_size, args.compression_level)
    print(f"Wrote {args.count} rows to {output}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
