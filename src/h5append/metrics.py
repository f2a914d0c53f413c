"""metrics.py - Prometheus counters for writer activity"""

from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter

WriterMetrics = dict[str, Counter]


def create_writer_metrics(registry: Optional[CollectorRegistry] = None) -> WriterMetrics:
    """Create the writer counters on ``registry`` (default: the global one).

    All counters carry a ``rank`` label, "1" for Writer1d and "2" for Writer.
    """
    registry = REGISTRY if registry is None else registry
    rows_added = Counter(
        "h5append_rows_added",
        "Rows accepted by add() (one per sequence for rank-2 writers)",
        ["rank"],
        registry=registry,
    )
    flushes = Counter(
        "h5append_flushes",
        "Flushes that extended a dataset and wrote buffered rows",
        ["rank"],
        registry=registry,
    )
    rows_written = Counter(
        "h5append_rows_written",
        "Rows committed to disk by flush()",
        ["rank"],
        registry=registry,
    )
    return {
        "rows_added": rows_added,
        "flushes": flushes,
        "rows_written": rows_written,
    }


# Default global metrics (for production)
_default_metrics = create_writer_metrics()


def default_metrics() -> WriterMetrics:
    return _default_metrics
