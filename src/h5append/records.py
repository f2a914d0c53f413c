"""records.py - Record types shipped with h5append.

``Track`` is the record written by the ``h5append-dump`` smoke test: a
transverse momentum and a validity flag. The padded in-memory layout is
8 bytes (float32 + bool + 3 bytes padding); on disk it packs to 5.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .layout import record


@record([("pt", np.float32), ("mask", bool)])
class Track(NamedTuple):
    pt: float = 0.0
    mask: bool = False
