"""Wall-clock time source."""

from __future__ import annotations

import time


def unix_time() -> float:
    """Return the current unix time in decimal seconds.

    Timestamps only need to be ordered scalars for the filter (it uses differences). Note that the wall clock
    is not guaranteed to be monotonic.

    Returns:
        float: Seconds elapsed since 00:00 UTC on Jan 1 1970.
    """
    return time.time()
