"""Wall clock in epoch milliseconds, the timestamp unit used by every feed."""

import time


def now_ms() -> int:
    return int(time.time() * 1000)
