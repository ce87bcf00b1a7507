import itertools
import time

_counter = itertools.count(1)


def new_id(prefix: str = '') -> str:
    """Time-derived id, unique within the process even for same-millisecond calls."""
    stamp = f"{int(time.time() * 1000)}_{next(_counter)}"
    return f"{prefix}_{stamp}" if prefix else stamp
