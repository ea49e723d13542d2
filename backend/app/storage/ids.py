"""Document id generation.

Ids are 24 lowercase hex characters derived from a microsecond clock and
forced strictly increasing within the process, so comparing two ids as
strings orders them by creation. Message pagination relies on this.
"""
import re
import threading
import time

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")

_lock = threading.Lock()
_last = 0


def new_id() -> str:
    """Return a fresh id, greater than every id issued before it."""
    global _last
    with _lock:
        now = time.time_ns() // 1000
        _last = now if now > _last else _last + 1
        return f"{_last:024x}"


def is_valid_id(value: object) -> bool:
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))
