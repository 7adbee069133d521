import threading
from contextlib import contextmanager
from typing import Dict, List

# room_id -> [lock, number of holders and waiters]
_room_locks: Dict[int, List] = {}
_room_locks_guard = threading.Lock()


@contextmanager
def room_guard(room_id: int):
    """
    Serialize check-then-write sequences on one room within this process.

    Entries live only while some thread holds or waits for them, so the
    registry never grows past the number of in-flight requests.
    """
    with _room_locks_guard:
        entry = _room_locks.setdefault(room_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _room_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _room_locks[room_id]
