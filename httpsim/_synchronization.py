from __future__ import annotations

import types
from threading import RLock


class StoreLock:
    """
    Re-entrant mutex guarding one store.

    Every read and write of a store happens under its lock, so a lookup that
    evicts an expired entry cannot interleave with a concurrent `store`.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = RLock()

    def __repr__(self) -> str:
        return f"StoreLock({self.name!r})"

    def __enter__(self) -> StoreLock:
        self._lock.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: types.TracebackType | None = None,
    ) -> None:
        self._lock.release()
