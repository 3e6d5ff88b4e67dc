"""
Disposable - a handle that undoes a registration exactly once.
"""

from typing import Callable, Optional


class Disposable:
    """Runs its callback the first time dispose() is called."""

    def __init__(self, callback: Optional[Callable[[], None]] = None):
        self._callback = callback

    def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()

    @property
    def disposed(self) -> bool:
        return self._callback is None
