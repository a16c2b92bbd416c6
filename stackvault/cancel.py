from __future__ import annotations

import signal
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional

from .errors import OperationCancelled


class CancelToken:
    """Cooperative cancellation for one vault operation.

    ``cancel()`` only raises a flag; the controller calls ``check()`` at every
    state transition and unwinds through its ordinary rollback path. Inside
    ``interruptible()`` (a blocking passphrase prompt) cancellation raises
    immediately instead.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None
        self._raise_now = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Process interrupted") -> None:
        self._cancelled = True
        self._reason = reason
        if self._raise_now:
            self._raise_now = False
            raise OperationCancelled(reason)

    def check(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self._reason or "Process interrupted")

    @contextmanager
    def interruptible(self) -> Iterator[None]:
        self.check()
        self._raise_now = True
        try:
            yield
        finally:
            self._raise_now = False


@contextmanager
def cancel_on_signals(
    token: CancelToken,
    signums: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancelToken]:
    """Route termination signals into ``token`` for the duration of the block."""

    def _handler(signum, _frame) -> None:
        token.cancel(f"Process interrupted by {signal.Signals(signum).name}")

    previous: dict[int, Callable] = {}
    for signum in signums:
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield token
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
