"""
Cooperative cancellation for long-running privacy analyses.

A single analysis is a sequence of pure computations with no blocking I/O, so it
cannot be interrupted from the outside. Instead, a CancellationToken is checked at
safe points: between plugin executions and between equivalence class grouping
batches.
"""

import threading
import time
from typing import Optional


class AnalysisCancelledError(RuntimeError):
    """
    Raised at a cancellation check once the analysis has been cancelled or timed out.
    """


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.

    Parameters
    ----------
    timeout_s : float or None
        Optional timeout in seconds, measured from construction; once it has
        elapsed the token reports itself as cancelled.

    Examples
    --------
    >>> token = CancellationToken()
    >>> token.cancelled
    False
    >>> token.cancel()
    >>> token.cancelled
    True
    """

    def __init__(self, timeout_s: Optional[float] = None) -> None:
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be positive if specified")
        self._event = threading.Event()
        self._deadline = None if timeout_s is None else time.monotonic() + timeout_s

    def cancel(self) -> None:
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out

    def raise_if_cancelled(self, where: str = "") -> None:
        """
        Raise AnalysisCancelledError if the token has been cancelled or timed out.

        Parameters
        ----------
        where : str, optional
            Short description of the checkpoint, included in the error message.
        """
        if self.cancelled:
            reason = "timed out" if self.timed_out and not self._event.is_set() else "cancelled"
            suffix = f" ({where})" if where else ""
            raise AnalysisCancelledError(f"Privacy analysis {reason}{suffix}")


def check_cancelled(cancellation: Optional[CancellationToken], where: str = "") -> None:
    """
    Convenience wrapper around CancellationToken.raise_if_cancelled that accepts None.
    """
    if cancellation is not None:
        cancellation.raise_if_cancelled(where)
