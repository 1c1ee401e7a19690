"""
Utility functions for concurrent.futures.

This module lets the plugin registry fan plugin calculations out to an executor
(threads or processes) or run them lazily in the calling thread, behind the same
Future-like interface.
"""

from concurrent.futures import CancelledError, Executor, Future
from typing import Any, Callable, Optional, Union

_PENDING = "pending"
_CANCELLED = "cancelled"
_FINISHED = "finished"


class InProcessResult:
    """
    A lazy, in-thread stand-in for concurrent.futures.Future.

    The function runs on the first call to result(); its return value or
    exception is kept so later calls do not run it again. A pending result can
    be cancelled, after which result() raises CancelledError.

    Parameters
    ----------
    func : callable
        The function to execute
    args : tuple
        Positional arguments to pass to the function
    kwargs : dict
        Keyword arguments to pass to the function
    """

    def __init__(
        self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self._state = _PENDING
        self._result: Any = None
        self._exception: Optional[BaseException] = None

    def result(self) -> Any:
        """
        Run the function if needed and return its result.

        Returns
        -------
        Any
            The result of calling the function with the provided arguments

        Raises
        ------
        CancelledError
            If the result was cancelled before it ran.
        """
        if self._state == _CANCELLED:
            raise CancelledError()
        if self._state == _PENDING:
            try:
                self._result = self.func(*self.args, **self.kwargs)
            except Exception as e:
                self._exception = e
            self._state = _FINISHED
        if self._exception is not None:
            raise self._exception
        return self._result

    def cancel(self) -> bool:
        """
        Cancel the call if it has not run yet.

        Returns
        -------
        bool
            True if the result is (now) cancelled, False if the function already ran.
        """
        if self._state == _FINISHED:
            return False
        self._state = _CANCELLED
        return True

    def cancelled(self) -> bool:
        return self._state == _CANCELLED

    def done(self) -> bool:
        return self._state != _PENDING


def make_future(
    executor: Optional[Executor], func: Callable[..., Any], *args: Any, **kwargs: Any
) -> Union[Future, InProcessResult]:
    """
    Create a Future-like object for concurrent or deferred execution.

    Parameters
    ----------
    executor : Executor or None
        If not None, the function will execute concurrently using this executor
        (a ThreadPoolExecutor or ProcessPoolExecutor).
        If None, the function will execute in the current thread when future.result() is called.
    func : callable
        The function to execute.
    *args : Any
        Positional arguments to pass to the function.
    **kwargs : Any
        Keyword arguments to pass to the function.

    Returns
    -------
    Union[Future, InProcessResult]
        A Future-like object that will execute the function when its result() method is called.
    """
    if executor is not None:
        return executor.submit(func, *args, **kwargs)
    return InProcessResult(func, args, kwargs)
