# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2026 The remote-exec Authors

"""Correlation identifiers and the callbacks bound to them.

Output of a remote command is delivered asynchronously relative to the code that issued the
command: a buffer tick or a data event fires the output handler from inside the polling loop,
possibly while the loop serves a command issued under a different identifier. To attribute
each piece of output to the right caller, handlers are wrapped in :class:`CorrelatedCallback`,
which remembers the identifier active at registration time and makes it active again whenever
the handler runs.

The active identifier lives in a :class:`~contextvars.ContextVar`, so it is local to the
current thread and asyncio task.

Example::

    with correlation_scope(new_correlation_id()):
        session.on_output(print_output)

    # print_output runs under the identifier above, wherever it's triggered from
    session.exec("make test")
"""

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Generic, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the active correlation identifier, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> Token:
    """Make `correlation_id` the active correlation identifier.

    Args:
        correlation_id: The identifier to activate. :data:`None` clears the identifier.

    Returns:
        A token which restores the previous identifier when passed to :func:`reset_correlation_id`.
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    """Restore the identifier that was active before the call which returned `token`."""
    _correlation_id.reset(token)


def new_correlation_id() -> str:
    """Generate a new random correlation identifier."""
    return uuid.uuid4().hex


@contextmanager
def correlation_scope(correlation_id: str | None) -> Iterator[str | None]:
    """Make `correlation_id` active for the duration of the with block.

    Args:
        correlation_id: The identifier to activate.

    Yields:
        The activated identifier.
    """
    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        reset_correlation_id(token)


class CorrelatedCallback(Generic[P, R]):
    """A callback which always runs under the correlation identifier captured at creation.

    Attributes:
        callback: The wrapped callback.
        correlation_id: The identifier active when the instance was created.
    """

    callback: Callable[P, R]
    correlation_id: str | None

    def __init__(self, callback: Callable[P, R]):
        """Capture the active correlation identifier.

        Args:
            callback: The callback to wrap.
        """
        self.callback = callback
        self.correlation_id = get_correlation_id()

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        """Run the callback with the captured identifier active."""
        token = set_correlation_id(self.correlation_id)
        try:
            return self.callback(*args, **kwargs)
        finally:
            reset_correlation_id(token)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.callback!r}, correlation_id={self.correlation_id!r})"
