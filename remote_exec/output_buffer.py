# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2026 The remote-exec Authors

"""Output buffering.

Remote commands tend to produce their output in many small pieces. Handing each piece to the
consumer as it arrives makes the consumer (a log shipper, a web socket) do a lot of work for
little data. :class:`OutputBuffer` accumulates the pieces and hands them over in larger chunks
on a fixed interval.

The buffer doesn't own a thread or a timer. Whoever drives the event loop calls
:meth:`OutputBuffer.tick` and uses :meth:`OutputBuffer.time_until_tick` to know how long
it may wait for new events without delaying a delivery.

Example::

    buffer = OutputBuffer(0.25, print)
    buffer.append("hello ")
    buffer.append("world\\n")
    buffer.tick()  # prints "hello world" once 0.25s have passed
    buffer.stop()  # delivers whatever is left
"""

import time
from collections.abc import Callable

#: The sink the buffer delivers chunks of output to.
OutputSink = Callable[[str], None]


class OutputBuffer:
    """An append-only accumulator of output with a read cursor.

    With a positive interval, :meth:`append` only accumulates. Delivery to the sink happens
    on :meth:`tick` (once per interval), :meth:`flush` and :meth:`stop`.
    With a zero interval the buffer is bypassed and every chunk goes to the sink right away.

    In both modes, the concatenation of the delivered chunks equals the concatenation of the
    appended chunks; nothing is dropped, duplicated or reordered. The sink is never invoked
    with empty output.

    Attributes:
        interval: The number of seconds between two deliveries. ``0`` disables buffering.
    """

    interval: float
    _sink: OutputSink
    _clock: Callable[[], float]
    _chunks: list[str]
    _length: int
    _read_pos: int
    _read_index: int
    _deadline: float | None
    _stopped: bool

    def __init__(
        self, interval: float, sink: OutputSink, clock: Callable[[], float] = time.monotonic
    ):
        """Start the periodic tick if buffering is enabled.

        Args:
            interval: The number of seconds between two deliveries. ``0`` disables buffering.
            sink: The callable the output is delivered to.
            clock: The monotonic clock the ticks are measured with.

        Raises:
            ValueError: If `interval` is negative.
        """
        if interval < 0:
            raise ValueError(f"The buffer interval must not be negative, got {interval}.")

        self.interval = interval
        self._sink = sink
        self._clock = clock
        self._chunks = []
        self._length = 0
        self._read_pos = 0
        self._read_index = 0
        self._deadline = clock() + interval if self.buffered else None
        self._stopped = False

    @property
    def buffered(self) -> bool:
        """:data:`True` if output is accumulated between ticks."""
        return self.interval > 0

    @property
    def stopped(self) -> bool:
        """:data:`True` if the buffer has been stopped."""
        return self._stopped

    @property
    def read_pos(self) -> int:
        """The offset of the first unread character."""
        return self._read_pos

    @property
    def content(self) -> str:
        """All the output appended so far, read or not."""
        return "".join(self._chunks)

    def __len__(self) -> int:
        return self._length

    @property
    def is_empty(self) -> bool:
        """:data:`True` if there's no unread output."""
        return self._read_pos == self._length

    def append(self, chunk: str) -> None:
        """Append `chunk` to the end of the accumulated output.

        Without buffering, `chunk` is delivered to the sink immediately instead.

        Args:
            chunk: The output to append.
        """
        if not chunk:
            return

        if not self.buffered:
            self._sink(chunk)
            return

        self._chunks.append(chunk)
        self._length += len(chunk)

    def read(self) -> str:
        """Return the output appended since the previous read and move the cursor past it."""
        unread = "".join(self._chunks[self._read_index :])
        self._read_index = len(self._chunks)
        self._read_pos = self._length
        return unread

    def flush(self) -> None:
        """Deliver all unread output to the sink.

        An empty buffer is left alone, the sink isn't called.
        """
        if self.is_empty:
            return
        self._sink(self.read())

    def time_until_tick(self, now: float | None = None) -> float | None:
        """Return the number of seconds until the next tick is due.

        Args:
            now: The current time. Defaults to the buffer's clock.

        Returns:
            The number of seconds, ``0`` if a tick is overdue, or :data:`None` if no tick
            is scheduled, because buffering is disabled or the buffer has been stopped.
        """
        if self._deadline is None:
            return None
        if now is None:
            now = self._clock()
        return max(self._deadline - now, 0.0)

    def tick(self, now: float | None = None) -> bool:
        """Flush the buffer if the periodic tick is due and schedule the next one.

        Ticks missed while the caller was busy are not replayed; a single flush delivers
        everything that accumulated meanwhile.

        Args:
            now: The current time. Defaults to the buffer's clock.

        Returns:
            :data:`True` if the tick was due.
        """
        if self._deadline is None:
            return False
        if now is None:
            now = self._clock()
        if now < self._deadline:
            return False

        self.flush()
        self._deadline += self.interval
        if self._deadline <= now:
            self._deadline = now + self.interval
        return True

    def stop(self) -> None:
        """Cancel the periodic tick and deliver any unread output."""
        self._deadline = None
        self._stopped = True
        self.flush()
