# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

r"""The contract between a session and the transport it runs commands over.

A :class:`ShellTransport` is one open connection to a remote host. Commands run in
:class:`CommandChannel`\s opened on the transport. Channels don't block: the events they
receive (output, the exit status) are dispatched to the registered handlers only while
the owner drives the transport with :meth:`ShellTransport.process`.

The SSH implementation is :class:`~.ssh_transport.SSHTransport`.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

#: Receives the decoded output of a command.
DataHandler = Callable[[str], None]
#: Receives the exit status of a command.
ExitStatusHandler = Callable[[int], None]


class CommandChannel(ABC):
    """A single command-execution stream multiplexed over a transport.

    The standard error output of the command is combined with its standard output.
    """

    _data_handlers: list[DataHandler]
    _exit_status_handlers: list[ExitStatusHandler]

    def __init__(self) -> None:
        """Initialize the handler registries."""
        self._data_handlers = []
        self._exit_status_handlers = []

    @abstractmethod
    def exec(self, command: str) -> bool:
        """Request the execution of `command` on the remote host.

        Args:
            command: The full command line to execute.

        Returns:
            :data:`True` if the remote host started the command, :data:`False` if it refused.
        """

    @property
    @abstractmethod
    def active(self) -> bool:
        """:data:`False` once the channel has completed."""

    def on_data(self, handler: DataHandler) -> None:
        """Call `handler` with every piece of output, in the order of arrival."""
        self._data_handlers.append(handler)

    def on_exit_status(self, handler: ExitStatusHandler) -> None:
        """Call `handler` with the exit status, if the remote host reports one."""
        self._exit_status_handlers.append(handler)

    def _emit_data(self, data: str) -> None:
        for handler in self._data_handlers:
            handler(data)

    def _emit_exit_status(self, exit_status: int) -> None:
        for handler in self._exit_status_handlers:
            handler(exit_status)


class ShellTransport(ABC):
    """An open connection to a remote host capable of running shell commands."""

    @abstractmethod
    def open_channel(self) -> CommandChannel:
        """Open a new command channel.

        Raises:
            SSHSessionDeadError: If the connection can't open channels anymore.
        """

    @abstractmethod
    def process(self, timeout: float) -> None:
        """Wait at most `timeout` seconds for events, then dispatch all pending ones.

        Args:
            timeout: The longest time to wait for an event.
        """

    @property
    @abstractmethod
    def closed(self) -> bool:
        """:data:`True` if the connection has been closed, from either side."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection and all of its channels."""
