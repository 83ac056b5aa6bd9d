# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2024 University of New Hampshire
# Copyright(c) 2026 The remote-exec Authors

"""Remote execution session.

A :class:`RemoteSession` owns the connection to one remote host and runs commands inside it,
one at a time. The output of the commands is passed through an
:class:`~remote_exec.output_buffer.OutputBuffer` to the registered output handler.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from typing_extensions import Self

from remote_exec.config import SessionConfiguration
from remote_exec.correlation import CorrelatedCallback
from remote_exec.exception import (
    ExecStartError,
    InternalError,
    SSHTimeoutError,
)
from remote_exec.logger import RemoteExecLogger, get_logger
from remote_exec.output_buffer import OutputBuffer
from remote_exec.utils import make_login_shell_command, make_upload_command

from .ssh_transport import SSHTransport
from .transport import ShellTransport


@dataclass(slots=True, frozen=True)
class OutputMetadata:
    """Identifies the session a piece of output comes from.

    Attributes:
        name: The name of the session.
        header: The log header of the session, used to attribute the output in logs.
        correlation_id: The correlation identifier active when the handler was registered.
    """

    name: str
    header: str
    correlation_id: str | None


#: Receives a chunk of output along with the metadata of the session.
OutputHandler = Callable[[str, OutputMetadata], Any]
#: Creates a connected transport. Expected to raise :exc:`SSHConnectionError` on failure.
TransportFactory = Callable[[SessionConfiguration, RemoteExecLogger], ShellTransport]


class RemoteSession:
    """Non-interactive remote session.

    The session starts disconnected. It connects on :meth:`connect` or implicitly on the first
    :meth:`exec` and may be reconnected after :meth:`close`. Commands run one at a time.

    The session can be used as a context manager, which closes it upon exit::

        with RemoteSession("build", config) as session:
            session.on_output(lambda output, metadata: print(output, end=""))
            exit_status = session.exec("make -j8")

    Attributes:
        name: The name of the session.
        config: The configuration of the session.
    """

    name: str
    config: SessionConfiguration
    _logger: RemoteExecLogger
    _transport_factory: TransportFactory
    _transport: ShellTransport | None
    _buffer: OutputBuffer | None
    _on_output: CorrelatedCallback | None
    _inline_on_output: CorrelatedCallback | None
    _executing: bool

    def __init__(
        self,
        name: str,
        config: SessionConfiguration,
        logger: RemoteExecLogger | None = None,
        transport_factory: TransportFactory = SSHTransport,
    ):
        """Initialize a disconnected session.

        Args:
            name: The name of the session, used in logs and in output metadata.
            config: The configuration of the session.
            logger: The logger instance this session will use.
            transport_factory: The factory of the transport the session connects with.
        """
        self.name = name
        self.config = config
        self._logger = logger or get_logger(name)
        self._transport_factory = transport_factory
        self._transport = None
        self._buffer = None
        self._on_output = None
        self._inline_on_output = None
        self._executing = False

    @property
    def log_header(self) -> str:
        """The header identifying the session in logs."""
        return f"{self.name}:shell:session"

    @property
    def is_open(self) -> bool:
        """:data:`True` if the session is connected and the connection hasn't been closed."""
        return self._transport is not None and not self._transport.closed

    @property
    def buffer(self) -> OutputBuffer:
        """The output buffer of the session, created on first use."""
        if self._buffer is None:
            self._buffer = OutputBuffer(self.config.buffer, self._deliver)
        return self._buffer

    def connect(self, silent: bool = False) -> bool:
        """Connect to the remote host.

        The previous connection, if any, is closed first, even if the remote side closed it.

        Args:
            silent: If :data:`True`, don't log the connection attempt.

        Returns:
            :data:`True` when connected.

        Raises:
            SSHConnectionError: If the connection to the remote host was not successful.
        """
        if not silent:
            self._logger.info(
                f"starting ssh session to {self.config.host}:{self.config.port} ..."
            )

        self._close_transport()
        self._transport = None
        self._transport = self._transport_factory(self.config, self._logger)
        return True

    def close(self) -> None:
        """Close the connection and stop the output buffer.

        Stopping the buffer delivers the output which hasn't been delivered yet.
        Closing a session which isn't connected does nothing.
        """
        self._close_transport()
        self._transport = None

        if self._buffer is not None:
            buffer, self._buffer = self._buffer, None
            buffer.stop()

    def on_output(self, handler: OutputHandler | None) -> None:
        """Set the handler called with the output of commands.

        There's only one handler; setting a new one replaces the previous one, :data:`None`
        removes it. The handler always runs under the correlation identifier active at the time
        of this call and receives it in its metadata.

        Args:
            handler: The handler to call with each delivered chunk of output.
        """
        self._on_output = CorrelatedCallback(handler) if handler is not None else None

    def exec(
        self,
        command: str,
        on_output: OutputHandler | None = None,
        timeout: float | None = None,
    ) -> int | None:
        """Run `command` on the remote host and wait for it to finish.

        The command is run by the configured login shell. It's quoted as a single shell word,
        so the shell receives exactly `command`. The output is delivered through the output
        buffer while the command runs; all of it has been delivered when the method returns.

        Args:
            command: The command to execute.
            on_output: An optional handler called with the output of this command only,
                after the handler set with :meth:`on_output`.
            timeout: If given, wait at most this many seconds for the command to finish.

        Returns:
            The exit status of the command, or :data:`None` if the remote host never reported one,
            e.g. when the command was killed by a signal or the connection closed.

        Raises:
            SSHConnectionError: If the session wasn't connected and connecting failed.
            SSHSessionDeadError: If the connection can't open a new channel.
            ExecStartError: If the remote host refused to start the command.
            SSHTimeoutError: If `timeout` expired. The session is closed in that case.
            InternalError: If the session is already executing a command.
        """
        if self._executing:
            raise InternalError(f"The session {self.name} is already executing a command.")

        if not self.is_open:
            self.connect()

        self._executing = True
        self._inline_on_output = CorrelatedCallback(on_output) if on_output is not None else None
        buffer = self.buffer
        try:
            return self._run(command, buffer, timeout)
        finally:
            if not buffer.stopped:
                buffer.flush()
            self._inline_on_output = None
            self._executing = False

    def upload_file(self, path: str | PurePath, content: str | bytes) -> int | None:
        """Append `content` to the file at `path` on the remote host.

        The content is sent inline with the command, so it's limited by the maximum length of
        the remote command line.

        Args:
            path: The destination path on the remote host.
            content: The content to append.

        Returns:
            The exit status of the upload command, see :meth:`exec`.
        """
        if isinstance(content, str):
            content = content.encode()
        self._logger.info(f"Uploading {len(content)} bytes to '{path}'.")
        return self.exec(make_upload_command(path, content))

    def _run(self, command: str, buffer: OutputBuffer, timeout: float | None) -> int | None:
        exit_status: int | None = None

        def _capture_exit_status(status: int) -> None:
            nonlocal exit_status
            exit_status = status

        self._logger.info(f"Sending: '{command}'")
        channel = self._get_transport().open_channel()
        channel.on_data(buffer.append)
        channel.on_exit_status(_capture_exit_status)

        if not channel.exec(make_login_shell_command(command, self.config.shell)):
            self._logger.error(f"FAILED: couldn't execute command '{command}'")
            raise ExecStartError(command)

        deadline = None if timeout is None else time.monotonic() + timeout
        while channel.active and self.is_open:
            wait = self.config.poll_interval
            until_tick = buffer.time_until_tick()
            if until_tick is not None:
                wait = min(wait, until_tick)

            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._logger.warning(
                        f"Command '{command}' didn't finish in {timeout} seconds, "
                        "closing the session."
                    )
                    self.close()
                    raise SSHTimeoutError(command)
                wait = min(wait, remaining)

            self._get_transport().process(wait)
            buffer.tick()

        self._logger.debug(f"Command '{command}' finished with exit status {exit_status}.")
        return exit_status

    def _get_transport(self) -> ShellTransport:
        if self._transport is None:
            raise InternalError(f"The session {self.name} is not connected.")
        return self._transport

    def _close_transport(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def _deliver(self, output: str) -> None:
        """The sink of the output buffer."""
        for handler in (self._on_output, self._inline_on_output):
            if handler is not None:
                handler(output, OutputMetadata(self.name, self.log_header, handler.correlation_id))

    def __enter__(self) -> Self:
        """Enter the context block, the session connects lazily."""
        return self

    def __exit__(self, *_: Any) -> None:
        """Close the session regardless of the reason for exiting the context."""
        self.close()
