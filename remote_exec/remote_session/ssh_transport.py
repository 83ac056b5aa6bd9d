# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2023 PANTHEON.tech s.r.o.
# Copyright(c) 2024 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""SSH transport."""

import codecs
import select
import socket
import traceback

from fabric import Connection  # type: ignore[import-untyped]
from paramiko import AutoAddPolicy, Channel
from paramiko.ssh_exception import (
    AuthenticationException,
    BadHostKeyException,
    NoValidConnectionsError,
    SSHException,
)

from remote_exec.config import SessionConfiguration
from remote_exec.exception import SSHConnectionError, SSHSessionDeadError
from remote_exec.logger import RemoteExecLogger, get_logger

from .transport import CommandChannel, ShellTransport

#: The exit status paramiko keeps when the remote host never reported one.
_NO_EXIT_STATUS = -1


class SSHChannel(CommandChannel):
    """A paramiko session channel running one command.

    The raw output is decoded incrementally, so a multibyte UTF-8 character split between
    two packets is decoded correctly. Undecodable bytes are replaced.
    """

    #: The maximum number of bytes read from the channel at once.
    READ_SIZE = 32768

    _channel: Channel
    _logger: RemoteExecLogger
    _decoder: codecs.IncrementalDecoder
    _finished: bool

    def __init__(self, channel: Channel, logger: RemoteExecLogger):
        """Combine the standard error output with the standard output of `channel`.

        Args:
            channel: The opened paramiko channel.
            logger: The logger instance the channel will use.
        """
        super().__init__()
        self._channel = channel
        self._channel.set_combine_stderr(True)
        self._logger = logger
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._finished = False

    def exec(self, command: str) -> bool:
        """Overrides :meth:`~.transport.CommandChannel.exec`."""
        try:
            self._channel.exec_command(command)
        except SSHException:
            self._logger.debug(traceback.format_exc())
            self._channel.close()
            self._finished = True
            return False
        return True

    @property
    def active(self) -> bool:
        """Overrides :attr:`~.transport.CommandChannel.active`."""
        return not self._finished

    def fileno(self) -> int:
        """Return the file descriptor which becomes readable when the channel has news."""
        return self._channel.fileno()

    @property
    def drained(self) -> bool:
        """:data:`True` if all output has been read and only the exit status is awaited.

        paramiko keeps the file descriptor of a channel readable forever once it receives EOF,
        so a drained channel must not be waited for with :func:`select.select`.
        """
        return bool(self._channel.eof_received) and not self._channel.recv_ready()

    def wait_for_exit_status(self, timeout: float) -> None:
        """Wait at most `timeout` seconds for the exit status or the closure of the channel."""
        self._channel.status_event.wait(timeout)

    def process_events(self) -> None:
        """Dispatch the output received so far and detect the completion of the command."""
        if self._finished:
            return

        while self._channel.recv_ready():
            data = self._channel.recv(self.READ_SIZE)
            if not data:
                break
            self._emit_text(self._decoder.decode(data))

        # paramiko marks the exit status as ready when it arrives and when the channel closes
        if (
            self._channel.exit_status_ready()
            and (self._channel.eof_received or self._channel.closed)
            and not self._channel.recv_ready()
        ):
            self._finish()

    def _finish(self) -> None:
        self._finished = True
        self._emit_text(self._decoder.decode(b"", final=True))
        if self._channel.exit_status != _NO_EXIT_STATUS:
            self._emit_exit_status(self._channel.exit_status)
        self._channel.close()

    def _emit_text(self, text: str) -> None:
        if text:
            self._emit_data(text)


class SSHTransport(ShellTransport):
    """A persistent SSH connection to a remote host.

    The connection is implemented with
    `the Fabric Python library <https://docs.fabfile.org/en/latest/>`_,
    the channels are plain paramiko channels of the underlying paramiko transport.

    The host key of the remote host is accepted even if it's unknown.

    Attributes:
        hostname: The host and port of the remote host, used in error messages.
    """

    hostname: str
    _config: SessionConfiguration
    _logger: RemoteExecLogger
    _connection: Connection
    _channels: list[SSHChannel]

    def __init__(self, config: SessionConfiguration, logger: RemoteExecLogger | None = None):
        """Connect to the remote host during initialization.

        Args:
            config: The configuration of the session this transport serves.
            logger: The logger instance the transport will use.

        Raises:
            SSHConnectionError: If the connection to the remote host was not successful.
        """
        self._config = config
        self._logger = logger or get_logger("ssh")
        self._channels = []
        self.hostname = f"{config.host}:{config.port}"
        self._connect()

    def _connect(self) -> None:
        """Create a connection to the remote host.

        No retries are attempted, the caller decides whether to try again.

        Raises:
            SSHConnectionError: If the connection to the remote host was not successful.
        """
        connect_kwargs: dict[str, object] = {}
        if self._config.password is not None:
            connect_kwargs["password"] = self._config.password
        if self._config.private_key_path is not None:
            connect_kwargs["key_filename"] = [str(self._config.private_key_path)]

        try:
            self._connection = Connection(
                self._config.host,
                user=self._config.username,
                port=self._config.port,
                connect_kwargs=connect_kwargs,
                connect_timeout=self._config.connect_timeout,
            )
            self._connection.client.set_missing_host_key_policy(AutoAddPolicy())
            self._connection.open()

        except (ValueError, BadHostKeyException, AuthenticationException) as e:
            self._logger.exception(e)
            raise SSHConnectionError(self.hostname, [repr(e)]) from e

        except (NoValidConnectionsError, socket.error, SSHException) as e:
            self._logger.debug(traceback.format_exc())
            self._logger.error(e)
            raise SSHConnectionError(self.hostname, [repr(e)]) from e

    def open_channel(self) -> SSHChannel:
        """Overrides :meth:`~.transport.ShellTransport.open_channel`."""
        transport = self._connection.transport
        if transport is None or not transport.is_active():
            raise SSHSessionDeadError(self.hostname)

        try:
            channel = transport.open_session(timeout=self._config.connect_timeout)
        except SSHException as e:
            self._logger.exception(e)
            raise SSHSessionDeadError(self.hostname) from e

        ssh_channel = SSHChannel(channel, self._logger)
        self._channels.append(ssh_channel)
        return ssh_channel

    def process(self, timeout: float) -> None:
        """Overrides :meth:`~.transport.ShellTransport.process`."""
        self._channels = [channel for channel in self._channels if channel.active]
        if not self._channels:
            return

        waiting = [channel for channel in self._channels if not channel.drained]
        if waiting:
            select.select(waiting, [], [], timeout)
        else:
            self._channels[0].wait_for_exit_status(timeout)
        for channel in self._channels:
            channel.process_events()

    @property
    def closed(self) -> bool:
        """Overrides :attr:`~.transport.ShellTransport.closed`."""
        return not self._connection.is_connected

    def close(self) -> None:
        """Overrides :meth:`~.transport.ShellTransport.close`."""
        self._connection.close()
