# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2026 The remote-exec Authors

"""User-defined exceptions used across the package.

Infrastructure failures (the connection, the channel, the configuration) are raised as one of
the exceptions below. The outcome of a remote command, including a non-zero exit status,
is never an exception; it is returned as data to the caller of
:meth:`~remote_exec.remote_session.remote_session.RemoteSession.exec`.
"""

from enum import IntEnum, unique
from typing import ClassVar


@unique
class ErrorSeverity(IntEnum):
    """The severity of errors that occur while running remote commands.

    The command line front end uses the severity as its return code.
    """

    #:
    NO_ERR = 0
    #:
    GENERIC_ERR = 1
    #:
    CONFIG_ERR = 2
    #:
    SSH_ERR = 4
    #:
    EXEC_START_ERR = 5
    #:
    INTERNAL_ERR = 6


class RemoteExecError(Exception):
    """The base exception from which all remote-exec exceptions are derived.

    Attributes:
        severity: The severity of the exception.
    """

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.GENERIC_ERR


class SSHTimeoutError(RemoteExecError):
    """The caller-imposed bound on a command's execution has expired."""

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.SSH_ERR
    _command: str

    def __init__(self, command: str):
        """Define the meaning of the first argument.

        Args:
            command: The executed command.
        """
        self._command = command

    def __str__(self) -> str:
        """Add some context to the string representation."""
        return f"TIMEOUT on {self._command}"


class SSHConnectionError(RemoteExecError):
    """Authentication or network negotiation with the remote host failed."""

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.SSH_ERR
    _host: str
    _errors: list[str]

    def __init__(self, host: str, errors: list[str] | None = None):
        """Define the meaning of the first two arguments.

        Args:
            host: The hostname to which we're trying to connect.
            errors: Any errors that occurred during the connection attempt.
        """
        self._host = host
        self._errors = [] if errors is None else errors

    def __str__(self) -> str:
        """Include the errors in the string representation."""
        message = f"Error trying to connect with {self._host}."
        if self._errors:
            message += f" Errors encountered: {', '.join(self._errors)}"

        return message


class SSHSessionDeadError(RemoteExecError):
    """The SSH connection died and can no longer be used."""

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.SSH_ERR
    _host: str

    def __init__(self, host: str):
        """Define the meaning of the first argument.

        Args:
            host: The hostname of the disconnected node.
        """
        self._host = host

    def __str__(self) -> str:
        """Add some context to the string representation."""
        return f"SSH session with {self._host} has died"


class ExecStartError(RemoteExecError):
    """The remote host refused to start the requested command on an opened channel.

    This is fatal for the
    :meth:`~remote_exec.remote_session.remote_session.RemoteSession.exec` call and is never
    retried. It is distinct from a command that started and exited non-zero.
    """

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.EXEC_START_ERR
    #: The command that could not be started.
    command: str

    def __init__(self, command: str):
        """Define the meaning of the first argument.

        Args:
            command: The command that could not be started.
        """
        self.command = command

    def __str__(self) -> str:
        """Add some context to the string representation."""
        return f"FAILED: couldn't execute command {self.command}"


class ConfigurationError(RemoteExecError):
    """An invalid configuration."""

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.CONFIG_ERR


class InternalError(RemoteExecError):
    """An internal invariant has been broken."""

    #:
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.INTERNAL_ERR
