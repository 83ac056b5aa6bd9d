# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2023 PANTHEON.tech s.r.o.
# Copyright(c) 2026 The remote-exec Authors

"""Remote non-interactive sessions.

This package provides modules for managing remote connections to a remote host (node).

The sessions send commands, stream their output to a handler and return their exit status.
"""

from remote_exec.config import SessionConfiguration
from remote_exec.logger import RemoteExecLogger

from .remote_session import OutputHandler, OutputMetadata, RemoteSession, TransportFactory
from .ssh_transport import SSHChannel, SSHTransport
from .transport import CommandChannel, ShellTransport

__all__ = [
    "CommandChannel",
    "OutputHandler",
    "OutputMetadata",
    "RemoteSession",
    "SSHChannel",
    "SSHTransport",
    "ShellTransport",
    "TransportFactory",
    "create_remote_session",
]


def create_remote_session(
    config: SessionConfiguration, name: str, logger: RemoteExecLogger | None = None
) -> RemoteSession:
    """Create a disconnected SSH session described by `config`.

    Args:
        config: The configuration of the session.
        name: The name of the session.
        logger: The logger instance the session will use.

    Returns:
        The session. It connects on first use.
    """
    return RemoteSession(name, config, logger)
