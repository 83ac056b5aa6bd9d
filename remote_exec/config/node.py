# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2021 Intel Corporation
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2023 PANTHEON.tech s.r.o.
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""Configuration models representing a remote node and the session connected to it.

The root model of a node configuration is :class:`NodeConfiguration`.
"""

from pathlib import Path

from pydantic import Field, field_validator, model_validator

from remote_exec.utils import REGEX_FOR_IDENTIFIER

from .common import FrozenModel, load_fields_from_settings

#: The default number of seconds between two flushes of the output buffer.
DEFAULT_BUFFER_TIME: float = 0.25


def expand_user(path: Path | None) -> Path | None:
    """Expand a leading ``~`` in `path`."""
    return path.expanduser() if path is not None else None


class SessionConfiguration(FrozenModel):
    r"""The configuration of :class:`~remote_exec.remote_session.remote_session.RemoteSession`\s.

    Both credentials are optional and independent of each other. With neither of them,
    authentication is left to the SSH agent and the default keys of the local user.
    """

    #: The hostname of the remote node. Can also be an IP address.
    host: str = Field(min_length=1)
    #: The SSH port of the remote node.
    port: int = Field(22, ge=1, le=65535)
    #: The name of the user used to connect to the remote node.
    username: str = Field(min_length=1)
    #: The password of the user. The use of passwords is discouraged, please use SSH keys.
    password: str | None = None
    #: The path to a private key used to authenticate.
    private_key_path: Path | None = None
    #: The number of seconds between two deliveries of output. ``0`` disables buffering.
    buffer: float = Field(DEFAULT_BUFFER_TIME, ge=0)
    #: The timeout of the TCP connection and the SSH negotiation.
    connect_timeout: float = Field(10, gt=0)
    #: The longest single wait for events while a command runs.
    poll_interval: float = Field(1.0, gt=0)
    #: The login shell invocation remote commands are run with.
    shell: str = Field("/bin/bash --login", min_length=1)

    expand_private_key_path = field_validator("private_key_path")(expand_user)

    fields_from_settings = model_validator(mode="before")(
        load_fields_from_settings("buffer", "connect_timeout")
    )


class NodeConfiguration(SessionConfiguration):
    """The configuration of a named remote node, as found in the nodes configuration file."""

    #: An identifier for the node. May contain letters, digits, underscores, hyphens and spaces.
    name: str = Field(pattern=REGEX_FOR_IDENTIFIER)
