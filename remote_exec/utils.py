# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""Various utility functions.

These are used in multiple modules across the package. Most of them compose the command lines
sent to the remote host.

Attributes:
    REGEX_FOR_IDENTIFIER: The regex representing a node name, e.g. ``build-vm 1``.
"""

import base64
import shlex
from pathlib import PurePath

REGEX_FOR_IDENTIFIER: str = r"^\w+(?:[\w -]*\w+)?$"


def make_login_shell_command(command: str, shell: str = "/bin/bash --login") -> str:
    """Wrap `command` so that it's run by a login shell.

    The command is quoted as one shell word, so the remote shell receives exactly `command`
    as the argument of ``-c``, whatever quotes, spaces, newlines or other metacharacters
    it contains.

    Args:
        command: The command to wrap.
        shell: The login shell invocation.

    Returns:
        The command line to send to the remote host.
    """
    return f"{shell} -c {shlex.quote(command)}"


def encode_upload_payload(content: str | bytes) -> str:
    """Encode `content` as a single line of Base64.

    Args:
        content: The content to encode. Strings are encoded as UTF-8 first.

    Returns:
        The Base64 encoding of `content` with all line breaks removed.
    """
    if isinstance(content, str):
        content = content.encode()
    encoded = base64.encodebytes(content).decode("ascii")
    return encoded.replace("\r", "").replace("\n", "")


def make_upload_command(path: str | PurePath, content: str | bytes) -> str:
    """Create a command which appends `content` to the file at `path` on the remote host.

    The content is transferred inline, Base64 encoded, as a part of the command line.
    The size of `content` is thus limited by the maximum length of the remote command line.

    Args:
        path: The destination path on the remote host.
        content: The content to append.

    Returns:
        The command which decodes the payload and appends it to `path`.
    """
    encoded = encode_upload_payload(content)
    return f"(echo {encoded} | base64 --decode) >> {shlex.quote(str(path))}"
