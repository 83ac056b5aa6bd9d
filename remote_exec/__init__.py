# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2026 The remote-exec Authors

"""Remote command execution over SSH.

remote-exec runs shell commands on a remote host, streams their combined output to a handler
through a rate-limited output buffer and reports their exit status.

The package is split into these modules:

    * :mod:`~remote_exec.remote_session` - the session running commands over a transport,
    * :mod:`~remote_exec.output_buffer` - the buffer coalescing output between deliveries,
    * :mod:`~remote_exec.correlation` - correlation identifiers of output handlers,
    * :mod:`~remote_exec.config` - the configuration of remote nodes,
    * :mod:`~remote_exec.settings` - command line arguments and environment variables,
    * :mod:`~remote_exec.runner` - the command line front end.
"""
