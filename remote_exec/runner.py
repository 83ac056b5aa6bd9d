# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2019 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""Command line runner module.

The module is responsible for running the command given on the command line on a remote node,
writing its output to the standard output and exiting with a meaningful return code:

    * the exit status of the remote command,
    * :data:`INDETERMINATE_EXIT_CODE` if the remote node never reported the exit status,
    * the severity of the error if connecting or starting the command failed.
"""

import sys
import textwrap
from typing import Any, cast

from pydantic import ValidationError

from .config import NodeConfiguration, SessionConfiguration, ValidationContext, load_config
from .correlation import correlation_scope, new_correlation_id
from .exception import ConfigurationError, RemoteExecError
from .logger import RemoteExecLogger, get_logger
from .remote_session import OutputMetadata, RemoteSession
from .settings import SETTINGS, Settings

#: The return code used when the remote command's exit status is unknown.
INDETERMINATE_EXIT_CODE = 255


def write_output(output: str, metadata: OutputMetadata) -> None:
    """Write a chunk of output to the standard output."""
    sys.stdout.write(output)
    sys.stdout.flush()


def make_session_config(settings: Settings) -> SessionConfiguration:
    """Create the configuration of the session described by `settings`.

    The node is either taken from the nodes configuration file or described
    by the individual settings.

    Args:
        settings: The settings to use.

    Returns:
        The session configuration.

    Raises:
        ConfigurationError: If the configuration file or the settings are invalid.
    """
    ctx = ValidationContext(settings=settings)
    if settings.node is not None:
        if settings.config_file_path is None:
            raise ConfigurationError(f"node {settings.node} requires a configuration file")
        return load_config(settings.config_file_path, ctx).get_node(settings.node)

    data = {
        key: value
        for key, value in {
            "host": settings.host,
            "port": settings.port,
            "username": settings.username,
            "password": settings.password,
            "private_key_path": settings.private_key_path,
        }.items()
        if value is not None
    }
    try:
        return SessionConfiguration.model_validate(data, context=cast(dict[str, Any], ctx))
    except ValidationError as e:
        raise ConfigurationError("the node described on the command line is invalid") from e


class RemoteExecRunner:
    """The command line runner class."""

    _settings: Settings
    _config: SessionConfiguration
    _logger: RemoteExecLogger

    def __init__(self, settings: Settings = SETTINGS):
        """Initialize the instance with configuration and logger.

        Args:
            settings: The settings to run with.
        """
        self._settings = settings
        try:
            self._config = make_session_config(settings)
        except ConfigurationError as e:
            if e.__cause__:
                print(f"{e} Reason:", file=sys.stderr)
                print(file=sys.stderr)
                print(textwrap.indent(str(e.__cause__), prefix=" " * 2), file=sys.stderr)
            else:
                print(e, file=sys.stderr)
            sys.exit(e.severity)

        self._logger = get_logger()
        self._logger.add_root_logger_handlers(settings.verbose, settings.log_file)

    def run(self) -> int:
        """Upload the files, run the command and return the return code.

        Returns:
            The return code of the run.
        """
        if isinstance(self._config, NodeConfiguration):
            name = self._config.name
        else:
            name = self._config.host
        with correlation_scope(self._settings.correlation_id or new_correlation_id()):
            with RemoteSession(name, self._config) as session:
                session.on_output(write_output)
                try:
                    for local_file, remote_path in self._settings.uploads:
                        exit_status = session.upload_file(remote_path, local_file.read_bytes())
                        if exit_status != 0:
                            self._logger.error(
                                f"Upload of '{local_file}' to '{remote_path}' failed."
                            )
                            return self._return_code(exit_status)

                    exit_status = session.exec(
                        self._settings.command, timeout=self._settings.timeout
                    )
                except RemoteExecError as e:
                    self._logger.exception("Running the command failed.")
                    return e.severity
                except OSError:
                    self._logger.exception("Reading a file to upload failed.")
                    return ConfigurationError.severity

        self._logger.info(f"The command exited with status {exit_status}.")
        return self._return_code(exit_status)

    @staticmethod
    def _return_code(exit_status: int | None) -> int:
        return INDETERMINATE_EXIT_CODE if exit_status is None else exit_status
