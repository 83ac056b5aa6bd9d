# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2021 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022 University of New Hampshire
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""Environment variables and command line arguments parsing.

This is a simple module utilizing the built-in argparse module to parse command line arguments,
augment them with values from environment variables and make them available across the package.

The command line value takes precedence, followed by the environment variable value,
followed by the default value defined in this module.

The command line arguments along with the supported environment variables are:

.. option:: --config-file
.. envvar:: REXEC_CONFIG_FILE

    The path to the YAML configuration file of the nodes.

.. option:: --node
.. envvar:: REXEC_NODE

    The name of the node from the configuration file to run the command on.

.. option:: --host, --port, --user, --password, --private-key
.. envvar:: REXEC_HOST, REXEC_PORT, REXEC_USER, REXEC_PASSWORD, REXEC_PRIVATE_KEY

    The node to run the command on, if not taken from the configuration file.

.. option:: --buffer
.. envvar:: REXEC_BUFFER

    The number of seconds between two deliveries of output, ``0`` disables buffering.
    Overrides the configuration file.

.. option:: --connect-timeout
.. envvar:: REXEC_CONNECT_TIMEOUT

    The timeout for connecting to the node. Overrides the configuration file.

.. option:: -t, --timeout
.. envvar:: REXEC_TIMEOUT

    The timeout for the execution of the command.

.. option:: -v, --verbose
.. envvar:: REXEC_VERBOSE

    Set to any value to enable logging everything to the console.

.. option:: --log-file
.. envvar:: REXEC_LOG_FILE

    The file to log into, in addition to the console.

.. option:: --correlation-id
.. envvar:: REXEC_CORRELATION_ID

    The correlation identifier to attribute the output and logs to. Generated if not given.

.. option:: --upload
.. envvar:: REXEC_UPLOAD

    A ``LOCAL_FILE:REMOTE_PATH`` pair, the local file is appended to the remote path before the
    command runs. May be specified multiple times. In the environment variable, the pairs are
    joined with a comma.

The module provides one key module-level variable:

Attributes:
    SETTINGS: The module level variable storing package-wide settings.

Typical usage example::

  from remote_exec.settings import SETTINGS

  foo = SETTINGS.foo
"""

import argparse
import os
import sys
from argparse import Action, ArgumentDefaultsHelpFormatter, _get_action_name
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, NoReturn


@dataclass(slots=True)
class Settings:
    """Default package-wide user settings.

    The defaults may be modified at the start of the run.
    """

    #:
    config_file_path: Path | None = None
    #:
    node: str | None = None
    #:
    host: str | None = None
    #:
    port: int | None = None
    #:
    username: str | None = None
    #:
    password: str | None = None
    #:
    private_key_path: Path | None = None
    #:
    buffer: float | None = None
    #:
    connect_timeout: float | None = None
    #:
    timeout: float | None = None
    #:
    verbose: bool = False
    #:
    log_file: Path | None = None
    #:
    correlation_id: str | None = None
    #:
    uploads: list[tuple[Path, str]] = field(default_factory=list)
    #:
    command: str = ""


SETTINGS: Settings = Settings()


#: Attribute name representing the env variable name to augment :class:`~argparse.Action` with.
_ENV_VAR_NAME_ATTR = "env_var_name"
#: Attribute name representing the value origin to augment :class:`~argparse.Action` with.
_IS_FROM_ENV_ATTR = "is_from_env"

#: The prefix to be added to all of the environment variables.
_ENV_PREFIX = "REXEC_"


def _make_env_var_name(action: Action, env_var_name: str | None) -> str:
    """Make and assign an environment variable name to the given action."""
    env_var_name = f"{_ENV_PREFIX}{env_var_name or action.dest.upper()}"
    setattr(action, _ENV_VAR_NAME_ATTR, env_var_name)
    return env_var_name


def _get_env_var_name(action: Action | None) -> str | None:
    """Get the environment variable name of the given action."""
    return getattr(action, _ENV_VAR_NAME_ATTR, None)


def _set_is_from_env(action: Action) -> None:
    """Make the environment the given action's value origin."""
    setattr(action, _IS_FROM_ENV_ATTR, True)


def _is_from_env(action: Action) -> bool:
    """Check if the given action's value originated from the environment."""
    return getattr(action, _IS_FROM_ENV_ATTR, False)


def _own_args() -> list[str]:
    """Return the command line arguments up to the remote command."""
    args = sys.argv[1:]
    if "--" in args:
        args = args[: args.index("--")]
    return args


def _is_action_in_args(action: Action) -> bool:
    """Check if the action is invoked in the command line arguments."""
    own_args = _own_args()
    for option in action.option_strings:
        if option in own_args:
            return True
    return False


def _add_env_var_to_action(
    action: Action,
    env_var_name: str | None = None,
) -> None:
    """Add an argument with an environment variable to the parser.

    Flags (actions which take no value) are set by any non-empty value of the variable.
    """
    env_var_name = _make_env_var_name(action, env_var_name)

    if not _is_action_in_args(action):
        env_var_value = os.environ.get(env_var_name)
        if env_var_value is None:
            return

        if action.nargs == 0:
            if env_var_value:
                _set_is_from_env(action)
                sys.argv[1:0] = [action.format_usage()]
        else:
            _set_is_from_env(action)
            sys.argv[1:0] = [action.format_usage(), env_var_value]


class _RemoteExecArgumentParser(argparse.ArgumentParser):
    """ArgumentParser with a custom error message.

    This custom version of ArgumentParser changes the error message to accurately reflect the origin
    of the value of its arguments. If it was supplied through the command line nothing changes, but
    if it was supplied as an environment variable this is correctly communicated.
    """

    def find_action(
        self, action_dest: str, filter_fn: Callable[[Action], bool] | None = None
    ) -> Action | None:
        """Find and return an action by its destination variable name.

        Arguments:
            action_dest: the destination variable name of the action to find.
            filter_fn: if an action is found it is passed to this filter function, which must
                return a boolean value.
        """
        it = (action for action in self._actions if action.dest == action_dest)
        action = next(it, None)

        if action and filter_fn:
            return action if filter_fn(action) else None

        return action

    def error(self, message) -> NoReturn:
        """Augments :meth:`~argparse.ArgumentParser.error` with environment variable awareness."""
        for action in self._actions:
            if _is_from_env(action):
                action_name = _get_action_name(action)
                env_var_name = _get_env_var_name(action)
                assert (
                    env_var_name is not None
                ), "Action was set from environment, but no environment variable name was found."
                env_var_value = os.environ.get(env_var_name)

                message = message.replace(
                    f"argument {action_name}",
                    f"environment variable {env_var_name} (value: {env_var_value})",
                )

        print(f"{self.prog}: error: {message}\n", file=sys.stderr)
        self.exit(2, "For help and usage, " "run the command with the --help flag.\n")


class _EnvVarHelpFormatter(ArgumentDefaultsHelpFormatter):
    """Custom formatter to add environment variables to the help page."""

    def _get_help_string(self, action: Action) -> str | None:
        """Overrides :meth:`ArgumentDefaultsHelpFormatter._get_help_string`."""
        help = super()._get_help_string(action)

        env_var_name = _get_env_var_name(action)
        if env_var_name is not None:
            help = f"[{env_var_name}] {help}"

            env_var_value = os.environ.get(env_var_name)
            if env_var_value is not None:
                help = f"{help} (env value: {env_var_value})"

        return help


def _get_parser() -> _RemoteExecArgumentParser:
    """Create the argument parser for remote-exec.

    Command line options take precedence over environment variables, which in turn take precedence
    over default values.

    Returns:
        _RemoteExecArgumentParser: The configured argument parser with defined options.
    """
    parser = _RemoteExecArgumentParser(
        prog="remote-exec",
        description="Run a shell command on a remote node over SSH and stream its output. "
        "All options may be specified with the environment variables provided in brackets. "
        "Command line arguments have higher priority.",
        formatter_class=_EnvVarHelpFormatter,
        allow_abbrev=False,
    )

    node = parser.add_argument_group(
        "Node Options",
        description="Either pick a node from the configuration file with --config-file and "
        "--node, or describe the node with --host and --user.",
    )

    action = node.add_argument(
        "--config-file",
        default=SETTINGS.config_file_path,
        type=Path,
        help="The configuration file that describes the nodes.",
        metavar="FILE_PATH",
        dest="config_file_path",
    )
    _add_env_var_to_action(action, "CONFIG_FILE")

    action = node.add_argument(
        "--node",
        default=SETTINGS.node,
        help="The name of the node from the configuration file.",
        metavar="NAME",
    )
    _add_env_var_to_action(action)

    action = node.add_argument(
        "--host",
        default=SETTINGS.host,
        help="The hostname or IP address of the node.",
    )
    _add_env_var_to_action(action)

    action = node.add_argument(
        "--port",
        default=SETTINGS.port,
        type=int,
        help="The SSH port of the node.",
    )
    _add_env_var_to_action(action)

    action = node.add_argument(
        "--user",
        default=SETTINGS.username,
        help="The name of the user to log in as.",
        dest="username",
    )
    _add_env_var_to_action(action, "USER")

    action = node.add_argument(
        "--password",
        default=SETTINGS.password,
        help="The password of the user. The use of passwords is discouraged.",
    )
    _add_env_var_to_action(action)

    action = node.add_argument(
        "--private-key",
        default=SETTINGS.private_key_path,
        type=Path,
        help="The path to the private key to authenticate with.",
        metavar="FILE_PATH",
        dest="private_key_path",
    )
    _add_env_var_to_action(action, "PRIVATE_KEY")

    action = parser.add_argument(
        "--buffer",
        default=SETTINGS.buffer,
        type=float,
        help="The number of seconds between two deliveries of output, 0 disables buffering.",
        metavar="SECONDS",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "--connect-timeout",
        default=SETTINGS.connect_timeout,
        type=float,
        help="The timeout for connecting to the node.",
        metavar="SECONDS",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "-t",
        "--timeout",
        default=SETTINGS.timeout,
        type=float,
        help="The timeout for the execution of the command. No timeout if not given.",
        metavar="SECONDS",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=SETTINGS.verbose,
        help="Specify to enable verbose output, logging all messages to the console.",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "--log-file",
        default=SETTINGS.log_file,
        type=Path,
        help="The file to log into, in addition to the console.",
        metavar="FILE_PATH",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "--correlation-id",
        default=SETTINGS.correlation_id,
        help="The correlation identifier to attribute the output and logs to. "
        "Generated if not given.",
        metavar="ID",
    )
    _add_env_var_to_action(action)

    action = parser.add_argument(
        "--upload",
        action="append",
        default=[],
        help="Append the local file to the remote path before running the command. "
        "May be specified multiple times. To specify multiple files in the environment variable, "
        "join the pairs with a comma.",
        metavar="LOCAL_FILE:REMOTE_PATH",
        dest="uploads",
    )
    _add_env_var_to_action(action, "UPLOAD")

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="The command to run on the node. Use -- to separate it from the options.",
    )

    return parser


def _process_uploads(parser: _RemoteExecArgumentParser, args: list[str]) -> list[tuple[Path, str]]:
    """Split the ``LOCAL_FILE:REMOTE_PATH`` pairs.

    Args:
        parser: The instance of the arguments parser.
        args: The pairs from the command line, or a single comma separated string of pairs
            from the environment variable.

    Returns:
        A list of the local files and remote paths.
    """
    if parser.find_action("uploads", _is_from_env):
        args = [pair.strip() for pair in args[0].split(",") if pair.strip()]

    uploads = []
    for pair in args:
        local_file, sep, remote_path = pair.partition(":")
        if not sep or not local_file or not remote_path:
            parser.error(f"argument --upload: '{pair}' is not in the LOCAL_FILE:REMOTE_PATH form")
        uploads.append((Path(local_file), remote_path))

    return uploads


def _process_command(parser: _RemoteExecArgumentParser, args: list[str]) -> str:
    """Join the remote command.

    Args:
        parser: The instance of the arguments parser.
        args: The words of the command, possibly starting with the ``--`` separator.

    Returns:
        The command to run on the node.
    """
    if args and args[0] == "--":
        args = args[1:]
    if not args:
        parser.error("the command to run is required")
    return " ".join(args)


def get_settings() -> Settings:
    """Create new settings with inputs from the user.

    The inputs are taken from the command line and from environment variables.

    Returns:
        The new settings object.
    """
    parser = _get_parser()

    args = parser.parse_args()

    if args.node is None and (args.host is None or args.username is None):
        parser.error("either --node or both --host and --user are required")
    if args.node is not None and args.config_file_path is None:
        parser.error("argument --node: --config-file is required to look the node up")

    args.uploads = _process_uploads(parser, args.uploads)
    args.command = _process_command(parser, args.command)

    kwargs = {k: v for k, v in vars(args).items() if hasattr(SETTINGS, k)}
    return Settings(**kwargs)
