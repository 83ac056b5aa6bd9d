# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2021 Intel Corporation
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2023 PANTHEON.tech s.r.o.
# Copyright(c) 2024 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""Remote node configuration.

This package offers the models describing how to reach a remote node
and a loader function, :func:`load_config`, which loads the YAML nodes configuration file
and validates it against the :class:`Configuration` Pydantic model.

The nodes configuration file is a list of nodes::

    - name: build-vm
      host: 10.0.0.5
      username: builder
      private_key_path: ~/.ssh/id_ed25519
      buffer: 0.5

The classes defined in this package make heavy use of :mod:`pydantic`.
All of them are frozen:

    * Frozen makes the object immutable. A session's configuration can't change
      after the session has been created.
"""

from pathlib import Path
from typing import Annotated, Any, cast

import yaml
from pydantic import Field, TypeAdapter, ValidationError, model_validator
from typing_extensions import Self

from remote_exec.exception import ConfigurationError

from .common import FrozenModel, ValidationContext
from .node import DEFAULT_BUFFER_TIME, NodeConfiguration, SessionConfiguration

NodesConfig = Annotated[list[NodeConfiguration], Field(min_length=1)]

__all__ = [
    "DEFAULT_BUFFER_TIME",
    "Configuration",
    "NodeConfiguration",
    "NodesConfig",
    "SessionConfiguration",
    "ValidationContext",
    "load_config",
]


class Configuration(FrozenModel):
    """The configuration of all known remote nodes."""

    #: Node configurations.
    nodes: NodesConfig

    @model_validator(mode="after")
    def validate_node_names(self) -> Self:
        """Validate that the node names are unique."""
        nodes_by_name: dict[str, int] = {}
        for node_no, node in enumerate(self.nodes):
            assert node.name not in nodes_by_name, (
                f"node {node_no} cannot have the same name as node {nodes_by_name[node.name]} "
                f"({node.name})"
            )
            nodes_by_name[node.name] = node_no

        return self

    def get_node(self, name: str) -> NodeConfiguration:
        """Find the configuration of the node called `name`.

        Args:
            name: The name of the node.

        Returns:
            The configuration of the node.

        Raises:
            ConfigurationError: If there's no such node.
        """
        for node in self.nodes:
            if node.name == name:
                return node

        raise ConfigurationError(f"node {name} is not defined in the nodes configuration")


def load_config(config_file_path: Path, ctx: ValidationContext | None = None) -> Configuration:
    """Load the nodes configuration from a file.

    Load the YAML configuration file, validate it, and create a configuration object.

    Args:
        config_file_path: The path to the YAML nodes configuration file.
        ctx: The optional context used in validation. Settings found in the context override
            the values from the file.

    Returns:
        The parsed nodes configuration.

    Raises:
        ConfigurationError: If the supplied configuration file is invalid.
    """
    try:
        with open(config_file_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to read the configuration file {config_file_path}") from e

    try:
        nodes = TypeAdapter(NodesConfig).validate_python(data, context=cast(dict[str, Any], ctx))
        return Configuration.model_validate({"nodes": nodes}, context=cast(dict[str, Any], ctx))
    except ValidationError as e:
        raise ConfigurationError(f"failed to load the configuration file {config_file_path}") from e
