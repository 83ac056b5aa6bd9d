#!/usr/bin/env python3
# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022 PANTHEON.tech s.r.o.
# Copyright(c) 2022 University of New Hampshire
# Copyright(c) 2026 The remote-exec Authors

"""The remote-exec executable."""

import logging
import sys

from remote_exec import settings


def main() -> None:
    """Set the settings, then run the command.

    The settings are taken from the command line arguments and the environment variables.
    The settings object is stored in the module-level variable settings.SETTINGS which the entire
    package uses. After importing the module (or the variable), any changes to the variable are
    not going to be reflected without a re-import. This means that the SETTINGS variable must
    be modified before the settings module is imported anywhere else in the package.
    """
    settings.SETTINGS = settings.get_settings()
    from remote_exec.runner import RemoteExecRunner

    sys.exit(RemoteExecRunner(settings.SETTINGS).run())


# Main program begins here
if __name__ == "__main__":
    logging.raiseExceptions = True
    main()
