# SPDX-License-Identifier: BSD-3-Clause
# Copyright(c) 2010-2014 Intel Corporation
# Copyright(c) 2022-2023 PANTHEON.tech s.r.o.
# Copyright(c) 2022-2023 University of New Hampshire
# Copyright(c) 2025 Arm Limited
# Copyright(c) 2026 The remote-exec Authors

"""remote-exec logger module.

The module provides several additional features:

    * The active correlation identifier is added to every log record,
    * Logging to console, a human-readable log file and a machine-readable log file.
"""

import logging
from logging import FileHandler, StreamHandler
from pathlib import Path
from typing import Any

from .correlation import get_correlation_id

date_fmt = "%Y/%m/%d %H:%M:%S"
stream_fmt = "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
root_logger_name = "remote_exec"

#: Placed in log records when no correlation identifier is active.
NO_CORRELATION_ID = "-"


class RemoteExecLogger(logging.Logger):
    """The remote-exec logger class.

    The class extends the :class:`~logging.Logger` class to add the correlation identifier
    to log records. The identifier is read at the time the record is made, so a record
    logged from an output handler carries the identifier of the handler's registration.
    """

    def makeRecord(self, *args: Any, **kwargs: Any) -> logging.LogRecord:
        """Generates a record with additional correlation information.

        This is the default method for the :class:`~logging.Logger` class. We extend it
        to add correlation information to the record.

        :meta private:

        Returns:
            record: The generated record with the correlation information.
        """
        record = super().makeRecord(*args, **kwargs)
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return record

    def add_root_logger_handlers(self, verbose: bool, log_file: Path | str | None = None) -> None:
        """Add logger handlers to the root logger.

        This method should be called only on the root logger.
        The log records from child loggers will propagate to these handlers.

        The handlers added are:

            * A console handler,
            * If `log_file` is given, a file handler and a supplementary file handler
              with machine-readable logs containing more debug information.

        All log messages will be logged to files. The log level of the console handler
        is configurable with `verbose`.

        Args:
            verbose: If :data:`True`, log all messages to the console.
                If :data:`False`, log to console with the :data:`logging.INFO` level.
            log_file: The optional path of the log file. The machine-readable log file is placed
                next to it with the ``.verbose.log`` suffix.
        """
        self.setLevel(1)

        sh = StreamHandler()
        sh.setFormatter(logging.Formatter(stream_fmt, date_fmt))
        if not verbose:
            sh.setLevel(logging.INFO)
        self.addHandler(sh)

        if log_file:
            self._add_file_handlers(Path(log_file))

    def _add_file_handlers(self, log_file: Path) -> None:
        """Add the regular and the machine-readable file handlers.

        Args:
            log_file: The path of the regular log file.
        """
        log_file.parent.mkdir(parents=True, exist_ok=True)

        fh = FileHandler(log_file, mode="w")
        fh.setFormatter(logging.Formatter(stream_fmt, date_fmt))
        self.addHandler(fh)

        verbose_fh = FileHandler(log_file.with_suffix(".verbose.log"), mode="w")
        verbose_fh.setFormatter(
            logging.Formatter(
                "%(asctime)s|%(correlation_id)s|%(name)s|%(levelname)s|%(pathname)s|%(lineno)d|"
                "%(funcName)s|%(process)d|%(thread)d|%(threadName)s|%(message)s",
                datefmt=date_fmt,
            )
        )
        self.addHandler(verbose_fh)


def get_logger(name: str | None = None) -> RemoteExecLogger:
    """Return a remote-exec logger instance identified by `name`.

    Args:
        name: If :data:`None`, return the root logger.
            If specified, return a child of the root logger.

    Returns:
         The root logger or a child logger identified by `name`.
    """
    original_logger_class = logging.getLoggerClass()
    logging.setLoggerClass(RemoteExecLogger)
    if name:
        name = f"{root_logger_name}.{name}"
    else:
        name = root_logger_name
    logger = logging.getLogger(name)
    logging.setLoggerClass(original_logger_class)
    return logger  # type: ignore[return-value]
