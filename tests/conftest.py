"""Shared pytest fixtures for remote-exec tests."""

import pytest

from remote_exec.logger import get_logger
from remote_exec.remote_session import RemoteSession

from tests.helpers import LocalTransport, Output, make_config


@pytest.fixture(scope="session", autouse=True)
def register_root_logger() -> None:
    """Create the root logger through :func:`get_logger` before ``caplog`` can create it."""
    get_logger()


@pytest.fixture
def output() -> Output:
    """A handler recording the delivered output."""
    return Output()


@pytest.fixture
def local_session():
    """A session running commands on the local machine through ``/bin/sh``."""
    sessions: list[RemoteSession] = []

    def _factory(**kwargs) -> RemoteSession:
        config = make_config(shell="/bin/sh", **kwargs)
        session = RemoteSession(
            "local", config, transport_factory=lambda config, logger: LocalTransport()
        )
        sessions.append(session)
        return session

    yield _factory

    for session in sessions:
        session.close()
