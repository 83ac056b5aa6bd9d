"""Tests for the remote session.

Most tests use :class:`~tests.helpers.ScriptedTransport`, which controls exactly when output
and exit statuses arrive. The tests using the ``local_session`` fixture run real shell command
lines locally, the way the remote login shell would.
"""

import logging
import shlex

import pytest

from remote_exec.correlation import correlation_scope, get_correlation_id
from remote_exec.exception import (
    ExecStartError,
    InternalError,
    SSHConnectionError,
    SSHTimeoutError,
)
from remote_exec.remote_session import RemoteSession, create_remote_session

from tests.helpers import Output, ScriptedTransport, factory_of, make_config


def scripted_session(transport: ScriptedTransport, **kwargs) -> RemoteSession:
    return RemoteSession("build", make_config(**kwargs), transport_factory=factory_of(transport))


class TestScripted:
    def test_exec_returns_exit_status_and_output(self, output):
        transport = ScriptedTransport([[("data", "hel"), ("data", "lo\n"), ("exit", 0)]])
        session = scripted_session(transport)
        session.on_output(output)

        assert session.exec("echo hello") == 0
        assert output.text == "hello\n"

    def test_nonzero_exit_status_is_returned(self, output):
        session = scripted_session(ScriptedTransport([[("exit", 7)]]))
        session.on_output(output)

        assert session.exec("exit 7") == 7
        assert output.chunks == []

    def test_missing_exit_status_is_none(self, output):
        session = scripted_session(ScriptedTransport([[("data", "partial"), ("idle",)]]))
        session.on_output(output)

        assert session.exec("kill -9 $$") is None
        assert output.text == "partial"

    def test_command_is_wrapped_in_login_shell(self):
        transport = ScriptedTransport([[("exit", 0)]])
        session = scripted_session(transport)

        session.exec("echo 'a b' && ls \"$HOME\"")

        command = transport.channels[0].command
        assert command == "/bin/bash --login -c " + shlex.quote("echo 'a b' && ls \"$HOME\"")
        assert shlex.split(command)[-1] == "echo 'a b' && ls \"$HOME\""

    def test_configured_shell_is_used(self):
        transport = ScriptedTransport([[("exit", 0)]])
        session = scripted_session(transport, shell="/bin/zsh -l")

        session.exec("true")

        assert transport.channels[0].command == "/bin/zsh -l -c true"

    def test_refused_exec_raises_exec_start_error(self):
        session = scripted_session(ScriptedTransport(refuse=True))

        with pytest.raises(ExecStartError) as exc_info:
            session.exec("true")

        assert exc_info.value.command == "true"
        assert "couldn't execute command true" in str(exc_info.value)

    def test_session_is_usable_after_refused_exec(self):
        transport = ScriptedTransport([[], [("exit", 0)]], refuse=True)
        session = scripted_session(transport)
        with pytest.raises(ExecStartError):
            session.exec("true")

        transport.refuse = False
        assert session.exec("true") == 0

    def test_exec_connects_implicitly_once(self):
        transport = ScriptedTransport([[("exit", 0)], [("exit", 1)]])
        factory = factory_of(transport)
        session = RemoteSession("build", make_config(), transport_factory=factory)
        assert not session.is_open

        assert session.exec("true") == 0
        assert session.exec("false") == 1

        assert factory.connections == 1
        assert session.is_open

    def test_connect_closes_open_transport(self):
        first, second = ScriptedTransport(), ScriptedTransport()
        transports = iter([first, second])
        session = RemoteSession(
            "build", make_config(), transport_factory=lambda config, logger: next(transports)
        )

        assert session.connect()
        assert session.connect(silent=True)

        assert first.closed
        assert not second.closed

    def test_reconnects_after_close(self):
        transport = ScriptedTransport([[("exit", 0)], [("exit", 0)]])
        factory = factory_of(transport)
        session = RemoteSession("build", make_config(), transport_factory=factory)
        session.exec("true")
        session.close()
        assert not session.is_open

        transport._closed = False
        assert session.exec("true") == 0
        assert factory.connections == 2

    def test_connection_error_propagates(self):
        def _refuse(config, logger):
            raise SSHConnectionError(f"{config.host}:{config.port}", ["refused"])

        session = RemoteSession("build", make_config(), transport_factory=_refuse)

        with pytest.raises(SSHConnectionError, match="example.test:22"):
            session.exec("true")
        assert not session.is_open

    def test_connection_error_is_not_logged_again(self, caplog):
        def _refuse(config, logger):
            raise SSHConnectionError(f"{config.host}:{config.port}", ["refused"])

        session = RemoteSession("build", make_config(), transport_factory=_refuse)

        with caplog.at_level(logging.DEBUG, logger="remote_exec"):
            with pytest.raises(SSHConnectionError):
                session.connect()

        assert [record for record in caplog.records if record.levelno >= logging.ERROR] == []

    def test_connect_closes_transport_closed_by_remote(self):
        first, second = ScriptedTransport(), ScriptedTransport()
        transports = iter([first, second])
        session = RemoteSession(
            "build", make_config(), transport_factory=lambda config, logger: next(transports)
        )
        session.connect()
        first._closed = True
        closed = []
        first.close = lambda: closed.append(first)  # type: ignore[method-assign]

        session.connect()

        assert closed == [first]
        assert session.is_open

    def test_close_closes_transport_closed_by_remote(self):
        transport = ScriptedTransport()
        session = scripted_session(transport)
        session.connect()
        transport._closed = True
        closed = []
        transport.close = lambda: closed.append(transport)  # type: ignore[method-assign]

        session.close()

        assert closed == [transport]
        assert not session.is_open

    @pytest.mark.parametrize(
        "content, size",
        [
            pytest.param(b"\x00\xff", 2, id="bytes"),
            pytest.param("čaj", 4, id="text"),
        ],
    )
    def test_upload_logs_size_in_bytes(self, caplog, content, size):
        session = scripted_session(ScriptedTransport([[("exit", 0)]]))

        with caplog.at_level(logging.INFO, logger="remote_exec"):
            session.upload_file("/tmp/x", content)

        assert f"Uploading {size} bytes to '/tmp/x'." in caplog.messages

    def test_close_on_never_connected_session(self, output):
        session = scripted_session(ScriptedTransport())
        session.on_output(output)

        session.close()
        session.close()

        assert not session.is_open
        assert output.chunks == []

    def test_close_delivers_pending_output(self, output):
        transport = ScriptedTransport([[("data", "one"), ("data", "two"), ("idle",)]])
        session = scripted_session(transport, buffer=60)
        session.on_output(output)

        def _close_after_output(event):
            if event == ("data", "two"):
                session.close()

        transport.on_step = _close_after_output

        assert session.exec("cat") is None
        assert output.chunks == ["onetwo"]
        assert not session.is_open

    def test_exec_delivers_all_output_before_returning(self, output):
        transport = ScriptedTransport([[("data", "a"), ("data", "b"), ("exit", 0)]])
        session = scripted_session(transport, buffer=60)
        session.on_output(output)

        session.exec("printf ab")

        assert output.chunks == ["ab"]
        assert session.buffer.is_empty

    def test_unbuffered_session_delivers_each_chunk(self, output):
        transport = ScriptedTransport([[("data", "a"), ("data", "b"), ("exit", 0)]])
        session = scripted_session(transport, buffer=0)
        session.on_output(output)

        session.exec("printf ab")

        assert output.chunks == ["a", "b"]

    def test_wait_is_bounded_by_poll_interval(self):
        transport = ScriptedTransport([[("idle",), ("idle",), ("exit", 0)]])
        session = scripted_session(transport, buffer=0, poll_interval=0.5)

        session.exec("sleep 1")

        assert transport.waits
        assert all(0 <= wait <= 0.5 for wait in transport.waits)

    def test_wait_is_bounded_by_buffer_tick(self):
        transport = ScriptedTransport([[("idle",), ("exit", 0)]])
        session = scripted_session(transport, buffer=0.01, poll_interval=10)

        session.exec("sleep 1")

        assert all(wait <= 0.01 for wait in transport.waits)

    def test_handler_replacement(self):
        first, second = Output(), Output()
        transport = ScriptedTransport(
            [[("data", "one"), ("exit", 0)], [("data", "two"), ("exit", 0)]]
        )
        session = scripted_session(transport)

        session.on_output(first)
        session.exec("echo one")
        session.on_output(second)
        session.exec("echo two")

        assert first.text == "one"
        assert second.text == "two"

    def test_handler_removal(self, output):
        transport = ScriptedTransport([[("data", "one"), ("exit", 0)]])
        session = scripted_session(transport)
        session.on_output(output)
        session.on_output(None)

        assert session.exec("echo one") == 0
        assert output.chunks == []

    def test_inline_handler_receives_only_its_command_output(self, output):
        inline = Output()
        transport = ScriptedTransport(
            [[("data", "one"), ("exit", 0)], [("data", "two"), ("exit", 0)]]
        )
        session = scripted_session(transport)
        session.on_output(output)

        session.exec("echo one", on_output=inline)
        session.exec("echo two")

        assert inline.text == "one"
        assert output.text == "onetwo"

    def test_handler_exception_propagates(self):
        def _fail(output, metadata):
            raise RuntimeError("handler failed")

        session = scripted_session(ScriptedTransport([[("data", "x"), ("exit", 0)]]), buffer=0)
        session.on_output(_fail)

        with pytest.raises(RuntimeError, match="handler failed"):
            session.exec("echo x")

    def test_concurrent_exec_is_rejected(self):
        transport = ScriptedTransport([[("data", "x"), ("exit", 0)]])
        session = scripted_session(transport, buffer=0)
        errors = []

        def _reenter(output, metadata):
            with pytest.raises(InternalError) as exc_info:
                session.exec("true")
            errors.append(exc_info.value)

        session.on_output(_reenter)

        assert session.exec("echo x") == 0
        assert len(errors) == 1

    def test_metadata_identifies_session(self, output):
        session = scripted_session(ScriptedTransport([[("data", "x"), ("exit", 0)]]))
        session.on_output(output)

        session.exec("echo x")

        (metadata,) = output.metadata
        assert metadata.name == "build"
        assert metadata.header == "build:shell:session"
        assert metadata.correlation_id is None

    def test_handler_runs_under_registration_correlation_id(self):
        seen = []

        def _handler(output, metadata):
            seen.append((metadata.correlation_id, get_correlation_id()))

        transport = ScriptedTransport([[("data", "x"), ("exit", 0)]])
        session = scripted_session(transport)
        with correlation_scope("registered"):
            session.on_output(_handler)

        with correlation_scope("executing"):
            session.exec("echo x")
            assert get_correlation_id() == "executing"

        assert seen == [("registered", "registered")]

    def test_inline_handler_keeps_its_own_correlation_id(self, output):
        inline = Output()
        transport = ScriptedTransport([[("data", "x"), ("exit", 0)]])
        session = scripted_session(transport)
        with correlation_scope("session"):
            session.on_output(output)
        with correlation_scope("command"):
            session.exec("echo x", on_output=inline)

        assert output.metadata[0].correlation_id == "session"
        assert inline.metadata[0].correlation_id == "command"

    def test_upload_file_sends_encoded_payload(self):
        transport = ScriptedTransport([[("exit", 0)]])
        session = scripted_session(transport)

        assert session.upload_file("/tmp/a b", "abc") == 0

        sent = shlex.split(transport.channels[0].command)[-1]
        assert sent == "(echo YWJj | base64 --decode) >> '/tmp/a b'"

    def test_context_manager_closes_session(self):
        transport = ScriptedTransport([[("exit", 0)]])
        with scripted_session(transport) as session:
            session.exec("true")
            assert session.is_open

        assert transport.closed
        assert not session.is_open

    def test_create_remote_session_is_disconnected(self):
        session = create_remote_session(make_config(), "build")
        assert session.name == "build"
        assert not session.is_open


class TestLocal:
    def test_echo(self, local_session, output):
        session = local_session()
        session.on_output(output)

        assert session.exec("echo hello") == 0
        assert output.text == "hello\n"

    def test_exit_status(self, local_session, output):
        session = local_session()
        session.on_output(output)

        assert session.exec("exit 7") == 7
        assert output.text == ""

    def test_stderr_is_combined_with_stdout(self, local_session, output):
        session = local_session()
        session.on_output(output)

        session.exec("echo out; echo err 1>&2")

        assert output.text == "out\nerr\n"

    def test_hostile_strings_reach_the_shell_intact(self, local_session, output):
        session = local_session()
        session.on_output(output)
        hostile = "it's \"quoted\" $HOME `id` ; | & \\ *"

        session.exec(f"printf '%s' {shlex.quote(hostile)}")

        assert output.text == hostile

    def test_multiline_command(self, local_session, output):
        session = local_session()
        session.on_output(output)

        assert session.exec("echo one\necho two\nexit 3") == 3
        assert output.text == "one\ntwo\n"

    def test_timeout_closes_session(self, local_session):
        session = local_session()

        with pytest.raises(SSHTimeoutError, match="sleep 5"):
            session.exec("sleep 5", timeout=0.2)

        assert not session.is_open

    def test_upload_file(self, local_session, tmp_path):
        session = local_session()
        destination = tmp_path / "uploaded file"

        assert session.upload_file(destination, "abc") == 0
        assert destination.read_text() == "abc"

    def test_upload_file_appends(self, local_session, tmp_path):
        session = local_session()
        destination = tmp_path / "x"
        content = "line one\nline 'two'\n" * 50

        session.upload_file(destination, content)
        session.upload_file(destination, b"\x00\xff")

        assert destination.read_bytes() == content.encode() + b"\x00\xff"
