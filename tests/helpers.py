"""Transports and helpers shared by remote-exec tests.

Two transports stand in for SSH:

    * :class:`ScriptedTransport` replays a fixed list of events per command, one event
      per :meth:`~ScriptedTransport.process` call, so tests control exactly how output,
      exit statuses and buffer ticks interleave,
    * :class:`LocalTransport` runs the composed command line with the local ``/bin/sh``,
      the way sshd hands it to the login shell of the remote user.
"""

import codecs
import os
import select
import subprocess
from collections.abc import Callable, Iterable

from remote_exec.config import SessionConfiguration
from remote_exec.logger import RemoteExecLogger
from remote_exec.remote_session import CommandChannel, ShellTransport


class FakeClock:
    """A manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Events understood by ScriptedChannel:
#   ("data", "text")  - output arrives
#   ("exit", 7)       - the exit status is reported
#   ("idle",)         - nothing happens during this process() call
Event = tuple


class ScriptedChannel(CommandChannel):
    """A channel replaying a script of events."""

    def __init__(self, script: Iterable[Event], refuse: bool = False, on_step=None):
        super().__init__()
        self.script = list(script)
        self.refuse = refuse
        self.command: str | None = None
        self._on_step = on_step
        self._finished = False

    def exec(self, command: str) -> bool:
        self.command = command
        if self.refuse:
            self._finished = True
            return False
        return True

    @property
    def active(self) -> bool:
        return not self._finished

    def step(self) -> None:
        if not self.script:
            self._finished = True
            return

        event = self.script.pop(0)
        if event[0] == "data":
            self._emit_data(event[1])
        elif event[0] == "exit":
            self._emit_exit_status(event[1])
        if self._on_step is not None:
            self._on_step(event)
        if not self.script:
            self._finished = True

    def abort(self) -> None:
        self._finished = True


class ScriptedTransport(ShellTransport):
    """A transport handing out scripted channels, one script per opened channel."""

    def __init__(self, scripts: Iterable[Iterable[Event]] = (), refuse: bool = False):
        self.scripts = [list(script) for script in scripts]
        self.refuse = refuse
        self.channels: list[ScriptedChannel] = []
        self.waits: list[float] = []
        self.on_step: Callable[[Event], None] | None = None
        self._closed = False

    def open_channel(self) -> ScriptedChannel:
        script = self.scripts.pop(0) if self.scripts else []
        channel = ScriptedChannel(script, self.refuse, self.on_step)
        self.channels.append(channel)
        return channel

    def process(self, timeout: float) -> None:
        self.waits.append(timeout)
        for channel in self.channels:
            if channel.active:
                channel.step()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        for channel in self.channels:
            channel.abort()


class LocalChannel(CommandChannel):
    """A channel running the command line with the local shell."""

    def __init__(self):
        super().__init__()
        self.process: subprocess.Popen | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._finished = False

    def exec(self, command: str) -> bool:
        self.process = subprocess.Popen(
            command,
            shell=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        return True

    @property
    def active(self) -> bool:
        return not self._finished

    def fileno(self) -> int:
        assert self.process is not None and self.process.stdout is not None
        return self.process.stdout.fileno()

    def process_events(self) -> None:
        data = os.read(self.fileno(), 65536)
        if data:
            text = self._decoder.decode(data)
            if text:
                self._emit_data(text)
            return

        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._emit_data(tail)
        assert self.process is not None
        return_code = self.process.wait()
        if return_code >= 0:
            self._emit_exit_status(return_code)
        self._finish()

    def kill(self) -> None:
        if self.process is not None and self.process.poll() is None:
            self.process.kill()
            self.process.wait()
        self._finish()

    def _finish(self) -> None:
        self._finished = True
        if self.process is not None and self.process.stdout is not None:
            self.process.stdout.close()


class LocalTransport(ShellTransport):
    """A transport running commands on the local machine."""

    def __init__(self):
        self.channels: list[LocalChannel] = []
        self._closed = False

    def open_channel(self) -> LocalChannel:
        channel = LocalChannel()
        self.channels.append(channel)
        return channel

    def process(self, timeout: float) -> None:
        active = [channel for channel in self.channels if channel.active]
        if not active:
            return
        readable, _, _ = select.select(active, [], [], timeout)
        for channel in readable:
            channel.process_events()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        for channel in self.channels:
            channel.kill()


class Output:
    """Records the output delivered to a handler."""

    def __init__(self):
        self.chunks: list[str] = []
        self.metadata: list = []

    def __call__(self, output: str, metadata) -> None:
        self.chunks.append(output)
        self.metadata.append(metadata)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


def make_config(**kwargs) -> SessionConfiguration:
    """Create a session configuration with test friendly defaults."""
    data = {"host": "example.test", "username": "builder", "poll_interval": 0.05}
    data.update(kwargs)
    return SessionConfiguration.model_validate(data)


def factory_of(
    transport: ShellTransport,
) -> Callable[[SessionConfiguration, RemoteExecLogger], ShellTransport]:
    """Return a transport factory which hands out `transport` and counts the connections."""

    def _factory(config: SessionConfiguration, logger: RemoteExecLogger) -> ShellTransport:
        _factory.connections += 1  # type: ignore[attr-defined]
        return transport

    _factory.connections = 0  # type: ignore[attr-defined]
    return _factory
