"""
Pseudo-terminal driver for interactive SteamCMD sessions.

SteamCMD prints a ``Steam>`` prompt whenever it is ready for the next
command. The driver runs SteamCMD on a pty, collects the output lines printed
since the previous prompt and hands them to a responder callback; whatever
the responder returns is typed back as the next command. The conversation
ends once the responder returns ``quit`` and the process exits.
"""

from __future__ import annotations

import errno
import fcntl
import os
import pty
import select
import signal
import subprocess
import termios
import threading
from typing import Callable, List, Optional, Sequence, Tuple

from arktools.common.constants import STEAMCMD_PROMPT
from arktools.common.errors import SteamCmdCancelledError, SteamCmdError
from arktools.common.logging_config import get_logger

Responder = Callable[[str], str]

_log = get_logger(__name__)


def _set_controlling_tty() -> None:
    # runs in the child after setsid(); stdin is the pty slave
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyLineReader:
    """Buffered reader over a pty master with peek and line semantics.

    ``read_line`` returns ``(data, continued)``; ``continued`` is True when the
    line was longer than ``max_line`` and the rest follows in later calls.
    """

    def __init__(self, fd: int, stop: threading.Event, max_line: int = 4096, poll_interval: float = 0.2):
        self.fd = fd
        self.stop = stop
        self.max_line = max_line
        self.poll_interval = poll_interval
        self._buffer = bytearray()
        self._eof = False

    def _fill(self) -> bool:
        """Read more bytes into the buffer. Returns False at end of stream."""
        if self._eof:
            return False
        while not self.stop.is_set():
            ready, _, _ = select.select([self.fd], [], [], self.poll_interval)
            if not ready:
                continue
            try:
                chunk = os.read(self.fd, 4096)
            except OSError as exc:
                # EIO: every slave handle is closed, i.e. the child went away
                if exc.errno == errno.EIO:
                    chunk = b""
                else:
                    raise
            if not chunk:
                self._eof = True
                return False
            self._buffer += chunk
            return True
        self._eof = True
        return False

    def peek(self, size: int) -> bytes:
        while len(self._buffer) < size and self._fill():
            pass
        return bytes(self._buffer[:size])

    def discard(self, size: int) -> None:
        del self._buffer[:size]

    def read_line(self) -> Tuple[bytes, bool]:
        while True:
            index = self._buffer.find(b"\n")
            if 0 <= index <= self.max_line:
                line = bytes(self._buffer[:index])
                del self._buffer[:index + 1]
                return line, False
            if len(self._buffer) >= self.max_line:
                line = bytes(self._buffer[:self.max_line])
                del self._buffer[:self.max_line]
                return line, True
            if not self._fill():
                line = bytes(self._buffer)
                self._buffer.clear()
                return line, False


class _Conversation:
    """Per-run state: pty handle, reader thread bookkeeping and teardown flag."""

    def __init__(self, master_fd: int, responder: Responder, max_line: int, poll_interval: float):
        self.master_fd: Optional[int] = master_fd
        self.responder = responder
        self.teardown = threading.Event()
        self.write_lock = threading.Lock()
        self.error: Optional[BaseException] = None
        self.prompts = 0
        self.reader = PtyLineReader(master_fd, self.teardown, max_line, poll_interval)

    def send(self, command: str) -> None:
        data = f"{command}\n".encode("utf-8")
        with self.write_lock:
            if self.master_fd is None:
                raise OSError(errno.EBADF, "pseudo-terminal already closed")
            view = memoryview(data)
            while view:
                written = os.write(self.master_fd, view)
                view = view[written:]
        _log.info("SteamCMD Send: %s", command)

    def close(self) -> None:
        self.teardown.set()
        with self.write_lock:
            if self.master_fd is not None:
                try:
                    os.close(self.master_fd)
                except OSError:
                    pass
                self.master_fd = None

    def read_loop(self) -> None:
        lines: List[str] = []
        partial = b""
        prompt_len = len(STEAMCMD_PROMPT)
        try:
            while True:
                head = self.reader.peek(prompt_len)
                if not partial and head == STEAMCMD_PROMPT:
                    self.reader.discard(prompt_len)
                    output = "\n".join(lines)
                    lines = []
                    self.prompts += 1
                    command = self.responder(output)
                    self.send(command)
                    continue
                if not head:
                    break

                data, continued = self.reader.read_line()
                if continued:
                    partial += data
                    continue
                line = (partial + data).decode("utf-8", errors="replace").rstrip()
                partial = b""
                _log.debug("SteamCMD OUT: %s", line)
                if line:
                    lines.append(line)
        except OSError as exc:
            if self.teardown.is_set():
                _log.debug("SteamCMD reader stopped during teardown: %s", exc)
            else:
                _log.error("SteamCMD terminal I/O failure: %s", exc)
                self.error = exc
        except Exception as exc:  # noqa: BLE001 - responder failures are re-raised by run()
            self.error = exc


class SteamCmdSession:
    """Run SteamCMD on a pseudo-terminal and converse with it prompt by prompt."""

    def __init__(
        self,
        executable: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        max_line: int = 4096,
        poll_interval: float = 0.2,
        terminate_timeout: float = 5.0,
    ):
        self.executable = executable
        self.args = list(args)
        self.cwd = cwd
        self.max_line = max_line
        self.poll_interval = poll_interval
        self.terminate_timeout = terminate_timeout

    def run(self, responder: Responder, cancel_event: Optional[threading.Event] = None) -> int:
        """Start SteamCMD and answer each prompt with ``responder(output)``.

        Blocks until the process exits.

        Returns:
            Number of prompts answered.

        Raises:
            SteamCmdError: If the process cannot start, exits non-zero, the
                terminal fails outside teardown, or the responder raises
            SteamCmdCancelledError: If ``cancel_event`` is set while running
        """
        master_fd, slave_fd = pty.openpty()
        try:
            process = subprocess.Popen(
                [self.executable, *self.args],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=self.cwd,
                start_new_session=True,
                preexec_fn=_set_controlling_tty,
                close_fds=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            os.close(master_fd)
            raise SteamCmdError(f"Failed to start {self.executable}: {exc}") from exc
        finally:
            os.close(slave_fd)

        conversation = _Conversation(master_fd, responder, self.max_line, self.poll_interval)
        reader = threading.Thread(target=conversation.read_loop, name="steamcmd-reader", daemon=True)
        reader.start()

        try:
            returncode = self._wait(process, conversation, cancel_event)
            reader.join(self.terminate_timeout)
        finally:
            conversation.close()
            self._terminate(process)
            reader.join(self.terminate_timeout)

        if conversation.error is not None:
            raise SteamCmdError(f"SteamCMD session failed: {conversation.error}") from conversation.error
        if returncode != 0:
            raise SteamCmdError(f"SteamCMD exited with code {returncode}")
        return conversation.prompts

    def _wait(
        self,
        process: subprocess.Popen,
        conversation: _Conversation,
        cancel_event: Optional[threading.Event],
    ) -> int:
        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                pass
            if cancel_event is not None and cancel_event.is_set():
                _log.warning("SteamCMD session cancelled; terminating PID %s", process.pid)
                conversation.close()
                self._terminate(process)
                raise SteamCmdCancelledError("SteamCMD session cancelled")
            if conversation.error is not None:
                conversation.close()
                self._terminate(process)
                return process.wait()

    def _terminate(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            _log.warning("SteamCMD did not stop within %ss; killing PID %s", self.terminate_timeout, process.pid)
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                return
            process.wait()


__all__ = ["Responder", "PtyLineReader", "SteamCmdSession"]
