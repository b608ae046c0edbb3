"""One chain node running as a child process of the master."""

import asyncio
from collections import deque
from enum import Enum
from typing import IO, List, Optional

from .asyncio_utils import cancel_and_wait, create_logged_task
from .chain_discovery import ChainDescriptor
from .logging_utils import get_module_logger

STDERR_TAIL_LINES = 50
STDERR_DRAIN_TIMEOUT = 1.0


class SpawnError(RuntimeError):
    """The chain executable could not be started."""

    def __init__(self, identity: str, message: str) -> None:
        super().__init__(f"Chain {identity} failed to start: {message}")
        self.identity = identity


class ProcessExitError(RuntimeError):
    """A chain process exited with a non-zero status."""

    def __init__(self, identity: str, returncode: int, stderr_tail: List[str]) -> None:
        message = f"Chain {identity} exited with code {returncode}"
        if stderr_tail:
            message += f"; last stderr: {stderr_tail[-1]}"
        super().__init__(message)
        self.identity = identity
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class ChainState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    CRASHED = "crashed"
    KILLED = "killed"


class ChainProcess:
    """One node binary running as a child of the master.

    stdout is appended to the chain's log file; stderr is kept as a short
    in-memory tail so a crash can be reported with its last words.
    """

    def __init__(self, descriptor: ChainDescriptor, stderr_lines: int = STDERR_TAIL_LINES):
        self.descriptor = descriptor
        self.logger = get_module_logger(f"Chain.{descriptor.identity}")

        self.process: Optional[asyncio.subprocess.Process] = None
        self.state = ChainState.STOPPED
        self.stderr_tail: deque = deque(maxlen=stderr_lines)

        self._stdout_file: Optional[IO[bytes]] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._kill_sent = False

    @property
    def identity(self) -> str:
        return self.descriptor.identity

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def was_killed(self) -> bool:
        """True once the master has sent this process a kill."""
        return self._kill_sent

    def is_running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def start(self) -> None:
        """Spawn the executable with its launch arguments.

        Raises:
            SpawnError: the log file could not be opened or exec failed.
        """
        if self.process is not None:
            raise SpawnError(self.identity, "already started")

        descriptor = self.descriptor
        self.state = ChainState.STARTING
        self.logger.info("Starting %s %s", descriptor.executable_path, ' '.join(descriptor.launch_args))

        try:
            self._stdout_file = open(descriptor.stdout_log, 'ab')
            self.process = await asyncio.create_subprocess_exec(
                str(descriptor.executable_path),
                *descriptor.launch_args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=self._stdout_file,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(descriptor.directory),
            )
        except OSError as e:
            self.state = ChainState.CRASHED
            self._close_stdout()
            raise SpawnError(self.identity, str(e)) from e

        self.state = ChainState.RUNNING
        self.logger.info("Process started with PID %d (stdout -> %s)", self.process.pid, descriptor.stdout_log.name)
        self._stderr_task = create_logged_task(
            self._stderr_reader(),
            logger=self.logger,
            context=f"stderr:{self.identity}",
        )

    async def _stderr_reader(self) -> None:
        if not self.process or not self.process.stderr:
            return

        while True:
            try:
                line = await self.process.stderr.readline()
            except ValueError:
                # Line longer than the stream limit; the reader already dropped it.
                self.logger.warning("Discarded over-long stderr line")
                continue
            if not line:
                break

            line_str = line.decode(errors='replace').rstrip()
            if line_str:
                self.stderr_tail.append(line_str)
                self.logger.debug("stderr: %s", line_str)

    async def wait(self) -> Optional[ProcessExitError]:
        """Wait for exit; return the exit error, or None for a clean or intentional exit."""
        if self.process is None:
            raise RuntimeError(f"Chain {self.identity} was never started")

        returncode = await self.process.wait()
        if self._stderr_task is not None:
            # A grandchild may hold the pipe open; don't wait on it forever.
            await asyncio.wait({self._stderr_task}, timeout=STDERR_DRAIN_TIMEOUT)
            await cancel_and_wait(self._stderr_task)
        self._close_stdout()

        if self._kill_sent:
            self.state = ChainState.KILLED
            self.logger.info("Process exited after kill (code %d)", returncode)
            return None

        if returncode == 0:
            self.state = ChainState.EXITED
            self.logger.info("Process exited normally")
            return None

        self.state = ChainState.CRASHED
        self.logger.error("Process crashed with exit code: %d", returncode)
        return ProcessExitError(self.identity, returncode, list(self.stderr_tail))

    def kill(self) -> bool:
        """Send SIGKILL once. Returns True if a signal was actually sent."""
        if self._kill_sent or not self.is_running():
            return False

        self._kill_sent = True
        try:
            self.process.kill()
        except ProcessLookupError:
            self.logger.debug("Process %d already gone", self.process.pid)
            return False
        except OSError as e:
            self.logger.warning("Failed to kill process %d: %s", self.process.pid, e)
            return False

        self.logger.info("Killed process %d", self.process.pid)
        return True

    def _close_stdout(self) -> None:
        if self._stdout_file is not None:
            self._stdout_file.close()
            self._stdout_file = None
