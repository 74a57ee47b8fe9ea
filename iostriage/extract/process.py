"""External process handling for capture tasks."""
from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import IO, Protocol, Sequence

from ..core.log import get_logger
from .tasks import CaptureTask

logger = get_logger("extract.process")

# Ceiling on a single stdout read so a chatty stream never buffers unbounded.
READ_LIMIT = 5000 * 1024
_STDERR_TAIL = 4096


class ProcessHandle(Protocol):
    """A running capture process."""

    async def wait(self) -> int:  # pragma: no cover - protocol
        ...

    def terminate(self, sig: int = signal.SIGINT) -> None:  # pragma: no cover - protocol
        ...

    @property
    def stderr_tail(self) -> str:  # pragma: no cover - protocol
        ...


class ProcessRunner(Protocol):
    """Spawns capture tasks and one-shot queries against the toolset."""

    async def start(self, task: CaptureTask) -> ProcessHandle:  # pragma: no cover - protocol
        ...

    async def capture(self, argv: Sequence[str]) -> bytes:  # pragma: no cover - protocol
        ...


def _append(fh: IO[bytes], chunk: bytes) -> None:
    fh.write(chunk)
    fh.flush()


class SubprocessHandle:
    """Pumps a child's stdout into the task's output file."""

    def __init__(self, process: asyncio.subprocess.Process, output: Path, read_limit: int) -> None:
        self._process = process
        self._read_limit = read_limit
        self._stderr = bytearray()
        self._pump = asyncio.ensure_future(self._copy_stdout(output))
        self._drain = asyncio.ensure_future(self._collect_stderr())
        self._done = asyncio.ensure_future(self._finish())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stderr_tail(self) -> str:
        return bytes(self._stderr).decode("utf-8", errors="replace").strip()

    async def _copy_stdout(self, output: Path) -> None:
        stream = self._process.stdout
        if stream is None:
            return
        with output.open("wb") as fh:
            while True:
                chunk = await stream.read(self._read_limit)
                if not chunk:
                    break
                await asyncio.to_thread(_append, fh, chunk)

    async def _collect_stderr(self) -> None:
        stream = self._process.stderr
        if stream is None:
            return
        while True:
            chunk = await stream.read(_STDERR_TAIL)
            if not chunk:
                break
            self._stderr.extend(chunk)
            del self._stderr[:-_STDERR_TAIL]

    async def _finish(self) -> int:
        try:
            await asyncio.gather(self._pump, self._drain)
        except OSError:
            # Nobody reads stdout any more; stop the child before it blocks.
            self.terminate(signal.SIGTERM)
            await self._process.wait()
            raise
        return await self._process.wait()

    async def wait(self) -> int:
        # Shielded so a caller's timeout does not cancel the pipe pumps.
        return await asyncio.shield(self._done)

    def terminate(self, sig: int = signal.SIGINT) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            logger.debug("process %s already exited", self._process.pid)


class SubprocessRunner:
    """Runs toolset binaries with asyncio subprocesses."""

    def __init__(self, read_limit: int = READ_LIMIT) -> None:
        self._read_limit = read_limit

    async def start(self, task: CaptureTask) -> SubprocessHandle:
        if task.workdir is not None:
            task.workdir.mkdir(parents=True, exist_ok=True)
        task.output.parent.mkdir(parents=True, exist_ok=True)
        process = await asyncio.create_subprocess_exec(
            *task.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=self._read_limit,
        )
        logger.debug("started %s (pid %s): %s", task.name, process.pid, " ".join(task.argv))
        return SubprocessHandle(process, task.output, self._read_limit)

    async def capture(self, argv: Sequence[str]) -> bytes:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await process.communicate()
        return stdout


__all__ = ["ProcessHandle", "ProcessRunner", "READ_LIMIT", "SubprocessHandle", "SubprocessRunner"]
