"""Concurrent extraction of raw artifacts from an attached device.

The syslog stream is started first and stopped last. Every bounded task runs
in one ``asyncio.TaskGroup``; a task that fails is recorded in its
``TaskOutcome`` and never cancels its siblings. Only device resolution raises.
"""
from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List

from ..core.errors import DeviceCommunicationError, DeviceNotFoundError
from ..core.log import get_logger
from ..core.snapshot import Snapshot, create_snapshot
from .process import ProcessHandle, ProcessRunner, SubprocessRunner
from .tasks import SYSLOG, CaptureTask, Toolset, bounded_tasks, device_id_command, syslog_task

logger = get_logger("extract")

# idevice_id prints a 40 character UDID plus a newline and nothing else.
UDID_OUTPUT_LENGTH = 41


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TERMINATED = "terminated"


@dataclass
class TaskOutcome:
    """Per-task result of an extraction run."""

    name: str
    state: TaskState = TaskState.PENDING
    exit_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state in {TaskState.SUCCEEDED, TaskState.TERMINATED}

    def fail(self, error: str, exit_code: int | None = None) -> None:
        self.state = TaskState.FAILED
        self.exit_code = exit_code
        self.error = error


class StreamingCapture:
    """Lifetime of the unbounded syslog capture."""

    def __init__(self, task: CaptureTask, handle: ProcessHandle, outcome: TaskOutcome) -> None:
        self.task = task
        self.handle = handle
        self.outcome = outcome
        self._stop_requested = False
        self._timer: asyncio.TimerHandle | None = None
        self._exit = asyncio.ensure_future(self._watch())

    async def _watch(self) -> TaskOutcome:
        try:
            code = await self.handle.wait()
        except Exception as exc:
            self.outcome.fail(f"{self.task.argv[0]} failed while capturing output: {exc}")
            logger.error("%s", self.outcome.error)
            return self.outcome
        finally:
            if self._timer is not None:
                self._timer.cancel()
        self.outcome.exit_code = code
        if self._stop_requested:
            self.outcome.state = TaskState.TERMINATED
            logger.info("iOS Device syslog saved")
        elif code == 0:
            self.outcome.state = TaskState.SUCCEEDED
            logger.info("iOS Device syslog saved")
        else:
            tail = self.handle.stderr_tail
            self.outcome.fail(f"{self.task.argv[0]} returned error code {code}" + (f": {tail}" if tail else ""), code)
            logger.error("%s", self.outcome.error)
        return self.outcome

    @property
    def running(self) -> bool:
        return not self._exit.done()

    def stop(self, sig: int = signal.SIGINT) -> None:
        if not self.running:
            return
        self._stop_requested = True
        self.handle.terminate(sig)

    def stop_after(self, seconds: float) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(seconds, self.stop)

    async def wait(self) -> TaskOutcome:
        return await asyncio.shield(self._exit)


@dataclass
class ExtractionResult:
    """Outcome of every capture task of one extraction."""

    snapshot: Snapshot
    device_id: str
    outcomes: Dict[str, TaskOutcome] = field(default_factory=dict)
    streaming: StreamingCapture | None = None

    @property
    def failures(self) -> List[TaskOutcome]:
        return [outcome for outcome in self.outcomes.values() if outcome.state is TaskState.FAILED]

    @property
    def succeeded(self) -> List[TaskOutcome]:
        return [outcome for outcome in self.outcomes.values() if outcome.ok]


class ExtractionOrchestrator:
    """Runs the capture task set against one device."""

    def __init__(self, toolset: Toolset | None = None, runner: ProcessRunner | None = None) -> None:
        self._toolset = toolset or Toolset()
        self._runner = runner or SubprocessRunner()

    async def resolve_device(self) -> str:
        argv = device_id_command(self._toolset)
        try:
            raw = await self._runner.capture(argv)
        except OSError as exc:
            raise DeviceCommunicationError(f"could not run {argv[0]}: {exc}") from exc
        if len(raw) == UDID_OUTPUT_LENGTH:
            udid = raw.decode("ascii", errors="replace").strip()
            logger.info("Authorized iDevice found, UDID: %s", udid)
            return udid
        if not raw.strip():
            raise DeviceNotFoundError()
        raise DeviceCommunicationError(raw.decode("utf-8", errors="replace").strip())

    async def extract(
        self,
        base: Path,
        *,
        backup: bool = False,
        syslog_timeout: float | None = None,
    ) -> ExtractionResult:
        """Resolve the device, lay out a fresh snapshot and capture into it."""

        udid = await self.resolve_device()
        snapshot = create_snapshot(base, udid)
        return await self.run(snapshot, udid, backup=backup, syslog_timeout=syslog_timeout)

    async def run(
        self,
        snapshot: Snapshot,
        udid: str,
        *,
        backup: bool = False,
        syslog_timeout: float | None = None,
    ) -> ExtractionResult:
        result = ExtractionResult(snapshot=snapshot, device_id=udid)

        stream_task = syslog_task(snapshot, udid, self._toolset)
        result.outcomes[SYSLOG] = TaskOutcome(SYSLOG)
        result.streaming = await self._start_streaming(stream_task, result.outcomes[SYSLOG], syslog_timeout)

        if not backup:
            logger.info("Skipping device backup")
        tasks = bounded_tasks(snapshot, udid, self._toolset, backup=backup)
        for task in tasks:
            result.outcomes[task.name] = TaskOutcome(task.name)

        try:
            async with asyncio.TaskGroup() as group:
                for task in tasks:
                    group.create_task(self._run_bounded(task, result.outcomes[task.name]))
        except BaseException:
            if result.streaming is not None:
                result.streaming.stop()
            raise

        streaming = result.streaming
        if streaming is not None:
            if syslog_timeout is None:
                logger.info("completed all extraction tasks, stopping syslog capture")
                streaming.stop()
                await streaming.wait()
            else:
                logger.info("leaving syslog capture running for %s seconds", syslog_timeout)

        logger.info(
            "extraction finished: %d task(s) succeeded, %d failed",
            len(result.succeeded),
            len(result.failures),
        )
        return result

    async def _start_streaming(
        self, task: CaptureTask, outcome: TaskOutcome, duration: float | None
    ) -> StreamingCapture | None:
        try:
            handle = await self._runner.start(task)
        except OSError as exc:
            outcome.fail(f"could not start {task.argv[0]}: {exc}")
            logger.error("%s", outcome.error)
            return None
        outcome.state = TaskState.RUNNING
        logger.info("capturing device syslog...")
        streaming = StreamingCapture(task, handle, outcome)
        if duration is not None:
            streaming.stop_after(duration)
        return streaming

    async def _run_bounded(self, task: CaptureTask, outcome: TaskOutcome) -> None:
        try:
            handle = await self._runner.start(task)
        except OSError as exc:
            outcome.fail(f"could not start {task.argv[0]}: {exc}")
            logger.error("%s: %s", task.name, outcome.error)
            return
        outcome.state = TaskState.RUNNING
        try:
            if task.timeout is not None:
                try:
                    code = await asyncio.wait_for(handle.wait(), task.timeout)
                except TimeoutError:
                    handle.terminate(signal.SIGTERM)
                    code = await handle.wait()
                    outcome.fail(f"{task.argv[0]} did not finish within {task.timeout} seconds", code)
                    logger.error("%s: %s", task.name, outcome.error)
                    return
            else:
                code = await handle.wait()
        except Exception as exc:
            outcome.fail(f"{task.argv[0]} failed while capturing output: {exc}")
            logger.error("%s: %s", task.name, outcome.error)
            return
        if code != 0:
            tail = handle.stderr_tail
            outcome.fail(f"{task.argv[0]} returned error code {code}" + (f": {tail}" if tail else ""), code)
            logger.error("%s: %s", task.name, outcome.error)
            return
        outcome.state = TaskState.SUCCEEDED
        outcome.exit_code = code
        logger.info("%s saved", task.name)


def run_extraction(
    base: Path,
    *,
    toolset: Toolset | None = None,
    runner: ProcessRunner | None = None,
    backup: bool = False,
    syslog_timeout: float | None = None,
) -> ExtractionResult:
    """Synchronous entry point; keeps the loop alive for a timed syslog capture."""

    async def _main() -> ExtractionResult:
        orchestrator = ExtractionOrchestrator(toolset, runner)
        result = await orchestrator.extract(base, backup=backup, syslog_timeout=syslog_timeout)
        if result.streaming is not None and result.streaming.running:
            logger.info("waiting %s seconds for syslog to finish", syslog_timeout)
            await result.streaming.wait()
        return result

    return asyncio.run(_main())


__all__ = [
    "ExtractionOrchestrator",
    "ExtractionResult",
    "StreamingCapture",
    "TaskOutcome",
    "TaskState",
    "UDID_OUTPUT_LENGTH",
    "run_extraction",
]
