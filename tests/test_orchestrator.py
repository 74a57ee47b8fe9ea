import asyncio
import signal
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from iostriage.core.errors import DeviceCommunicationError, DeviceNotFoundError
from iostriage.core.snapshot import Snapshot
from iostriage.extract import orchestrator as orchestrator_module
from iostriage.extract.orchestrator import ExtractionOrchestrator, TaskState, run_extraction
from iostriage.extract.process import SubprocessRunner
from iostriage.extract.tasks import DEVICE_INFO_DOMAINS, CaptureTask, Toolset, bounded_tasks

from conftest import UDID


class FakeHandle:
    def __init__(self, task: CaptureTask, exit_code: int, error: Exception | None = None, hang: bool = False) -> None:
        self.task = task
        self.exit_code = exit_code
        self.error = error
        self.signals: list[int] = []
        self.waits = 0
        self.stderr_tail = "boom" if exit_code else ""
        self._done = asyncio.Event()
        if task.bounded and not hang:
            self._done.set()
        task.output.parent.mkdir(parents=True, exist_ok=True)
        task.output.write_bytes(f"{task.name}\n".encode())

    async def wait(self) -> int:
        self.waits += 1
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return self.exit_code

    def terminate(self, sig: int = signal.SIGINT) -> None:
        self.signals.append(sig)
        self.exit_code = -sig if self.task.bounded else 0
        self._done.set()


class FakeRunner:
    def __init__(
        self,
        udid_output: bytes = (UDID + "\n").encode(),
        exit_codes: dict | None = None,
        unstartable: set | None = None,
        errors: dict | None = None,
        hanging: set | None = None,
    ) -> None:
        self.udid_output = udid_output
        self.exit_codes = exit_codes or {}
        self.unstartable = unstartable or set()
        self.errors = errors or {}
        self.hanging = hanging or set()
        self.handles: dict[str, FakeHandle] = {}
        self.started: list[str] = []

    async def capture(self, argv) -> bytes:
        return self.udid_output

    async def start(self, task: CaptureTask) -> FakeHandle:
        self.started.append(task.name)
        if task.name in self.unstartable:
            raise FileNotFoundError(2, "No such file or directory", task.argv[0])
        handle = FakeHandle(
            task,
            self.exit_codes.get(task.name, 0),
            error=self.errors.get(task.name),
            hang=task.name in self.hanging,
        )
        self.handles[task.name] = handle
        return handle


def _run(runner: FakeRunner, snapshot: Snapshot, **kwargs):
    orchestrator = ExtractionOrchestrator(Toolset(), runner)
    return asyncio.run(orchestrator.run(snapshot, UDID, **kwargs))


def test_failed_task_is_isolated_and_syslog_still_stopped(snapshot: Snapshot) -> None:
    runner = FakeRunner(exit_codes={"installed_apps": 1})
    result = _run(runner, snapshot)

    assert [outcome.name for outcome in result.failures] == ["installed_apps"]
    failed = result.outcomes["installed_apps"]
    assert failed.exit_code == 1
    assert "returned error code 1" in failed.error
    assert "boom" in failed.error

    syslog = result.outcomes["syslog"]
    assert syslog.state is TaskState.TERMINATED
    assert runner.handles["syslog"].signals == [signal.SIGINT]
    assert result.outcomes["crash_reports"].state is TaskState.SUCCEEDED


def test_syslog_starts_first_and_every_domain_runs(snapshot: Snapshot) -> None:
    runner = FakeRunner()
    result = _run(runner, snapshot)
    assert runner.started[0] == "syslog"
    for domain in DEVICE_INFO_DOMAINS:
        assert result.outcomes[f"device_info:{domain}"].state is TaskState.SUCCEEDED
        assert snapshot.artifact(f"deviceinfo-{domain}.xml").is_file()
    assert "backup" not in result.outcomes
    assert result.failures == []


def test_backup_only_when_requested(snapshot: Snapshot) -> None:
    runner = FakeRunner()
    result = _run(runner, snapshot, backup=True)
    assert result.outcomes["backup"].state is TaskState.SUCCEEDED
    assert (snapshot.backup_dir / "backup_log.txt").is_file()


def test_spawn_failure_is_recorded(snapshot: Snapshot) -> None:
    runner = FakeRunner(unstartable={"provisioning_profiles", "syslog"})
    result = _run(runner, snapshot)
    names = sorted(outcome.name for outcome in result.failures)
    assert names == ["provisioning_profiles", "syslog"]
    assert "could not start" in result.outcomes["provisioning_profiles"].error
    assert result.streaming is None
    assert result.outcomes["installed_apps"].state is TaskState.SUCCEEDED


def test_capture_error_is_isolated_and_syslog_still_stopped(snapshot: Snapshot) -> None:
    runner = FakeRunner(errors={"installed_apps": OSError(28, "No space left on device")})
    result = _run(runner, snapshot)
    assert [outcome.name for outcome in result.failures] == ["installed_apps"]
    assert "No space left on device" in result.outcomes["installed_apps"].error
    assert result.outcomes["crash_reports"].state is TaskState.SUCCEEDED
    assert result.outcomes["syslog"].state is TaskState.TERMINATED
    assert runner.handles["syslog"].signals == [signal.SIGINT]


def test_syslog_capture_error_is_recorded(snapshot: Snapshot) -> None:
    runner = FakeRunner(errors={"syslog": OSError(28, "No space left on device")})
    result = _run(runner, snapshot)
    syslog = result.outcomes["syslog"]
    assert syslog.state is TaskState.FAILED
    assert "No space left on device" in syslog.error
    assert result.outcomes["device_info"].state is TaskState.SUCCEEDED


def test_task_timeout_terminates_and_reaps(snapshot: Snapshot, monkeypatch: pytest.MonkeyPatch) -> None:
    def with_timeout(*args, **kwargs):
        tasks = bounded_tasks(*args, **kwargs)
        return [replace(task, timeout=0.05) if task.name == "installed_apps" else task for task in tasks]

    monkeypatch.setattr(orchestrator_module, "bounded_tasks", with_timeout)
    runner = FakeRunner(hanging={"installed_apps"})
    result = _run(runner, snapshot)
    outcome = result.outcomes["installed_apps"]
    assert outcome.state is TaskState.FAILED
    assert "did not finish within 0.05 seconds" in outcome.error
    assert outcome.exit_code == -signal.SIGTERM
    handle = runner.handles["installed_apps"]
    assert handle.signals == [signal.SIGTERM]
    assert handle.waits == 2
    assert result.outcomes["device_info"].state is TaskState.SUCCEEDED


def test_timed_syslog_is_left_running_then_stops_itself(snapshot: Snapshot) -> None:
    runner = FakeRunner()

    async def scenario():
        orchestrator = ExtractionOrchestrator(Toolset(), runner)
        result = await orchestrator.run(snapshot, UDID, syslog_timeout=0.05)
        assert result.streaming is not None
        assert result.streaming.running
        assert result.outcomes["syslog"].state is TaskState.RUNNING
        outcome = await result.streaming.wait()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.state is TaskState.TERMINATED
    assert runner.handles["syslog"].signals == [signal.SIGINT]


def test_no_device_attached() -> None:
    orchestrator = ExtractionOrchestrator(Toolset(), FakeRunner(udid_output=b""))
    with pytest.raises(DeviceNotFoundError):
        asyncio.run(orchestrator.resolve_device())


def test_unexpected_identifier_output() -> None:
    orchestrator = ExtractionOrchestrator(Toolset(), FakeRunner(udid_output=b"ERROR: Unable to retrieve device list!\n"))
    with pytest.raises(DeviceCommunicationError, match="Unable to retrieve"):
        asyncio.run(orchestrator.resolve_device())


def test_run_extraction_creates_snapshot(tmp_path: Path) -> None:
    runner = FakeRunner()
    result = run_extraction(tmp_path, runner=runner)
    assert result.device_id == UDID
    assert result.snapshot.root.parent == tmp_path / UDID
    assert result.snapshot.artifact("syslog.txt").read_text() == "syslog\n"
    assert result.outcomes["syslog"].state is TaskState.TERMINATED


def test_toolset_prefixes_bin_dir(tmp_path: Path) -> None:
    assert Toolset(tmp_path).command("ideviceinfo", "-x") == [str(tmp_path / "ideviceinfo"), "-x"]
    assert Toolset().command("idevice_id", "-l") == ["idevice_id", "-l"]


def test_subprocess_runner_pumps_stdout(tmp_path: Path) -> None:
    task = CaptureTask(
        name="echo",
        argv=(sys.executable, "-c", "import sys; sys.stdout.write('captured'); sys.stderr.write('warn')"),
        output=tmp_path / "out" / "echo.txt",
    )

    async def scenario():
        handle = await SubprocessRunner().start(task)
        return await handle.wait(), handle.stderr_tail

    code, stderr = asyncio.run(scenario())
    assert code == 0
    assert stderr == "warn"
    assert task.output.read_text() == "captured"


def test_subprocess_handle_terminates_stream(tmp_path: Path) -> None:
    task = CaptureTask(
        name="stream",
        argv=(sys.executable, "-c", "import time\nwhile True:\n    print('tick', flush=True)\n    time.sleep(0.01)"),
        output=tmp_path / "stream.txt",
        bounded=False,
    )

    async def scenario():
        handle = await SubprocessRunner().start(task)
        for _ in range(500):
            if task.output.exists() and task.output.stat().st_size:
                break
            await asyncio.sleep(0.01)
        handle.terminate(signal.SIGTERM)
        return await asyncio.wait_for(handle.wait(), 10)

    code = asyncio.run(scenario())
    assert code != 0
    assert task.output.read_text().startswith("tick")


def test_subprocess_wait_survives_a_caller_timeout(tmp_path: Path) -> None:
    task = CaptureTask(
        name="slow",
        argv=(sys.executable, "-c", "import time\nprint('start', flush=True)\ntime.sleep(30)"),
        output=tmp_path / "slow.txt",
    )

    async def scenario():
        handle = await SubprocessRunner().start(task)
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(handle.wait(), 0.2)
        handle.terminate(signal.SIGTERM)
        return await asyncio.wait_for(handle.wait(), 10)

    assert asyncio.run(scenario()) != 0


def test_subprocess_output_error_stops_the_child(tmp_path: Path) -> None:
    task = CaptureTask(
        name="unwritable",
        argv=(sys.executable, "-c", "import time\nwhile True:\n    print('tick', flush=True)\n    time.sleep(0.01)"),
        output=tmp_path,
    )

    async def scenario():
        handle = await SubprocessRunner().start(task)
        with pytest.raises(OSError):
            await asyncio.wait_for(handle.wait(), 10)
        return handle

    handle = asyncio.run(scenario())
    assert handle._process.returncode is not None
