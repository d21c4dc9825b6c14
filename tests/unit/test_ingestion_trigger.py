import asyncio
import shlex
import sys

import pytest

from app.features.event_suggestions.services import ingestion as ingestion_module
from app.features.event_suggestions.services.errors import IngestionFailedError
from app.features.event_suggestions.services.ingestion import IngestionTrigger


def _python_command(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


@pytest.mark.asyncio
async def test_successful_command_completes():
    trigger = IngestionTrigger(
        command=_python_command("import sys; print('scraped 12 events'); print('warn', file=sys.stderr)"),
        timeout_seconds=30,
    )

    await trigger.ingest()


@pytest.mark.asyncio
async def test_non_zero_exit_raises():
    trigger = IngestionTrigger(command=_python_command("import sys; sys.exit(3)"), timeout_seconds=30)

    with pytest.raises(IngestionFailedError) as exc_info:
        await trigger.ingest()

    assert exc_info.value.cause == "ingestion exited with code 3"
    assert exc_info.value.recoverable is True


@pytest.mark.asyncio
async def test_missing_executable_raises():
    trigger = IngestionTrigger(command="/nonexistent/bin/scrape-events --all", timeout_seconds=30)

    with pytest.raises(IngestionFailedError):
        await trigger.ingest()


@pytest.mark.asyncio
async def test_timeout_kills_process():
    trigger = IngestionTrigger(command=_python_command("import time; time.sleep(10)"), timeout_seconds=0.3)

    with pytest.raises(IngestionFailedError) as exc_info:
        await trigger.ingest()

    assert exc_info.value.cause == "ingestion timed out"


@pytest.mark.asyncio
async def test_unconfigured_command_raises():
    trigger = IngestionTrigger(command="", timeout_seconds=30)

    with pytest.raises(IngestionFailedError) as exc_info:
        await trigger.ingest()

    assert "not configured" in exc_info.value.cause


@pytest.mark.asyncio
async def test_lines_longer_than_stream_limit_are_logged(tmp_path):
    marker = tmp_path / "done"
    script = (
        "import sys, pathlib\n"
        "sys.stdout.write('x' * 200000)\n"
        "sys.stdout.flush()\n"
        "sys.stdout.write('\\n' + 'y' * 200000 + '\\n')\n"
        "sys.stdout.flush()\n"
        f"pathlib.Path({str(marker)!r}).write_text('ok')\n"
    )
    trigger = IngestionTrigger(command=_python_command(script), timeout_seconds=30)

    await trigger.ingest()

    assert marker.read_text() == "ok"


@pytest.mark.asyncio
async def test_output_failure_is_classified_and_child_killed(monkeypatch, tmp_path):
    marker = tmp_path / "survived"

    async def broken_pipe(self, stream, name):
        raise ValueError("Separator is not found, and chunk exceed the limit")

    monkeypatch.setattr(IngestionTrigger, "_pipe_to_log", broken_pipe)
    script = f"import time, pathlib; time.sleep(1); pathlib.Path({str(marker)!r}).write_text('x')"
    trigger = IngestionTrigger(command=_python_command(script), timeout_seconds=30)

    with pytest.raises(IngestionFailedError) as exc_info:
        await trigger.ingest()

    assert "Separator is not found" in exc_info.value.cause
    await asyncio.sleep(1.5)
    assert not marker.exists()


@pytest.mark.asyncio
async def test_cancelled_ingestion_kills_child(tmp_path):
    marker = tmp_path / "survived"
    script = f"import time, pathlib; time.sleep(1); pathlib.Path({str(marker)!r}).write_text('x')"
    trigger = IngestionTrigger(command=_python_command(script), timeout_seconds=30)

    task = asyncio.create_task(trigger.ingest())
    await asyncio.sleep(0.3)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(1.5)
    assert not marker.exists()


def test_explicit_zero_timeout_is_kept(monkeypatch):
    monkeypatch.setattr(ingestion_module.settings, "EVENT_INGEST_TIMEOUT_SECONDS", 300.0)

    assert IngestionTrigger(command="scrape", timeout_seconds=0).timeout_seconds == 0
