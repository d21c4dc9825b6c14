"""
Event ingestion trigger.

Ingestion itself lives outside this service (a scraper script that fills the
``events`` table). The trigger just runs the configured command as a
subprocess, streams its output into our logs and reports success or
failure. Concurrent callers are deduplicated by SuggestionCacheManager.
"""

import asyncio
import contextlib
import os
import shlex

from app.config import settings
from app.features.event_suggestions.services.errors import IngestionFailedError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

READ_CHUNK_BYTES = 64 * 1024
MAX_LOGGED_LINE_BYTES = 4 * 1024


class IngestionTrigger:
    """Runs the external event ingestion command."""

    def __init__(self, command: str | None = None, timeout_seconds: float | None = None):
        self.command = command if command is not None else settings.EVENT_INGEST_COMMAND
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.EVENT_INGEST_TIMEOUT_SECONDS
        )

    async def ingest(self) -> None:
        """
        Run ingestion to completion.

        Raises:
            IngestionFailedError: command missing, not startable, timed out or exited non-zero
        """
        if not self.command:
            logger.error("Event ingestion requested but EVENT_INGEST_COMMAND is not set")
            raise IngestionFailedError(cause="EVENT_INGEST_COMMAND not configured")

        argv = shlex.split(self.command)
        logger.info("Starting event ingestion", command=argv[0], args=argv[1:])

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
            )
        except OSError as e:
            logger.error("Failed to start event ingestion", error=str(e))
            raise IngestionFailedError(cause=str(e)) from e

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    self._pipe_to_log(process.stdout, "stdout"),
                    self._pipe_to_log(process.stderr, "stderr"),
                    process.wait(),
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            logger.error("Event ingestion timed out", timeout=self.timeout_seconds)
            raise IngestionFailedError(cause="ingestion timed out") from e
        except Exception as e:
            logger.error(
                "Event ingestion output handling failed", error=str(e), error_type=type(e).__name__
            )
            raise IngestionFailedError(cause=str(e)) from e
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            logger.error("Event ingestion failed", exit_code=process.returncode)
            raise IngestionFailedError(cause=f"ingestion exited with code {process.returncode}")

        logger.info("Event ingestion finished successfully")

    async def _pipe_to_log(self, stream: asyncio.StreamReader | None, name: str) -> None:
        """Log the stream line by line; reads in chunks so line length is unbounded."""
        if stream is None:
            return

        pending = b""
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for line in lines:
                self._log_line(name, line)
            if len(pending) >= READ_CHUNK_BYTES:
                self._log_line(name, pending)
                pending = b""

        if pending:
            self._log_line(name, pending)

    def _log_line(self, name: str, line: bytes) -> None:
        text = line[:MAX_LOGGED_LINE_BYTES].decode(errors="replace").rstrip()
        if not text:
            return
        if name == "stderr":
            logger.warning("Ingestion output", stream=name, line=text, line_bytes=len(line))
        else:
            logger.info("Ingestion output", stream=name, line=text, line_bytes=len(line))


ingestion_trigger = IngestionTrigger()
