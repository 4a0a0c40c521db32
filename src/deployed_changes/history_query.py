"""
Git history queries for a single change request.
"""

import asyncio
import time
from pathlib import Path

from ..shared_utilities import get_logger, trace_operation
from .config import ChangesConfig
from .data_models import (
    ChangeRequest,
    CommitSequence,
    Failure,
    HistoryQueryError,
    LogParseError,
)
from .log_parser import COMMIT_MARKER, decode_log, parse_commit_log

LOG_FORMAT = f"--pretty=format:{COMMIT_MARKER}%H%n%B"
READ_CHUNK_SIZE = 64 * 1024
ERROR_TAIL_CHARS = 500


class HistoryQueryExecutor:
    """
    Runs ``git log <hash>..<upstream>`` for a request and parses the output.

    Every call ends in exactly one of a CommitSequence or a Failure; process
    and parse problems are never raised to the caller.
    """

    def __init__(self, config: ChangesConfig | None = None):
        """Initialize executor.

        Args:
            config: Timeout, output bound, upstream branch and git binary
        """
        self.config = config or ChangesConfig()
        self.logger = get_logger(__name__)

    def build_command(self, request: ChangeRequest) -> list[str]:
        """Command line for the history query of a request."""
        revision_range = (
            f"{request.version.content_hash}..{self.config.upstream_branch}"
        )
        return [self.config.git_executable, "log", LOG_FORMAT, revision_range, "--"]

    async def run(self, request: ChangeRequest) -> CommitSequence | Failure:
        """Query and parse the commits landed since the request's version.

        Args:
            request: Service, repository location and deployed version

        Returns:
            Commits oldest first, or a Failure naming service and version
        """
        attributes = {
            "service": request.service,
            "version": request.version.raw,
            "location": request.location,
        }
        with trace_operation("history_query", attributes) as span:
            start_time = time.monotonic()
            try:
                output = await self._query(request)
                commits = parse_commit_log(
                    decode_log(output), self.config.trailer_prefixes
                )
            except (HistoryQueryError, LogParseError) as e:
                failure = self._make_failure(request, e)
                self.logger.warning(f"History query failed: {failure.message}")
                if span is not None:
                    span.set_attribute("failed", True)
                return failure

            self.logger.debug(
                f"{request.service}: {len(commits)} commits since "
                f"{request.version.content_hash} "
                f"({time.monotonic() - start_time:.2f}s)"
            )
            if span is not None:
                span.set_attribute("commit_count", len(commits))
            return commits

    def _make_failure(self, request: ChangeRequest, cause: Exception) -> Failure:
        """Wrap a cause with the identity of the request that hit it."""
        return Failure(
            service=request.service,
            version=request.version.raw,
            message=f"{request.service} at {request.version.raw}: {cause}",
            cause=cause,
        )

    async def _query(self, request: ChangeRequest) -> bytes:
        """Run git and return its combined stdout/stderr.

        Raises:
            HistoryQueryError: On empty hash, missing repository, spawn failure,
                non-zero exit, timeout or output overflow
        """
        if not request.version.content_hash:
            raise HistoryQueryError("version has an empty content hash")

        location = Path(request.location)
        if not location.is_dir():
            raise HistoryQueryError(f"repository not found at {location}")

        command = self.build_command(request)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(location),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise HistoryQueryError(f"could not start {command[0]}: {e}") from e

        try:
            returncode, output = await asyncio.wait_for(
                self._collect_output(process), timeout=self.config.query_timeout
            )
        except asyncio.TimeoutError as e:
            await self._terminate(process)
            raise HistoryQueryError(
                f"history query timed out after {self.config.query_timeout:g}s"
            ) from e
        except (HistoryQueryError, asyncio.CancelledError):
            await self._terminate(process)
            raise

        if returncode != 0:
            raise HistoryQueryError(
                f"git log exited with status {returncode}: {self._tail(output)}"
            )
        return output

    async def _collect_output(
        self, process: asyncio.subprocess.Process
    ) -> tuple[int, bytes]:
        """Read output up to the size bound, then wait for exit."""
        assert process.stdout is not None
        chunks: list[bytes] = []
        size = 0

        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > self.config.max_output_bytes:
                raise HistoryQueryError(
                    f"history output exceeded {self.config.max_output_bytes} bytes"
                )
            chunks.append(chunk)

        returncode = await process.wait()
        return returncode, b"".join(chunks)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process if it is still running and reap it."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        # wait() only returns once the pipe has reached EOF
        if process.stdout is not None:
            while await process.stdout.read(READ_CHUNK_SIZE):
                pass
        await process.wait()

    def _tail(self, output: bytes) -> str:
        """Last part of the captured output for error messages."""
        text = output.decode("utf-8", errors="replace").strip()
        if len(text) > ERROR_TAIL_CHARS:
            text = "..." + text[-ERROR_TAIL_CHARS:]
        return text or "no output"
