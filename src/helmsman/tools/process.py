"""
Helmsman Process Execution

The single primitive every shell-backed path goes through:
- Commands run via ``asyncio.create_subprocess_shell`` so only the awaiting
  task blocks, never the event loop
- Timeout enforcement via asyncio.wait_for + process kill
- Output size limits (configurable max bytes)

A non-zero exit raises ProcessExecutionError carrying stderr; a timeout
kills the process and raises ProcessTimeoutError. Callers that need a
result shape (the executor, tool operations) convert these themselves.
"""

from __future__ import annotations

import asyncio
import logging

from helmsman.exceptions import ProcessExecutionError, ProcessTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
MAX_OUTPUT_BYTES = 1_048_576


def _decode(data: bytes, limit: int) -> str:
    text = data.decode("utf-8", errors="replace")
    if len(text) > limit:
        text = text[:limit] + f"\n[TRUNCATED at {limit} bytes]"
    return text.strip()


class ProcessRunner:
    """Runs external commands with a timeout.

    One instance is shared by the executor and every built-in tool so a
    test can substitute a single fake for the whole process boundary.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
    ):
        self.default_timeout = default_timeout
        self._max_output_bytes = max_output_bytes

    async def run(self, command: str, timeout: float | None = None) -> str:
        """Run a command line and return its trimmed stdout.

        Raises:
            ProcessTimeoutError: the command exceeded ``timeout`` and was killed.
            ProcessExecutionError: the command exited non-zero or could not start.
        """
        limit = timeout if timeout is not None else self.default_timeout

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessExecutionError(command, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Command killed after %ss: %s", limit, command[:80])
            raise ProcessTimeoutError(command, limit) from None

        if proc.returncode != 0:
            error = _decode(stderr, self._max_output_bytes)
            raise ProcessExecutionError(
                command,
                error or f"Command failed with exit code {proc.returncode}",
                returncode=proc.returncode,
            )

        return _decode(stdout, self._max_output_bytes)

    async def powershell(self, command: str, timeout: float | None = None) -> str:
        """Run a PowerShell snippet without loading the user profile."""
        escaped = command.replace('"', '\\"')
        return await self.run(f'powershell -NoProfile -Command "{escaped}"', timeout)
