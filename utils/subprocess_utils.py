"""
Shared subprocess utilities for format conversion
"""

import asyncio
import subprocess
import logging
from typing import Optional, Any, Sequence

logger = logging.getLogger(__name__)


class SubprocessError(Exception):
    """
    Custom exception for subprocess errors.

    Raised when an external command (ffmpeg) fails to run, exits non-zero or
    exceeds its time limit.
    """

    def __init__(self, message, command=None, returncode=None, stderr=None):
        """
        Initialize the exception with error details.

        Args:
            message: Primary error message
            command: Optional command that was executed (list or str)
            returncode: Optional exit code from the process
            stderr: Optional error output from the process
        """
        self.message = message
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(self.message)

    def __str__(self):
        """Format the error message with available details."""
        parts = [self.message]
        if self.command:
            cmd_str = (
                " ".join(str(c) for c in self.command)
                if isinstance(self.command, (list, tuple))
                else self.command
            )
            parts.append(f"Command: {cmd_str}")
        if self.returncode is not None:
            parts.append(f"Exit code: {self.returncode}")
        if self.stderr:
            stderr = str(self.stderr)
            if len(stderr) > 500:  # Limit stderr length
                stderr = stderr[:500] + "... [truncated]"
            parts.append(f"Error output: {stderr}")

        return "\n".join(parts)


def _not_found_message(operation_name: str, cmd: Sequence[Any]) -> str:
    binary = str(cmd[0]) if cmd else "command"
    return (
        f"{operation_name} failed: {binary} not found. "
        "Please ensure FFmpeg is installed and in PATH."
    )


def safe_subprocess_run(
    cmd, operation_name="FFmpeg operation", custom_logger: Optional[Any] = None
):
    """
    Safely run subprocess with proper error handling

    Args:
        cmd: Command to run as list of strings
        operation_name: Descriptive name for the operation (for logging)
        custom_logger: Optional logger to use instead of default

    Returns:
        subprocess.CompletedProcess result

    Raises:
        SubprocessError: If subprocess fails or FFmpeg not found
    """
    active_logger = custom_logger or logger

    try:
        active_logger.debug(
            "Running %s: %s", operation_name, " ".join(str(x) for x in cmd)
        )
        return subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, check=True
        )
    except subprocess.CalledProcessError as e:
        error_msg = f"{operation_name} failed with return code {e.returncode}"
        if e.stderr:
            error_msg += f"\nFFmpeg stderr: {e.stderr}"
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, cmd, e.returncode, e.stderr) from e
    except (OSError, PermissionError) as e:
        if isinstance(e, FileNotFoundError):
            error_msg = _not_found_message(operation_name, cmd)
        else:
            error_msg = f"{operation_name} failed with OS/Permission error: {e}"
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, cmd) from e


async def async_subprocess_run(
    cmd: Sequence[Any],
    operation_name: str = "FFmpeg operation",
    *,
    timeout: Optional[float] = None,
    custom_logger: Optional[Any] = None,
) -> str:
    """
    Run an external command without blocking the event loop.

    The child is killed when ``timeout`` expires or the awaiting task is
    cancelled, so an aborted request never leaves a converter running.

    Returns:
        Captured stderr (ffmpeg writes its progress there)

    Raises:
        SubprocessError: on non-zero exit, missing binary or timeout
        asyncio.CancelledError: re-raised after the child was killed
    """
    active_logger = custom_logger or logger
    args = [str(x) for x in cmd]
    active_logger.debug("Running %s: %s", operation_name, " ".join(args))

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        error_msg = _not_found_message(operation_name, args)
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, args) from e
    except (OSError, PermissionError) as e:
        error_msg = f"{operation_name} failed with OS/Permission error: {e}"
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, args) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        await _kill(process)
        error_msg = f"{operation_name} timed out after {timeout}s"
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, args) from e
    except asyncio.CancelledError:
        await _kill(process)
        raise

    stderr_text = (stderr or b"").decode("utf-8", errors="replace")
    if process.returncode != 0:
        error_msg = f"{operation_name} failed with return code {process.returncode}"
        active_logger.error(error_msg)
        raise SubprocessError(error_msg, args, process.returncode, stderr_text)
    return stderr_text


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
