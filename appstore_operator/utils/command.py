"""Blocking CLI runner shared by the helm and git wrappers."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from appstore_operator.constants.limits import MAX_COMMAND_ERROR_LENGTH

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandResult:
    """Outcome of one CLI invocation."""

    args: list[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def error_text(self, limit: int = MAX_COMMAND_ERROR_LENGTH) -> str:
        """Short, single-paragraph error text suitable for a status message."""
        raw = (self.stderr or self.stdout or "").strip()
        if not raw:
            raw = f"{self.args[0] if self.args else 'command'} exited with code {self.returncode}"
        cleaned = " ".join(line.strip() for line in raw.splitlines() if line.strip())
        cleaned = cleaned.removeprefix("Error:").strip()
        if len(cleaned) > limit:
            return f"{cleaned[: limit - 3].rstrip()}..."
        return cleaned


def run_command(
    args: list[str],
    timeout: int,
    cwd: Path | None = None,
    stdin: str | None = None,
) -> CommandResult:
    """Run a command synchronously and capture its output.

    A timeout or a missing binary is reported through the result rather
    than raised, so callers have one failure path to handle.
    """
    logger.debug("exec> %s", " ".join(args))
    try:
        completed = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            input=stdin,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, args[0])
        return CommandResult(
            args=list(args),
            returncode=-1,
            stderr=f"{args[0]} timed out after {timeout}s",
            timed_out=True,
        )
    except FileNotFoundError:
        return CommandResult(
            args=list(args),
            returncode=127,
            stderr=f"{args[0]}: executable not found",
        )
    return CommandResult(
        args=list(args),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
