"""Executor contract and the subprocess runner shared by every generation backend."""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from vibesprint.models import ExecutionResult

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 10 * 60
TIMEOUT_EXIT_CODE = 124  # same convention as coreutils timeout(1)


def _as_text(output: str | bytes | None) -> str:
    # TimeoutExpired carries bytes on POSIX even when text=True was requested.
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_backend(
    argv: list[str],
    prompt: str,
    *,
    cwd: Path | None = None,
    timeout: float = TIMEOUT_SECONDS,
) -> tuple[int, str, str, bool]:
    """Run argv with prompt on stdin. Returns (exit_code, stdout, stderr, timed_out)."""
    try:
        proc = subprocess.run(
            argv,
            input=prompt,
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        minutes = int(timeout // 60)
        stderr = _as_text(exc.stderr) + f"\n[TIMEOUT: Process killed after {minutes} minutes]"
        return TIMEOUT_EXIT_CODE, _as_text(exc.stdout), stderr, True
    except OSError as exc:
        return 1, "", f"Failed to start {argv[0]}: {exc}", False
    return proc.returncode, proc.stdout, proc.stderr, False


class Executor(ABC):
    name: str
    binary: str
    install_hint: str
    models: tuple[str, ...]

    @abstractmethod
    def build_command(self, model: str | None) -> list[str]: ...

    @abstractmethod
    def parse_telemetry(self, output: str) -> dict:
        """Scrape usage numbers from the tail of the output; {} when absent."""

    def validate_setup(self) -> list[str]:
        try:
            result = subprocess.run([self.binary, "--version"], capture_output=True, text=True)
        except OSError:
            return [f"{self.binary} not installed. {self.install_hint}"]
        if result.returncode != 0:
            return [f"{self.binary} not installed. {self.install_hint}"]
        return []

    def execute(
        self,
        prompt: str,
        *,
        model: str | None = None,
        cwd: Path | None = None,
        timeout: float = TIMEOUT_SECONDS,
    ) -> ExecutionResult:
        argv = self.build_command(model)
        logger.debug("Running: %s (cwd=%s)", " ".join(argv), cwd)
        exit_code, stdout, stderr, timed_out = run_backend(argv, prompt, cwd=cwd, timeout=timeout)
        telemetry = {} if timed_out else self.parse_telemetry(stdout + stderr)
        return ExecutionResult(
            success=exit_code == 0 and not timed_out,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
            **telemetry,
        )
