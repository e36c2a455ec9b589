"""Subprocess process runner implementation."""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog

from ..interfaces.process import ProcessResult, ProcessRunner

log = structlog.get_logger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


def _text(output: Union[str, bytes, None]) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module."""

    def run(
        self,
        command: List[str],
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        log.debug("process.run", command=command, timeout=timeout)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=timeout,
                check=False,
                cwd=str(cwd) if cwd else None,
                env=env,
                encoding="utf-8",
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            log.warning("process.timeout", command=command, timeout=timeout)
            return ProcessResult(
                returncode=-1,
                stdout=_text(e.stdout),
                stderr=f"{command[0]} timed out after {timeout}s",
                timed_out=True,
            )
        except OSError as e:
            log.warning("process.spawn_failed", command=command, error=str(e))
            return ProcessResult(returncode=EXIT_NOT_FOUND, stderr=str(e))

        log.debug("process.exited", command=command, returncode=result.returncode)
        return ProcessResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
