"""Abstract interface for process execution."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class ProcessResult:
    """Outcome of running a program to completion."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def diagnostics(self) -> str:
        """Error text worth showing to a user: stderr, else stdout."""
        return (self.stderr or "").strip() or (self.stdout or "").strip()


class ProcessRunner(ABC):
    """Runs a program synchronously and reports how it exited."""

    @abstractmethod
    def run(
        self,
        command: List[str],
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run ``command`` (program first) and wait for it.

        Never raises for a non-zero exit; a timeout is reported as a failed
        result with ``timed_out`` set.
        """
        pass
