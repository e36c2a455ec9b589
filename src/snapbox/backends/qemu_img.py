"""Internal qcow2 snapshots through ``qemu-img snapshot``."""

import re
from pathlib import Path
from typing import List, Optional, Type, Union

import structlog

from ..errors import (
    ApplyFailure,
    CaptureFailure,
    EraseFailure,
    ListFailure,
    PreconditionViolation,
    SubprocessFailure,
)
from ..interfaces.process import ProcessResult, ProcessRunner

log = structlog.get_logger(__name__)

QEMU_IMG = "qemu-img"

# Rows of `qemu-img snapshot -l` look like:
# ID        TAG               VM SIZE                DATE     VM CLOCK     ICOUNT
# 1         @s1                   0 B 2024-01-01 10:00:00 00:00:00.000          0
_LIST_ROW_RE = re.compile(r"^\s*\d+\s+(\S+)\s")

# e.g. `Failed to get "write" lock` / `Is another process using the image`
_LOCKED_RE = re.compile(r'failed to get "?\w+"? lock|another process using the image', re.IGNORECASE)

ImagePath = Union[str, Path]


def snapshot_tag(index: int) -> str:
    """Tag of the internal snapshot at ancestry position ``index``."""
    return f"@s{index}"


def list_args(image_path: ImagePath) -> List[str]:
    return ["snapshot", "-l", str(image_path)]


def capture_args(tag: str, image_path: ImagePath) -> List[str]:
    return ["snapshot", "-c", tag, str(image_path)]


def apply_args(tag: str, image_path: ImagePath) -> List[str]:
    return ["snapshot", "-a", tag, str(image_path)]


def erase_args(tag: str, image_path: ImagePath) -> List[str]:
    return ["snapshot", "-d", tag, str(image_path)]


def parse_snapshot_list(output: str) -> List[str]:
    """Extract the tags from ``qemu-img snapshot -l`` output."""
    tags = []
    for line in output.splitlines():
        match = _LIST_ROW_RE.match(line)
        if match:
            tags.append(match.group(1))
    return tags


class QemuImg:
    """Drive ``qemu-img`` for one backend, raising on any non-zero exit."""

    def __init__(
        self,
        runner: ProcessRunner,
        binary: str = QEMU_IMG,
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.binary = binary
        self.timeout = timeout

    def _checked_exec(
        self,
        arguments: List[str],
        failure: Type[SubprocessFailure],
        tag: Optional[str] = None,
    ) -> ProcessResult:
        result = self.runner.run([self.binary, *arguments], timeout=self.timeout)
        if not result.success:
            raise failure(
                self.binary,
                arguments,
                result.returncode,
                result.diagnostics,
                tag=tag,
                timed_out=result.timed_out,
            )
        return result

    def list_snapshots(self, image_path: ImagePath) -> List[str]:
        result = self._checked_exec(list_args(image_path), ListFailure)
        return parse_snapshot_list(result.stdout)

    def has_snapshot(self, image_path: ImagePath, tag: str) -> bool:
        return tag in self.list_snapshots(image_path)

    def create_snapshot(self, image_path: ImagePath, tag: str) -> None:
        self._checked_exec(capture_args(tag, image_path), CaptureFailure, tag=tag)
        log.debug("qemu_img.snapshot_created", image=str(image_path), tag=tag)

    def restore_snapshot(self, image_path: ImagePath, tag: str) -> None:
        try:
            self._checked_exec(apply_args(tag, image_path), ApplyFailure, tag=tag)
        except ApplyFailure as e:
            if _LOCKED_RE.search(e.output):
                raise PreconditionViolation(
                    f"Cannot apply snapshot {tag}: image {image_path} is in use "
                    f"(stop the machine first)\n{e.output}",
                    failure=e,
                ) from e
            raise
        log.debug("qemu_img.snapshot_applied", image=str(image_path), tag=tag)

    def delete_snapshot(self, image_path: ImagePath, tag: str) -> None:
        self._checked_exec(erase_args(tag, image_path), EraseFailure, tag=tag)
        log.debug("qemu_img.snapshot_deleted", image=str(image_path), tag=tag)
