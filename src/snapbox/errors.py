"""Exceptions raised by the snapshot engine."""

from pathlib import Path
from typing import List, Optional, Sequence, Union


class SnapshotError(Exception):
    """Base class for all snapshot errors."""


class SubprocessFailure(SnapshotError):
    """The disk-image utility exited with a non-zero status."""

    operation = "run"

    def __init__(
        self,
        program: str,
        arguments: Sequence[str],
        returncode: int,
        output: str = "",
        tag: Optional[str] = None,
        timed_out: bool = False,
    ):
        self.program = program
        self.arguments: List[str] = list(arguments)
        self.returncode = returncode
        self.output = output
        self.tag = tag
        self.timed_out = timed_out
        super().__init__(self._describe())

    def _describe(self) -> str:
        what = f"{self.operation} of snapshot {self.tag}" if self.tag else self.operation
        status = "timed out" if self.timed_out else f"exit status {self.returncode}"
        message = f"{what} failed ({status}): {self.program} {' '.join(self.arguments)}"
        if self.output:
            message += f"\n{self.output}"
        return message


class ListFailure(SubprocessFailure):
    operation = "list"


class CaptureFailure(SubprocessFailure):
    operation = "capture"


class ApplyFailure(SubprocessFailure):
    operation = "apply"


class EraseFailure(SubprocessFailure):
    operation = "erase"


class PreconditionViolation(SnapshotError):
    """The machine is not in a state that allows restoring a snapshot."""

    def __init__(self, message: str, failure: Optional[ApplyFailure] = None):
        self.failure = failure
        super().__init__(message)


class TagCollision(SnapshotError):
    """The image already holds an internal snapshot with the tag being captured."""

    def __init__(self, tag: str, image_path: Union[str, Path]):
        self.tag = tag
        self.image_path = str(image_path)
        super().__init__(
            f"A snapshot with the same tag already exists in the image. "
            f"Image: {self.image_path}; tag: {tag}"
        )


class MissingSnapshotTag(SnapshotError):
    """The image holds no internal snapshot with the expected tag."""

    def __init__(self, operation: str, tag: str, image_path: Union[str, Path]):
        self.operation = operation
        self.tag = tag
        self.image_path = str(image_path)
        super().__init__(
            f"Cannot {operation} snapshot {tag}: no such tag in image {self.image_path}"
        )


class MalformedRecord(SnapshotError):
    """A persisted snapshot record could not be parsed."""

    def __init__(self, path: Union[str, Path, None], reason: str):
        self.path = Path(path) if path is not None else None
        self.reason = reason
        super().__init__(f"Malformed snapshot record {self.path}: {reason}")


class DanglingAncestry(SnapshotError):
    """A parent reference does not resolve to a live snapshot of the machine."""

    def __init__(self, message: str, parent_index: Optional[int] = None):
        self.parent_index = parent_index
        super().__init__(message)


class SnapshotStateError(SnapshotError):
    """The operation is not valid in the snapshot's current lifecycle state."""


class SnapshotNotFound(SnapshotError):
    """No snapshot matches the requested name or index."""


class SnapshotNameTaken(SnapshotError):
    """A snapshot with the requested name already exists on the machine."""
