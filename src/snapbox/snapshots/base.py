"""Identity, ancestry and lifecycle shared by every snapshot backend."""

import copy
import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
from pydantic import ValidationError

from ..errors import (
    DanglingAncestry,
    MalformedRecord,
    MissingSnapshotTag,
    SnapshotNotFound,
    SnapshotStateError,
)
from ..interfaces.machine import VirtualMachine, VirtualMachineDescription
from ..logging import log_operation
from ..memory_size import MemorySize
from ..models import SnapshotRecord, SnapshotSpecs, VMMount, VMState
from ..paths import index_from_record_path, record_path

log = structlog.get_logger(__name__)

# What a generic accessor may raise for an index it does not know
_LOOKUP_ERRORS = (SnapshotNotFound, KeyError, IndexError)


class BaseSnapshot(ABC):
    """A named point-in-time state of a machine's disk and configuration.

    A snapshot is built either fresh, from the machine's live specs, or by
    hydrating a persisted record with :meth:`from_file`. Its ancestry
    position (and hence its backend tag) is assigned by :meth:`capture` and
    never changes afterwards. Backends implement the three ``_*_impl`` hooks.
    """

    def __init__(
        self,
        name: str,
        comment: str,
        parent: Optional["BaseSnapshot"],
        specs: SnapshotSpecs,
        vm: VirtualMachine,
        desc: VirtualMachineDescription,
        *,
        index: Optional[int] = None,
        creation_timestamp: Optional[datetime] = None,
    ):
        self._lock = threading.RLock()
        self._vm = vm
        self._desc = desc
        self._name = self._checked_name(name)
        self._comment = comment or ""
        self._specs = specs.model_copy(deep=True)
        self._index = index
        self._creation_timestamp = creation_timestamp
        self._erased = False
        self._parent = self._checked_parent(parent)

    # ── hydration ────────────────────────────────────────────────────────────

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        vm: VirtualMachine,
        desc: VirtualMachineDescription,
        **kwargs: Any,
    ) -> "BaseSnapshot":
        """Rebuild a snapshot from its persisted record.

        Args:
            path: Record file, usually ``NNNN.snapshot.json``
            vm: Machine used to resolve the parent by index
            desc: Description of the machine the snapshot belongs to
            **kwargs: Extra backend-specific constructor arguments

        Raises:
            MalformedRecord: unreadable file, missing or ill-shaped fields
            DanglingAncestry: ``parentIndex`` does not resolve through ``vm``
        """
        path = Path(path)
        record = cls._read_record(path)

        index = record.index or index_from_record_path(path)
        if index is None:
            raise MalformedRecord(path, "no snapshot index in the record or its file name")

        parent = None
        if record.parent_index is not None:
            if record.parent_index >= index:
                raise DanglingAncestry(
                    f"Snapshot {record.name!r} ({index}) cannot descend from later "
                    f"snapshot {record.parent_index}",
                    parent_index=record.parent_index,
                )
            missing = DanglingAncestry(
                f"Parent {record.parent_index} of snapshot {record.name!r} does not "
                f"exist on {vm.vm_name}",
                parent_index=record.parent_index,
            )
            try:
                parent = vm.get_snapshot(record.parent_index)
            except _LOOKUP_ERRORS as e:
                raise missing from e
            if parent is None:
                raise missing

        try:
            return cls(
                record.name,
                record.comment,
                parent,
                record.to_specs(),
                vm,
                desc,
                index=index,
                creation_timestamp=record.creation_timestamp,
                **kwargs,
            )
        except ValueError as e:
            raise MalformedRecord(path, str(e)) from e

    @classmethod
    def _read_record(cls, path: Path) -> SnapshotRecord:
        try:
            data = json.loads(path.read_text())
        except OSError as e:
            raise MalformedRecord(path, f"cannot read record: {e}") from e
        except ValueError as e:
            raise MalformedRecord(path, f"invalid JSON: {e}") from e

        try:
            return SnapshotRecord.model_validate(data)
        except ValidationError as e:
            raise MalformedRecord(path, str(e)) from e

    # ── read-only accessors ──────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def comment(self) -> str:
        return self._comment

    @property
    def parent(self) -> Optional["BaseSnapshot"]:
        return self._parent

    @property
    def parent_name(self) -> str:
        return self._parent.name if self._parent else ""

    @property
    def parent_index(self) -> Optional[int]:
        return self._parent.index if self._parent else None

    @property
    def specs(self) -> SnapshotSpecs:
        return self._specs.model_copy(deep=True)

    @property
    def num_cores(self) -> int:
        return self._specs.num_cores

    @property
    def mem_size(self) -> MemorySize:
        return self._specs.mem_size

    @property
    def disk_space(self) -> MemorySize:
        return self._specs.disk_space

    @property
    def state(self) -> VMState:
        return self._specs.state

    @property
    def mounts(self) -> Dict[str, VMMount]:
        return dict(self._specs.mounts)

    @property
    def metadata(self) -> Dict[str, Any]:
        return copy.deepcopy(self._specs.metadata)

    @property
    def index(self) -> Optional[int]:
        """Ancestry position, None until captured."""
        return self._index

    @property
    def tag(self) -> Optional[str]:
        return self._derive_tag(self._index) if self._index is not None else None

    @property
    def creation_timestamp(self) -> Optional[datetime]:
        return self._creation_timestamp

    @property
    def is_captured(self) -> bool:
        return self._index is not None

    @property
    def is_erased(self) -> bool:
        return self._erased

    @property
    def vm_name(self) -> str:
        return self._vm.vm_name

    # ── guarded setters ──────────────────────────────────────────────────────

    def set_name(self, name: str) -> None:
        with self._lock:
            self._name = self._checked_name(name)

    def set_comment(self, comment: str) -> None:
        with self._lock:
            self._comment = comment or ""

    def set_parent(self, parent: Optional["BaseSnapshot"]) -> None:
        with self._lock:
            self._parent = self._checked_parent(parent)

    # ── lifecycle ────────────────────────────────────────────────────────────

    def capture(self) -> None:
        """Create the backend snapshot at the machine's next ancestry position."""
        with self._lock:
            if self._index is not None:
                raise SnapshotStateError(
                    f"Snapshot {self._name!r} was already captured as {self.tag}"
                )
            with log_operation(log, "snapshot.capture", vm=self.vm_name, snapshot=self._name):
                index = self._vm.get_snapshot_count() + 1
                self._capture_impl(index)
                self._index = index
                self._creation_timestamp = datetime.now()

    def apply(self) -> None:
        """Bring the machine's disk back to this snapshot."""
        with self._lock:
            self._require_live("apply")
            with log_operation(
                log, "snapshot.apply", vm=self.vm_name, snapshot=self._name, tag=self.tag
            ):
                self._apply_impl()

    def erase(self) -> None:
        """Permanently remove the backend snapshot. Children are left alone."""
        with self._lock:
            self._require_live("erase")
            with log_operation(
                log, "snapshot.erase", vm=self.vm_name, snapshot=self._name, tag=self.tag
            ):
                try:
                    self._erase_impl()
                except MissingSnapshotTag:
                    self._erased = True
                    raise
                self._erased = True

    # ── persistence ──────────────────────────────────────────────────────────

    def to_record(self) -> SnapshotRecord:
        return SnapshotRecord.from_snapshot(self)

    def record_path(self, directory: Path) -> Path:
        if self._index is None:
            raise SnapshotStateError(f"Snapshot {self._name!r} has not been captured")
        return record_path(directory, self._index)

    def persist(self, directory: Path) -> Path:
        """Write this snapshot's record into ``directory`` and return its path."""
        with self._lock:
            self._require_live("persist")
            path = self.record_path(directory)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_text(self.to_record().to_json())
            tmp.replace(path)
            return path

    # ── backend hooks ────────────────────────────────────────────────────────

    @abstractmethod
    def _derive_tag(self, index: int) -> str:
        """Backend identifier of the snapshot at ``index``."""
        pass

    @abstractmethod
    def _capture_impl(self, index: int) -> None:
        """Create the backend snapshot; must leave no trace on failure."""
        pass

    @abstractmethod
    def _apply_impl(self) -> None:
        pass

    @abstractmethod
    def _erase_impl(self) -> None:
        pass

    # ── helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _checked_name(name: str) -> str:
        if not name or not name.strip():
            raise ValueError("Snapshot name cannot be empty")
        return name

    def _checked_parent(self, parent: Optional["BaseSnapshot"]) -> Optional["BaseSnapshot"]:
        # A parent must already be a live snapshot of the same machine, which
        # is what rules out cycles.
        if parent is None:
            return None
        if parent.index is None:
            raise DanglingAncestry(f"Parent snapshot {parent.name!r} has not been captured")
        try:
            found = self._vm.get_snapshot(parent.index)
        except _LOOKUP_ERRORS:
            found = None
        if found is not parent:
            raise DanglingAncestry(
                f"Parent snapshot {parent.name!r} ({parent.index}) is not a snapshot of "
                f"{self._vm.vm_name}",
                parent_index=parent.index,
            )
        return parent

    def _require_live(self, operation: str) -> None:
        if self._index is None:
            raise SnapshotStateError(
                f"Cannot {operation} snapshot {self._name!r}: it has not been captured"
            )
        if self._erased:
            raise SnapshotStateError(
                f"Cannot {operation} snapshot {self._name!r}: it has been erased"
            )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r} index={self._index} vm={self.vm_name!r}>"
