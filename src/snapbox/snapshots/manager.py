#!/usr/bin/env python3
"""Snapshot registry for one machine."""

import threading
from pathlib import Path
from typing import Dict, List, Optional, Type

import structlog

from ..backends.qemu_img import QemuImg
from ..backends.subprocess_runner import SubprocessRunner
from ..config import SnapshotSettings
from ..errors import (
    MalformedRecord,
    MissingSnapshotTag,
    PreconditionViolation,
    SnapshotNameTaken,
    SnapshotNotFound,
)
from ..interfaces.machine import VirtualMachine, VirtualMachineDescription
from ..interfaces.process import ProcessRunner
from ..models import SnapshotSpecs, VMState
from ..paths import RECORD_SUFFIX, count_file, head_file, index_from_record_path, snapshots_dir
from .base import BaseSnapshot
from .qemu import QemuSnapshot

log = structlog.get_logger(__name__)

RESTORABLE_STATES = (VMState.OFF, VMState.STOPPED)


class SnapshotManager(VirtualMachine):
    """Own the snapshot chain of one machine.

    Keeps the snapshot table, the never-decreasing snapshot count and the
    head (the snapshot the machine currently descends from), and persists
    all three under ``storage_dir``. Mutating calls are serialized by a
    per-machine lock, since qemu-img must not modify one image concurrently.
    """

    def __init__(
        self,
        desc: VirtualMachineDescription,
        storage_dir: Optional[Path] = None,
        runner: Optional[ProcessRunner] = None,
        settings: Optional[SnapshotSettings] = None,
        snapshot_cls: Type[QemuSnapshot] = QemuSnapshot,
    ):
        self.settings = settings or SnapshotSettings.from_env()
        self.desc = desc
        self.storage_dir = (
            Path(storage_dir)
            if storage_dir
            else snapshots_dir(desc.vm_name, self.settings.data_dir)
        )
        self.qemu_img = QemuImg(
            runner or SubprocessRunner(),
            binary=self.settings.qemu_img,
            timeout=self.settings.timeout_seconds,
        )
        self.snapshot_cls = snapshot_cls

        self._snapshots: Dict[int, BaseSnapshot] = {}
        self._count = 0
        self._head: Optional[BaseSnapshot] = None
        self._lock = threading.RLock()

    # ── VirtualMachine ───────────────────────────────────────────────────────

    @property
    def vm_name(self) -> str:
        return self.desc.vm_name

    def get_snapshot_count(self) -> int:
        return self._count

    def get_snapshot(self, index: int) -> BaseSnapshot:
        try:
            return self._snapshots[index]
        except KeyError:
            raise SnapshotNotFound(
                f"No snapshot with index {index} for VM '{self.vm_name}'"
            ) from None

    # ── queries ──────────────────────────────────────────────────────────────

    @property
    def head(self) -> Optional[BaseSnapshot]:
        return self._head

    def get_snapshot_by_name(self, name: str) -> BaseSnapshot:
        for snapshot in self._snapshots.values():
            if snapshot.name == name:
                return snapshot
        raise SnapshotNotFound(f"Snapshot '{name}' not found for VM '{self.vm_name}'")

    def list_snapshots(self) -> List[BaseSnapshot]:
        """Live snapshots, oldest first."""
        return [self._snapshots[i] for i in sorted(self._snapshots)]

    def generate_snapshot_name(self) -> str:
        return f"snapshot{self._count + 1}"

    # ── loading ──────────────────────────────────────────────────────────────

    def load(self) -> List[BaseSnapshot]:
        """Hydrate every persisted record, parents before children."""
        with self._lock:
            self._snapshots.clear()
            self._count = 0
            self._head = None

            if not self.storage_dir.exists():
                return []

            records = []
            for path in self.storage_dir.glob(f"*{RECORD_SUFFIX}"):
                index = index_from_record_path(path)
                if index is None:
                    log.warning("snapshot.record_ignored", vm=self.vm_name, path=str(path))
                    continue
                records.append((index, path))

            for _, path in sorted(records):
                snapshot = self.snapshot_cls.from_file(
                    path, self, self.desc, qemu_img=self.qemu_img
                )
                self._snapshots[snapshot.index] = snapshot

            highest = max(self._snapshots, default=0)
            self._count = max(self._read_counter(count_file(self.storage_dir)), highest)

            head_index = self._read_counter(head_file(self.storage_dir))
            if head_index:
                try:
                    self._head = self.get_snapshot(head_index)
                except SnapshotNotFound as e:
                    raise MalformedRecord(head_file(self.storage_dir), str(e)) from e

            log.info(
                "snapshot.loaded",
                vm=self.vm_name,
                snapshots=len(self._snapshots),
                count=self._count,
            )
            return self.list_snapshots()

    # ── mutations ────────────────────────────────────────────────────────────

    def take_snapshot(
        self,
        specs: SnapshotSpecs,
        name: Optional[str] = None,
        comment: str = "",
    ) -> BaseSnapshot:
        """Capture a new snapshot descending from the current head.

        Args:
            specs: Machine configuration at this moment
            name: Snapshot name (default: ``snapshotN``)
            comment: Free-form comment
        """
        with self._lock:
            name = name or self.generate_snapshot_name()
            if any(s.name == name for s in self._snapshots.values()):
                raise SnapshotNameTaken(f"Snapshot '{name}' already exists for VM '{self.vm_name}'")

            snapshot = self.snapshot_cls(
                name, comment, self._head, specs, self, self.desc, qemu_img=self.qemu_img
            )
            snapshot.capture()

            self._count = snapshot.index
            self._snapshots[snapshot.index] = snapshot
            self._head = snapshot

            self.storage_dir.mkdir(parents=True, exist_ok=True)
            snapshot.persist(self.storage_dir)
            self._persist_counters()
            return snapshot

    def restore_snapshot(self, name: str, current_state: VMState = VMState.OFF) -> BaseSnapshot:
        """Apply snapshot ``name``; the machine must be stopped."""
        with self._lock:
            if current_state not in RESTORABLE_STATES:
                raise PreconditionViolation(
                    f"VM '{self.vm_name}' is {current_state.value}. Stop it before restoring "
                    f"snapshot '{name}'"
                )
            snapshot = self.get_snapshot_by_name(name)
            snapshot.apply()

            self._head = snapshot
            self._persist_counters()
            return snapshot

    def delete_snapshot(self, name: str) -> BaseSnapshot:
        """Erase snapshot ``name`` and hand its children over to its parent."""
        with self._lock:
            snapshot = self.get_snapshot_by_name(name)
            try:
                snapshot.erase()
            except MissingSnapshotTag as e:
                log.warning(
                    "snapshot.tag_already_gone", vm=self.vm_name, snapshot=name, error=str(e)
                )

            parent = snapshot.parent
            for child in self._snapshots.values():
                if child.parent is snapshot:
                    child.set_parent(parent)
                    child.persist(self.storage_dir)

            del self._snapshots[snapshot.index]
            record = snapshot.record_path(self.storage_dir)
            if record.exists():
                record.unlink()

            if self._head is snapshot:
                self._head = parent
            self._persist_counters()
            return snapshot

    def rename_snapshot(self, name: str, new_name: str) -> BaseSnapshot:
        with self._lock:
            snapshot = self.get_snapshot_by_name(name)
            if new_name != name and any(s.name == new_name for s in self._snapshots.values()):
                raise SnapshotNameTaken(
                    f"Snapshot '{new_name}' already exists for VM '{self.vm_name}'"
                )
            snapshot.set_name(new_name)
            snapshot.persist(self.storage_dir)
            return snapshot

    # ── counters ─────────────────────────────────────────────────────────────

    def _persist_counters(self) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        count_file(self.storage_dir).write_text(str(self._count))
        head_file(self.storage_dir).write_text(str(self._head.index if self._head else 0))

    @staticmethod
    def _read_counter(path: Path) -> int:
        if not path.exists():
            return 0
        text = path.read_text().strip()
        try:
            value = int(text)
        except ValueError:
            raise MalformedRecord(path, f"expected an integer, got {text!r}") from None
        if value < 0:
            raise MalformedRecord(path, f"expected a non-negative integer, got {value}")
        return value
