"""QEMU snapshots: internal qcow2 snapshots tagged by ancestry position."""

from datetime import datetime
from typing import Optional

import structlog

from ..backends.qemu_img import QemuImg, snapshot_tag
from ..backends.subprocess_runner import SubprocessRunner
from ..errors import MissingSnapshotTag, TagCollision
from ..interfaces.machine import VirtualMachine, VirtualMachineDescription
from ..models import SnapshotSpecs
from .base import BaseSnapshot

log = structlog.get_logger(__name__)


class QemuSnapshot(BaseSnapshot):
    """Snapshot stored inside the machine's own qcow2 image.

    Every operation lists the image's snapshots first; the listing doubles
    as a health check of the image before it is modified.
    """

    def __init__(
        self,
        name: str,
        comment: str,
        parent: Optional[BaseSnapshot],
        specs: SnapshotSpecs,
        vm: VirtualMachine,
        desc: VirtualMachineDescription,
        *,
        index: Optional[int] = None,
        creation_timestamp: Optional[datetime] = None,
        qemu_img: Optional[QemuImg] = None,
    ):
        super().__init__(
            name,
            comment,
            parent,
            specs,
            vm,
            desc,
            index=index,
            creation_timestamp=creation_timestamp,
        )
        self._qemu_img = qemu_img or QemuImg(SubprocessRunner())

    @property
    def image_path(self):
        return self._desc.image_path

    def _derive_tag(self, index: int) -> str:
        return snapshot_tag(index)

    def _capture_impl(self, index: int) -> None:
        tag = self._derive_tag(index)
        # Creating a duplicate tag would succeed, but the snapshot could then
        # no longer be told apart from the existing one.
        if self._qemu_img.has_snapshot(self.image_path, tag):
            raise TagCollision(tag, self.image_path)
        self._qemu_img.create_snapshot(self.image_path, tag)

    def _apply_impl(self) -> None:
        tag = self.tag
        if not self._qemu_img.has_snapshot(self.image_path, tag):
            raise MissingSnapshotTag("apply", tag, self.image_path)
        self._qemu_img.restore_snapshot(self.image_path, tag)

        self._desc.num_cores = self.num_cores
        self._desc.mem_size = self.mem_size
        self._desc.disk_space = self.disk_space
        log.debug("snapshot.desc_restored", vm=self.vm_name, tag=tag, num_cores=self.num_cores)

    def _erase_impl(self) -> None:
        tag = self.tag
        if not self._qemu_img.has_snapshot(self.image_path, tag):
            raise MissingSnapshotTag("erase", tag, self.image_path)
        self._qemu_img.delete_snapshot(self.image_path, tag)
