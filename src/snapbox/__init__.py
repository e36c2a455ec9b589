"""
SnapBox - point-in-time snapshots of QEMU virtual machines.

Capture, restore and erase internal qcow2 snapshots through qemu-img, and
keep each snapshot's identity, ancestry and specs in a JSON record that
survives restarts.
"""

__version__ = "0.1.0"
__author__ = "SnapBox Team"

from snapbox.memory_size import MemorySize
from snapbox.models import MountType, SnapshotRecord, SnapshotSpecs, VMMount, VMState
from snapbox.snapshots import BaseSnapshot, QemuSnapshot, SnapshotManager

__all__ = [
    "BaseSnapshot",
    "MemorySize",
    "MountType",
    "QemuSnapshot",
    "SnapshotManager",
    "SnapshotRecord",
    "SnapshotSpecs",
    "VMMount",
    "VMState",
    "__version__",
]
