"""Snapshot engine for SnapBox machines."""

from .base import BaseSnapshot
from .manager import SnapshotManager
from .qemu import QemuSnapshot

__all__ = [
    "BaseSnapshot",
    "QemuSnapshot",
    "SnapshotManager",
]
