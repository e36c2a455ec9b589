"""Interface to the machine that owns a chain of snapshots."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from ..memory_size import MemorySize

if TYPE_CHECKING:
    from ..snapshots.base import BaseSnapshot


@dataclass
class VirtualMachineDescription:
    """What the engine needs to know about a machine's disk and sizing."""

    vm_name: str
    image_path: Union[str, Path]
    num_cores: int = 1
    mem_size: Optional[MemorySize] = None
    disk_space: Optional[MemorySize] = None

    def __post_init__(self):
        self.image_path = Path(self.image_path)


class VirtualMachine(ABC):
    """Snapshot bookkeeping for one machine.

    Implementations own the monotonically increasing snapshot count, so that
    every tag is derived through a single owner.
    """

    @property
    @abstractmethod
    def vm_name(self) -> str:
        pass

    @abstractmethod
    def get_snapshot_count(self) -> int:
        """Number of snapshots ever taken, including erased ones."""
        pass

    @abstractmethod
    def get_snapshot(self, index: int) -> "BaseSnapshot":
        """Return the live snapshot at ``index``.

        Raises SnapshotNotFound when no live snapshot has that index.
        """
        pass
