"""
Pydantic models for snapshot specs and the persisted snapshot record.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .memory_size import MemorySize

if TYPE_CHECKING:
    from .snapshots.base import BaseSnapshot


class MountType(Enum):
    """How a host directory is exposed to the guest."""

    CLASSIC = "Classic"  # sshfs-style mount driven from the guest
    NATIVE = "Native"  # hypervisor-level share (9p/virtiofs)


class VMState(Enum):
    """Power state of the machine when the snapshot was taken."""

    OFF = "off"
    STOPPED = "stopped"
    STARTING = "starting"
    RESTARTING = "restarting"
    RUNNING = "running"
    DELAYED_SHUTDOWN = "delayed_shutdown"
    SUSPENDING = "suspending"
    SUSPENDED = "suspended"
    UNKNOWN = "unknown"


class VMMount(BaseModel):
    """One entry of the mount table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    source: str = Field(description="Host-side path")
    target: str = Field(default="", description="Guest-side path")
    tag: str = Field(description="Mount identifier, unique within a table")
    mount_type: MountType = Field(default=MountType.CLASSIC)

    @field_validator("source", "tag")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("mount source and tag cannot be empty")
        return v


class SnapshotSpecs(BaseModel):
    """Machine configuration frozen at capture time."""

    model_config = ConfigDict(frozen=True)

    num_cores: int = Field(ge=1, strict=True)
    mem_size: MemorySize
    disk_space: MemorySize
    mac_address: str = ""
    state: VMState = VMState.OFF
    mounts: Dict[str, VMMount] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def mount_tags_must_be_unique(self) -> "SnapshotSpecs":
        seen: Dict[str, str] = {}
        for name, mount in self.mounts.items():
            if mount.tag in seen:
                raise ValueError(
                    f"Mount tag {mount.tag!r} used by both {seen[mount.tag]!r} and {name!r}"
                )
            seen[mount.tag] = name
        return self


class MountRecord(VMMount):
    """A mount table entry as stored in a record, carrying its name."""

    name: str

    def to_mount(self) -> VMMount:
        return VMMount(
            source=self.source, target=self.target, tag=self.tag, mount_type=self.mount_type
        )


class SnapshotRecord(BaseModel):
    """The on-disk form of one snapshot.

    Keys are written in camelCase (``parentIndex``, ``numCores``...);
    snake_case keys are accepted when reading. Unknown top-level keys are
    ignored, while ``metadata`` is kept exactly as found.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    name: str = Field(min_length=1, strict=True)
    comment: str = Field(default="", strict=True)
    parent_index: Optional[int] = Field(default=None, ge=1, strict=True)
    index: Optional[int] = Field(default=None, ge=1, strict=True)
    creation_timestamp: Optional[datetime] = None
    num_cores: int = Field(ge=1, strict=True)
    mem_size: MemorySize
    disk_space: MemorySize
    mac_address: str = ""
    state: VMState
    mounts: List[MountRecord] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("mounts")
    @classmethod
    def mount_names_must_be_unique(cls, v: List[MountRecord]) -> List[MountRecord]:
        names = [m.name for m in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate mount names: {', '.join(duplicates)}")
        return v

    def to_specs(self) -> SnapshotSpecs:
        return SnapshotSpecs(
            num_cores=self.num_cores,
            mem_size=self.mem_size,
            disk_space=self.disk_space,
            mac_address=self.mac_address,
            state=self.state,
            mounts={m.name: m.to_mount() for m in self.mounts},
            metadata=self.metadata,
        )

    @classmethod
    def from_snapshot(cls, snapshot: "BaseSnapshot") -> "SnapshotRecord":
        specs = snapshot.specs
        return cls(
            name=snapshot.name,
            comment=snapshot.comment,
            parent_index=snapshot.parent_index,
            index=snapshot.index,
            creation_timestamp=snapshot.creation_timestamp,
            num_cores=specs.num_cores,
            mem_size=specs.mem_size,
            disk_space=specs.disk_space,
            mac_address=specs.mac_address,
            state=specs.state,
            mounts=[
                MountRecord(name=name, **mount.model_dump())
                for name, mount in sorted(specs.mounts.items())
            ],
            metadata=specs.metadata,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
