"""
Pytest fixtures and configuration for SnapBox tests.
"""
from pathlib import Path
from typing import Dict, List, Set
from unittest.mock import MagicMock, patch

import pytest

from snapbox.backends.qemu_img import QemuImg
from snapbox.interfaces.machine import VirtualMachine, VirtualMachineDescription
from snapbox.interfaces.process import ProcessResult, ProcessRunner
from snapbox.models import MountType, SnapshotSpecs, VMMount, VMState
from snapbox.snapshots.base import BaseSnapshot

DATA_DIR = Path(__file__).parent / "data"
IMAGE_PATH = "raniunotuiroleh"


def make_list_output(*tags: str) -> str:
    """Render `qemu-img snapshot -l` output holding ``tags``."""
    rows = [
        "Snapshot list:",
        "ID        TAG               VM SIZE                DATE     VM CLOCK     ICOUNT",
    ]
    for i, tag in enumerate(tags, 1):
        rows.append(
            f"{i}         {tag:<17} 0 B 2024-01-01 10:00:00 00:00:00.000          0"
        )
    return "\n".join(rows) + "\n"


class FakeQemuImg(ProcessRunner):
    """Emulates `qemu-img snapshot` against an in-memory set of tags."""

    def __init__(self):
        self.tags: Set[str] = set()
        self.calls: List[List[str]] = []
        self.failures: Dict[str, ProcessResult] = {}

    def fail(self, flag: str, returncode: int = 1, stderr: str = "qemu-img: error") -> None:
        self.failures[flag] = ProcessResult(returncode=returncode, stderr=stderr)

    def run(self, command, timeout=None, cwd=None, env=None) -> ProcessResult:
        self.calls.append(list(command))
        flag = command[2]
        if flag in self.failures:
            return self.failures[flag]
        if flag == "-l":
            return ProcessResult(returncode=0, stdout=make_list_output(*sorted(self.tags)))
        tag = command[3]
        if flag == "-c":
            self.tags.add(tag)
        elif flag == "-d":
            self.tags.discard(tag)
        return ProcessResult(returncode=0)

    def mutating_calls(self) -> List[List[str]]:
        return [c for c in self.calls if c[2] != "-l"]


@pytest.fixture
def list_output():
    return make_list_output


@pytest.fixture
def data_path():
    """Path of a file under tests/data."""
    def _path(name: str) -> Path:
        return DATA_DIR / name
    return _path


@pytest.fixture
def runner():
    """Process runner mock that reports success with empty output."""
    mock = MagicMock(spec=ProcessRunner)
    mock.run.return_value = ProcessResult(returncode=0, stdout="", stderr="")
    return mock


@pytest.fixture
def qemu_img(runner):
    return QemuImg(runner)


@pytest.fixture
def fake_qemu_img():
    return FakeQemuImg()


@pytest.fixture
def desc():
    return VirtualMachineDescription(vm_name="qemu-vm", image_path=IMAGE_PATH)


@pytest.fixture
def vm():
    """Virtual machine accessor mock with no snapshots taken yet."""
    mock = MagicMock(spec=VirtualMachine)
    mock.vm_name = "qemu-vm"
    mock.get_snapshot_count.return_value = 0
    return mock


@pytest.fixture
def make_parent(vm):
    """Register a captured parent snapshot mock on ``vm`` at ``index``."""
    def _make(index: int = 2, name: str = "parent") -> MagicMock:
        parent = MagicMock(spec=BaseSnapshot)
        parent.index = index
        parent.name = name
        vm.get_snapshot.return_value = parent
        return parent
    return _make


@pytest.fixture
def specs():
    return SnapshotSpecs(
        num_cores=3,
        mem_size="1.23G",
        disk_space="3.21M",
        mac_address="mac",
        state=VMState.OFF,
        mounts={
            "asdf": VMMount(
                source="fdsa", target="/mnt/asdf", tag="asdf", mount_type=MountType.CLASSIC
            )
        },
        metadata={"meta": "data"},
    )


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing without actual command execution."""
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        yield mock_run
