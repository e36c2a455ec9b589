"""Concrete implementations of the engine's interfaces."""

from .qemu_img import QemuImg, snapshot_tag
from .subprocess_runner import SubprocessRunner

__all__ = ["QemuImg", "SubprocessRunner", "snapshot_tag"]
