"""Interfaces the snapshot engine depends on."""

from .machine import VirtualMachine, VirtualMachineDescription
from .process import ProcessResult, ProcessRunner

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "VirtualMachine",
    "VirtualMachineDescription",
]
