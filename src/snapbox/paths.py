"""
Canonical locations of snapshot records and per-machine counters.

Every module that reads or writes the snapshot store should import from here
instead of computing paths inline.
"""

import os
import re
from pathlib import Path
from typing import Optional

RECORD_SUFFIX = ".snapshot.json"
COUNT_FILENAME = "snapshot-count"
HEAD_FILENAME = "snapshot-head"

_RECORD_NAME_RE = re.compile(r"^(\d+)" + re.escape(RECORD_SUFFIX) + "$")


# ── directory roots ──────────────────────────────────────────────────────────

def default_data_dir() -> Path:
    """~/.local/share/snapbox unless SNAPBOX_DATA_DIR says otherwise."""
    return Path(os.getenv("SNAPBOX_DATA_DIR", str(Path.home() / ".local/share/snapbox")))


def snapshots_dir(vm_name: str, data_dir: Optional[Path] = None) -> Path:
    """Directory holding one machine's snapshot records."""
    return (data_dir or default_data_dir()) / vm_name / "snapshots"


# ── files inside a snapshots directory ───────────────────────────────────────

def record_path(directory: Path, index: int) -> Path:
    """``0003.snapshot.json`` for index 3."""
    return directory / f"{index:04d}{RECORD_SUFFIX}"


def index_from_record_path(path: Path) -> Optional[int]:
    """Inverse of :func:`record_path`; None for names it did not produce."""
    match = _RECORD_NAME_RE.match(Path(path).name)
    return int(match.group(1)) if match else None


def count_file(directory: Path) -> Path:
    return directory / COUNT_FILENAME


def head_file(directory: Path) -> Path:
    return directory / HEAD_FILENAME
