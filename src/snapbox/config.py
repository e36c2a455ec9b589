"""
Settings for the snapshot engine, from YAML and the environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .paths import default_data_dir

ENV_QEMU_IMG = "SNAPBOX_QEMU_IMG"
ENV_TIMEOUT = "SNAPBOX_TIMEOUT"
ENV_DATA_DIR = "SNAPBOX_DATA_DIR"


class SnapshotSettings(BaseModel):
    """Where snapshots live and how qemu-img is invoked."""

    qemu_img: str = Field(default="qemu-img", description="disk-image utility executable")
    timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Time bound for each qemu-img run"
    )
    data_dir: Path = Field(default_factory=default_data_dir, description="Snapshot store root")

    @field_validator("qemu_img")
    @classmethod
    def qemu_img_must_be_set(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("qemu_img cannot be empty")
        return v.strip()

    @field_validator("data_dir")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @classmethod
    def load(cls, path: Path) -> "SnapshotSettings":
        """Load settings from a YAML file."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        return cls.model_validate(data)

    @classmethod
    def from_env(cls, path: Optional[Path] = None) -> "SnapshotSettings":
        """Settings from ``path`` (if given) overridden by SNAPBOX_* variables."""
        data: Dict[str, Any] = {}
        if path is not None:
            data = cls.load(path).model_dump()

        if os.getenv(ENV_QEMU_IMG):
            data["qemu_img"] = os.environ[ENV_QEMU_IMG]
        if os.getenv(ENV_TIMEOUT):
            data["timeout_seconds"] = os.environ[ENV_TIMEOUT]
        if os.getenv(ENV_DATA_DIR):
            data["data_dir"] = os.environ[ENV_DATA_DIR]

        return cls.model_validate(data)

    def save(self, path: Path) -> None:
        """Save settings to a YAML file."""
        data = self.model_dump(mode="json", exclude_none=True)
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
