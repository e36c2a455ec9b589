"""Exact byte sizes parsed from human strings such as ``"1.23G"``."""

import re
from functools import total_ordering
from typing import Any, Union

from pydantic_core import core_schema

KIBIBYTE = 1024
MEBIBYTE = KIBIBYTE * 1024
GIBIBYTE = MEBIBYTE * 1024

_UNITS = {"": 1, "K": KIBIBYTE, "M": MEBIBYTE, "G": GIBIBYTE}

# 10, 10B, 1.5K, 1.5KB, 1.5KiB (any case)
_SIZE_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:([KMG])(?:I?B)?|B)?$", re.IGNORECASE)


class InvalidMemorySizeError(ValueError):
    """Raised when a size string cannot be parsed."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid memory size: {value!r}")


def parse_size(value: str) -> int:
    """Parse a size string into bytes.

    The fractional part is truncated to whole bytes, so ``"1.23G"`` is
    ``1320702443``. Anything that does not match is rejected.
    """
    if not isinstance(value, str):
        raise InvalidMemorySizeError(value)

    match = _SIZE_RE.match(value.strip())
    if not match:
        raise InvalidMemorySizeError(value)

    integer, fraction, unit = match.groups()
    multiplier = _UNITS[(unit or "").upper()]

    size = int(integer) * multiplier
    if fraction:
        size += int(fraction) * multiplier // (10 ** len(fraction))
    return size


@total_ordering
class MemorySize:
    """An immutable amount of memory or disk, stored in bytes."""

    __slots__ = ("_bytes",)

    def __init__(self, value: Union[str, int, "MemorySize"] = 0):
        if isinstance(value, MemorySize):
            size = value.in_bytes()
        elif isinstance(value, bool):
            raise InvalidMemorySizeError(value)
        elif isinstance(value, int):
            if value < 0:
                raise InvalidMemorySizeError(value)
            size = value
        else:
            size = parse_size(value)
        object.__setattr__(self, "_bytes", size)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("MemorySize is immutable")

    def in_bytes(self) -> int:
        return self._bytes

    def in_kilobytes(self) -> int:
        return self._bytes // KIBIBYTE

    def in_megabytes(self) -> int:
        return self._bytes // MEBIBYTE

    def in_gigabytes(self) -> int:
        return self._bytes // GIBIBYTE

    def human_readable(self) -> str:
        """Render with at most two decimals, e.g. ``1.23GiB``."""
        for unit, size in (("GiB", GIBIBYTE), ("MiB", MEBIBYTE), ("KiB", KIBIBYTE)):
            if self._bytes >= size:
                text = f"{self._bytes / size:.2f}".rstrip("0").rstrip(".")
                return f"{text}{unit}"
        return f"{self._bytes}B"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MemorySize):
            return self._bytes == other._bytes
        return NotImplemented

    def __lt__(self, other: "MemorySize") -> bool:
        if isinstance(other, MemorySize):
            return self._bytes < other._bytes
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._bytes)

    def __reduce__(self):
        return (MemorySize, (self._bytes,))

    def __str__(self) -> str:
        return str(self._bytes)

    def __repr__(self) -> str:
        return f"MemorySize({self.human_readable()!r})"

    @classmethod
    def _validate(cls, value: Any) -> "MemorySize":
        return value if isinstance(value, cls) else cls(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
