#!/usr/bin/env python3
"""Tests for MemorySize parsing."""

import pytest

from snapbox.memory_size import InvalidMemorySizeError, MemorySize, parse_size


class TestParseSize:
    """Test parsing of human size strings."""

    @pytest.mark.parametrize("text,expected", [
        ("0", 0),
        ("10", 10),
        ("10B", 10),
        ("1024K", 1048576),
        ("3KiB", 3072),
        ("512M", 536870912),
        ("1G", 1073741824),
        ("2gb", 2147483648),
        ("5G", 5368709120),
        ("1.5G", 1610612736),
        ("1.23G", 1320702443),
        ("3.21M", 3365928),
        (" 1K ", 1024),
    ])
    def test_valid_sizes(self, text, expected):
        assert parse_size(text) == expected
        assert MemorySize(text).in_bytes() == expected

    @pytest.mark.parametrize("text", [
        "",
        "abc",
        "G",
        "-1G",
        "1.G",
        "1.5.5M",
        "1T",
        "1 G",
        "1GG",
    ])
    def test_invalid_sizes(self, text):
        with pytest.raises(InvalidMemorySizeError):
            MemorySize(text)

    def test_invalid_size_is_value_error(self):
        with pytest.raises(ValueError, match="Invalid memory size"):
            MemorySize("lots")

    @pytest.mark.parametrize("value", [-1, True, None, 1.5])
    def test_rejects_non_string_garbage(self, value):
        with pytest.raises(InvalidMemorySizeError):
            MemorySize(value)


class TestMemorySize:
    """Test MemorySize behaviour."""

    def test_from_bytes(self):
        assert MemorySize(1073741824) == MemorySize("1G")

    def test_from_memory_size(self):
        size = MemorySize("3M")
        assert MemorySize(size) == size

    def test_unit_conversions(self):
        size = MemorySize("1.5G")
        assert size.in_kilobytes() == 1572864
        assert size.in_megabytes() == 1536
        assert size.in_gigabytes() == 1

    def test_str_is_exact_byte_count(self):
        assert str(MemorySize("1.23G")) == "1320702443"
        assert MemorySize(str(MemorySize("1.23G"))) == MemorySize("1.23G")

    @pytest.mark.parametrize("text,expected", [
        ("512", "512B"),
        ("1K", "1KiB"),
        ("1536K", "1.5MiB"),
        ("1G", "1GiB"),
        ("1.23G", "1.23GiB"),
    ])
    def test_human_readable(self, text, expected):
        assert MemorySize(text).human_readable() == expected

    def test_ordering_and_hashing(self):
        assert MemorySize("1M") < MemorySize("1G")
        assert MemorySize("2G") >= MemorySize("2048M")
        assert len({MemorySize("1K"), MemorySize("1024")}) == 1

    def test_not_equal_to_other_types(self):
        assert MemorySize("1K") != 1024

    def test_immutable(self):
        size = MemorySize("1G")
        with pytest.raises(AttributeError):
            size._bytes = 0
