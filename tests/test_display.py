"""Tests for display formatting helpers."""

import time

import pytest

from kvstash.display import (
    format_duration,
    format_expiration,
    format_filesize,
    format_usage,
)


class TestFormatFilesize:
    """Test human-readable file sizes."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1024, "1.0 KB"),
            (1536, "1.5 KB"),
            (64 * 1024 * 1024, "64.0 MB"),
            (3 * 1024**4, "3.0 TB"),
        ],
    )
    def test_format_filesize(self, size, expected):
        assert format_filesize(size) == expected

    def test_format_usage(self):
        assert format_usage(512, 1024) == "512 B of 1.0 KB (50%)"
        assert format_usage(0, 64 * 1024 * 1024) == "0 B of 64.0 MB (0%)"


class TestFormatExpiration:
    """Test expiration rendering."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0s"), (45, "45s"), (120, "2m"), (3725, "1h 2m"), (90000, "1d 1h")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_never(self):
        assert format_expiration(None) == "never"

    def test_expired(self):
        now = time.time()
        assert format_expiration(now - 5, now=now).startswith("expired at ")

    def test_future(self):
        now = time.time()
        assert format_expiration(now + 300, now=now).endswith("(in 5m)")
