import pytest

from qbittui.logger import is_valid_timezone, resolve_timezone
from qbittui.utils import format_eta, format_size, format_speed, normalize_url, truncate


class TestNormalizeUrl:
    def test_strips_trailing_slash(self):
        assert normalize_url("http://nas:8080/") == "http://nas:8080"

    def test_bare_host_defaults_to_http(self):
        assert normalize_url(" nas:8080 ") == "http://nas:8080"

    @pytest.mark.parametrize("url", ["", "ftp://nas", "http://", "http://nas:port"])
    def test_invalid(self, url):
        with pytest.raises(ValueError):
            normalize_url(url)


class TestFormatting:
    def test_format_size(self):
        assert format_size(0) == "0 Bytes"
        assert format_size(1536) == "1.5 KiB"
        assert format_size(None) == "N/A"

    def test_format_speed(self):
        assert format_speed(0) == ""
        assert format_speed(2048) == "2.0 KiB/s"

    @pytest.mark.parametrize("eta,state,expected", [
        (100, "uploading", "-"),
        (8640000, "downloading", "∞"),
        (None, "downloading", "∞"),
        (0, "downloading", "0s"),
        (45, "stalledDL", "45s"),
        (600, "queuedDL", "10m"),
        (3 * 3600 + 5 * 60, "downloading", "3h5m"),
        (2 * 86400 + 4 * 3600, "forcedDL", "2d4h"),
    ])
    def test_format_eta(self, eta, state, expected):
        assert format_eta(eta, state) == expected

    def test_truncate(self):
        assert truncate("ubuntu-24.04.iso", 10) == "ubuntu-..."
        assert truncate("short", 10) == "short"
        assert truncate("abcdef", 2) == "ab"
        assert truncate("abc", 0) == ""


def test_timezones():
    assert not is_valid_timezone("Mars/Olympus")
    assert resolve_timezone("Mars/Olympus").utcoffset(None).total_seconds() == 0
