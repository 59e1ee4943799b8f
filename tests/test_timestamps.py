from pathlib import Path

import pytest

from capture_queue.errors import MalformedNameError
from capture_queue.timestamps import TIMESTAMP_LENGTH, extract_timestamp, parse_raw_file


def test_extract_timestamp_prefix():
    """Test the fixed-width prefix is returned."""
    assert extract_timestamp("1527256815_150165_3.jp4") == "1527256815_150165"


def test_extract_timestamp_exact_width():
    """Test a name of exactly the timestamp width is accepted."""
    name = "1" * TIMESTAMP_LENGTH
    assert extract_timestamp(name) == name


def test_extract_timestamp_too_short_raises():
    """Test short names are rejected rather than truncated."""
    with pytest.raises(MalformedNameError):
        extract_timestamp("1527256815_1501")


def test_malformed_name_is_value_error():
    """Test MalformedNameError can be caught as ValueError."""
    with pytest.raises(ValueError):
        extract_timestamp("short.jp4")


def test_parse_raw_file_unit_index():
    """Test unit index is parsed after the timestamp."""
    raw = parse_raw_file(Path("/data/src/1527256815_150165_12.jp4"))
    assert raw.timestamp == "1527256815_150165"
    assert raw.unit == 12
    assert raw.path == Path("/data/src/1527256815_150165_12.jp4")


def test_parse_raw_file_missing_unit_raises():
    """Test a name without a unit index is malformed."""
    with pytest.raises(MalformedNameError):
        parse_raw_file("1527256815_150165.jp4")


def test_raw_file_is_immutable():
    """Test RawFile cannot be modified after discovery."""
    raw = parse_raw_file("1527256815_150165_0.jp4")
    with pytest.raises(Exception):
        raw.unit = 5
