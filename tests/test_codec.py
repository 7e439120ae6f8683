from __future__ import annotations

import io

import pytest

from pymapstore.codec import decode_records, encode_records
from pymapstore.exceptions import InvalidFormatError, SourceIOError


class _BrokenStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def readinto(self, _buffer: bytearray) -> int:  # type: ignore[override]
        raise ConnectionResetError("peer went away")


def test_decode_two_column_records() -> None:
    pairs = decode_records(b"ABC123,alice\nXYZ789,bob\n")
    assert pairs == [("ABC123", "alice"), ("XYZ789", "bob")]


def test_decode_accepts_binary_stream_and_str() -> None:
    assert decode_records(io.BytesIO(b"A,1\n")) == [("A", "1")]
    assert decode_records("A,1\r\nB,2") == [("A", "1"), ("B", "2")]


def test_decode_handles_quoted_delimiters_and_quotes() -> None:
    pairs = decode_records(b'K1,"Smith, Jane"\nK2,"say ""hi"""\n')
    assert pairs == [("K1", "Smith, Jane"), ("K2", 'say "hi"')]


def test_decode_skips_blank_lines_and_bom() -> None:
    pairs = decode_records("\ufeffA,1\n\n\nB,2\n".encode())
    assert pairs == [("A", "1"), ("B", "2")]


def test_decode_empty_input_is_empty_table() -> None:
    assert decode_records(b"") == []


@pytest.mark.parametrize(
    "payload",
    [
        b"ABC123\n",
        b"ABC123,alice,extra\n",
        b"A,1\nB,2,3\n",
        b'A,"unterminated\n',
        b'A,"x"y\n',
    ],
)
def test_decode_rejects_malformed_records(payload: bytes) -> None:
    with pytest.raises(InvalidFormatError):
        decode_records(payload)


def test_decode_reports_offending_line() -> None:
    with pytest.raises(InvalidFormatError) as excinfo:
        decode_records(b"A,1\nB,2\nC\n")
    assert excinfo.value.line == 3


def test_decode_rejects_non_utf8() -> None:
    with pytest.raises(InvalidFormatError):
        decode_records(b"A,\xff\xfe\n")


def test_decode_read_failure_is_io_error() -> None:
    with pytest.raises(SourceIOError):
        decode_records(io.BufferedReader(_BrokenStream()))


def test_encode_then_decode_preserves_pairs() -> None:
    pairs = {
        "ABC123": "alice",
        "with,comma": "value, also with comma",
        "Q1": 'quote "inside"',
        "NL": "line\nbreak",
        "": "empty key",
    }
    decoded = decode_records(encode_records(pairs.items()))
    assert dict(decoded) == pairs
