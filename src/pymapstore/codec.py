"""Two-column CSV record codec.

One record per line, ``key,value``, standard double-quote quoting for values
that contain commas, quotes or line breaks. No header row. Blank lines are
skipped.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from typing import IO

from pymapstore.exceptions import InvalidFormatError, SourceIOError

RecordSource = bytes | bytearray | str | IO[bytes] | IO[str]


def _read_text(source: RecordSource) -> str:
    if isinstance(source, str):
        return source
    if isinstance(source, (bytes, bytearray)):
        raw: bytes | str = bytes(source)
    else:
        try:
            raw = source.read()
        except OSError as exc:
            raise SourceIOError(f"Failed to read mapping data: {exc}") from exc
    if isinstance(raw, str):
        return raw
    try:
        # utf-8-sig drops a leading BOM written by spreadsheet exports.
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidFormatError(f"Mapping data is not valid UTF-8: {exc}") from exc


def decode_records(source: RecordSource) -> list[tuple[str, str]]:
    """Parse *source* into ``(key, value)`` pairs.

    The source is consumed completely before parsing, so a rejected payload
    never leaves unread data behind and nothing from it is returned.

    Raises
    ------
    InvalidFormatError
        A record does not have exactly two fields, quoting is malformed,
        or the bytes are not UTF-8.
    SourceIOError
        Reading the underlying stream failed.
    """
    text = _read_text(source)
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    pairs: list[tuple[str, str]] = []
    try:
        for record in reader:
            if not record:
                continue
            if len(record) != 2:
                raise InvalidFormatError(
                    f"Invalid CSV data: expected 2 fields on line {reader.line_num}, got {len(record)}",
                    line=reader.line_num,
                )
            pairs.append((record[0], record[1]))
    except csv.Error as exc:
        raise InvalidFormatError(
            f"Invalid CSV data on line {reader.line_num}: {exc}",
            line=reader.line_num,
        ) from exc
    return pairs


def encode_records(pairs: Iterable[tuple[str, str]]) -> bytes:
    """Serialize pairs into the format :func:`decode_records` reads."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    for key, value in pairs:
        writer.writerow((key, value))
    return buffer.getvalue().encode("utf-8")
