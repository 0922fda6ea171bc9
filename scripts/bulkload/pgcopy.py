"""
PostgreSQL binary COPY format encoder and decoder.

Layout of a binary COPY stream:
    header   11-byte signature, int32 flags, int32 extension length
    tuple    int16 field count, then per field int32 length + bytes
             (length -1 means NULL, no bytes follow)
    trailer  int16 -1

All integers are network byte order. Timestamps are int64 microseconds
since 2000-01-01 00:00:00.
"""
import struct
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Iterable, Iterator, List, Sequence, Tuple

SIGNATURE = b"PGCOPY\n\xff\r\n\x00"
HEADER = SIGNATURE + struct.pack("!ii", 0, 0)
TRAILER = struct.pack("!h", -1)
NULL_FIELD = struct.pack("!i", -1)

PG_EPOCH = datetime(2000, 1, 1)
_MICROSECOND = timedelta(microseconds=1)


def _encode_bigint(value: int) -> bytes:
    return struct.pack("!iq", 8, value)


def _encode_integer(value: int) -> bytes:
    return struct.pack("!ii", 4, value)


def _encode_boolean(value: bool) -> bytes:
    return struct.pack("!i?", 1, bool(value))


def _encode_text(value: Any) -> bytes:
    data = str(value).encode("utf-8")
    return struct.pack("!i", len(data)) + data


def _encode_timestamp(value: datetime) -> bytes:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return struct.pack("!iq", 8, (value - PG_EPOCH) // _MICROSECOND)


def _decode_timestamp(data: bytes) -> datetime:
    (micros,) = struct.unpack("!q", data)
    return PG_EPOCH + timedelta(microseconds=micros)


ENCODERS: Dict[str, Callable[[Any], bytes]] = {
    "bigint": _encode_bigint,
    "integer": _encode_integer,
    "boolean": _encode_boolean,
    "text": _encode_text,
    "timestamp": _encode_timestamp,
}

DECODERS: Dict[str, Callable[[bytes], Any]] = {
    "bigint": lambda data: struct.unpack("!q", data)[0],
    "integer": lambda data: struct.unpack("!i", data)[0],
    "boolean": lambda data: data != b"\x00",
    "text": lambda data: data.decode("utf-8"),
    "timestamp": _decode_timestamp,
}


def _check_columns(columns: Sequence[Tuple[str, str]]):
    if not columns:
        raise ValueError("At least one column is required")
    for name, pg_type in columns:
        if pg_type not in ENCODERS:
            raise ValueError(
                f"Unsupported column type '{pg_type}' for column '{name}'. "
                f"Supported: {', '.join(sorted(ENCODERS))}"
            )


class BinaryCopyWriter:
    """
    Streams rows into a file-like object in binary COPY format.

    Rows may be mappings keyed by column name or positional sequences.
    """

    def __init__(self, stream: BinaryIO, columns: Sequence[Tuple[str, str]]):
        _check_columns(columns)
        self.stream = stream
        self.columns = list(columns)
        self._names = [name for name, _ in self.columns]
        self._encoders = [ENCODERS[pg_type] for _, pg_type in self.columns]
        self._field_count = struct.pack("!h", len(self.columns))
        self.rows_written = 0

    def write_header(self):
        self.stream.write(HEADER)

    def write_trailer(self):
        self.stream.write(TRAILER)

    def encode_row(self, row) -> bytes:
        if isinstance(row, Mapping):
            values = [row[name] for name in self._names]
        else:
            values = list(row)
            if len(values) != len(self._encoders):
                raise ValueError(
                    f"Row has {len(values)} values, expected {len(self._encoders)}"
                )

        parts = [self._field_count]
        for encode, value in zip(self._encoders, values):
            parts.append(NULL_FIELD if value is None else encode(value))
        return b"".join(parts)

    def write_row(self, row):
        self.stream.write(self.encode_row(row))
        self.rows_written += 1

    def write_rows(self, rows: Iterable) -> int:
        """Write rows and return how many were written by this call."""
        before = self.rows_written
        for row in rows:
            self.write_row(row)
        return self.rows_written - before


def write_copy_file(path: Path, rows: Iterable, columns: Sequence[Tuple[str, str]]) -> int:
    """Write a complete binary COPY file. Returns the file size in bytes."""
    path = Path(path)
    with open(path, "wb") as f:
        writer = BinaryCopyWriter(f, columns)
        writer.write_header()
        writer.write_rows(rows)
        writer.write_trailer()
    return path.stat().st_size


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError(f"Truncated COPY stream: expected {size} bytes, got {len(data)}")
    return data


def read_copy_stream(stream: BinaryIO, columns: Sequence[Tuple[str, str]]) -> Iterator[Tuple]:
    """Decode tuples from a binary COPY stream."""
    _check_columns(columns)
    decoders: List[Callable[[bytes], Any]] = [DECODERS[pg_type] for _, pg_type in columns]

    if _read_exact(stream, len(SIGNATURE)) != SIGNATURE:
        raise ValueError("Not a binary COPY stream: bad signature")
    _flags, extension_length = struct.unpack("!ii", _read_exact(stream, 8))
    if extension_length:
        _read_exact(stream, extension_length)

    while True:
        (field_count,) = struct.unpack("!h", _read_exact(stream, 2))
        if field_count == -1:
            return
        if field_count != len(decoders):
            raise ValueError(f"Tuple has {field_count} fields, expected {len(decoders)}")

        values = []
        for decode in decoders:
            (length,) = struct.unpack("!i", _read_exact(stream, 4))
            values.append(None if length == -1 else decode(_read_exact(stream, length)))
        yield tuple(values)
