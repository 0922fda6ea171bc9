"""
COPY file preparation and import.
Writes generated datasets as binary or CSV COPY files and streams
prepared files back into the messages table.
"""
import csv
from pathlib import Path

from .config import LoadConfig
from .database import COPY_FORMATS, DatabaseManager
from .generator import generate_messages
from .logger import get_logger
from .metrics import format_bytes
from .models import MESSAGE_COLUMNS
from .pgcopy import read_copy_stream, write_copy_file
from .strategies import write_csv_rows


def _check_format(fmt: str):
    if fmt not in COPY_FORMATS:
        raise ValueError(f"Unknown COPY format '{fmt}'. Use one of: {', '.join(COPY_FORMATS)}")


def export_copy_file(path: Path, row_count: int, config: LoadConfig, fmt: str = "binary") -> int:
    """
    Write `row_count` generated rows to a COPY file.

    Returns:
        File size in bytes
    """
    _check_format(fmt)
    path = Path(path)
    logger = get_logger()

    rows = generate_messages(
        row_count,
        seed=config.seed,
        words_per_message=config.words_per_message,
    )

    if fmt == "binary":
        size = write_copy_file(path, rows, MESSAGE_COLUMNS)
    else:
        with open(path, "w", newline="", encoding="utf-8") as f:
            write_csv_rows(f, rows)
        size = path.stat().st_size

    logger.success("COPY file written", path=str(path), format=fmt, rows=row_count, size=format_bytes(size))
    return size


def count_file_rows(path: Path, fmt: str = "binary") -> int:
    """Count the rows stored in a COPY file, validating its structure."""
    _check_format(fmt)
    if fmt == "binary":
        with open(path, "rb") as f:
            return sum(1 for _ in read_copy_stream(f, MESSAGE_COLUMNS))
    with open(path, "r", newline="", encoding="utf-8") as f:
        return sum(1 for _ in csv.reader(f))


def import_copy_file(database: DatabaseManager, path: Path, fmt: str = "binary") -> int:
    """
    Stream a prepared COPY file into the messages table.

    Returns:
        Number of rows in the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"COPY file not found: {path}")

    rows = count_file_rows(path, fmt)
    mode = "rb" if fmt == "binary" else "r"
    encoding = None if fmt == "binary" else "utf-8"

    with open(path, mode, encoding=encoding) as f:
        database.copy_from(f, MESSAGE_COLUMNS, fmt=fmt)

    database.metrics.record_count("rows_imported", rows)
    get_logger().success("COPY file imported", path=str(path), rows=rows)
    return rows
