"""
Row insertion strategies, from one ORM object per transaction up to
streaming a binary COPY payload.

Every strategy takes an iterable of row dicts (id, message, created_at)
and returns the number of rows inserted.
"""
import csv
import io
import tempfile
from datetime import timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from sqlalchemy import insert
from tqdm import tqdm

from .config import ERR_COPY_UNSUPPORTED, LoadConfig
from .database import DatabaseManager
from .generator import chunked
from .logger import get_logger
from .metrics import MetricsCollector
from .models import MESSAGE_COLUMNS, Message, column_names
from .pgcopy import BinaryCopyWriter

Row = Mapping[str, Any]

_REGISTRY: Dict[str, Type["InsertStrategy"]] = {}


def register_strategy(cls: Type["InsertStrategy"]) -> Type["InsertStrategy"]:
    """Class decorator adding a strategy to the registry under its name."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} has no name")
    if cls.name in _REGISTRY:
        raise ValueError(f"Strategy '{cls.name}' is already registered")
    _REGISTRY[cls.name] = cls
    return cls


def available_strategies() -> List[str]:
    """Strategy names in registration order, slowest technique first."""
    return list(_REGISTRY)


def get_strategy_class(name: str) -> Type["InsertStrategy"]:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ValueError(
            f"Unknown strategy '{name}'. Available: {', '.join(available_strategies())}"
        ) from None


def get_strategy(
    name: str,
    database: DatabaseManager,
    config: LoadConfig,
    metrics: Optional[MetricsCollector] = None
) -> "InsertStrategy":
    return get_strategy_class(name)(database, config, metrics)


class InsertStrategy:
    """
    Base class for insertion strategies.

    Subclasses implement `_load`; `load` adds timing, counting and logging.
    """

    name: str = ""
    description: str = ""
    materializes: bool = True
    requires_copy: bool = False

    def __init__(
        self,
        database: DatabaseManager,
        config: LoadConfig,
        metrics: Optional[MetricsCollector] = None
    ):
        self.database = database
        self.config = config
        self.metrics = metrics or database.metrics
        self.logger = get_logger()

    @property
    def max_rows(self) -> Optional[int]:
        """Largest dataset this strategy is benchmarked with (None: no cap)."""
        return None

    def is_supported(self) -> bool:
        return self.database.supports_copy or not self.requires_copy

    def load(self, rows: Iterable[Row], total: Optional[int] = None) -> int:
        """
        Insert rows and return how many were inserted.

        Args:
            rows: Row dicts, consumed once
            total: Expected row count, used for progress display only
        """
        if not self.is_supported():
            raise RuntimeError(f"{ERR_COPY_UNSUPPORTED} (strategy: {self.name}, dialect: {self.database.dialect})")

        self.logger.debug(f"Running strategy {self.name}", expected=total if total is not None else "?")

        timer_name = f"strategy:{self.name}"
        self.metrics.start_timer(timer_name)
        try:
            inserted = self._load(rows, total)
        except Exception as e:
            self.metrics.stop_timer(timer_name)
            self.logger.error(f"Strategy {self.name} failed", error=str(e))
            raise
        duration = self.metrics.stop_timer(timer_name)

        self.metrics.record_count(f"rows_inserted:{self.name}", inserted)
        self.logger.info(f"Strategy {self.name} inserted rows", rows=inserted, seconds=duration)
        return inserted

    def _load(self, rows: Iterable[Row], total: Optional[int]) -> int:
        raise NotImplementedError

    def _progress(self, total: Optional[int]) -> tqdm:
        return tqdm(
            total=total,
            desc=self.name,
            unit="rows",
            unit_scale=True,
            disable=not self.config.show_progress,
        )


@register_strategy
class OrmSingleStrategy(InsertStrategy):
    name = "orm_single"
    description = "One ORM object per session, committed row by row"
    materializes = False

    @property
    def max_rows(self) -> Optional[int]:
        return self.config.slow_strategy_limit

    def _load(self, rows, total):
        inserted = 0
        for row in rows:
            with self.database.session_scope() as session:
                session.add(Message.from_row(row))
            inserted += 1
        return inserted


@register_strategy
class OrmLoopStrategy(InsertStrategy):
    name = "orm_loop"
    description = "ORM objects added in a loop to one session, single commit"

    def _load(self, rows, total):
        inserted = 0
        with self.database.session_scope() as session:
            for row in rows:
                session.add(Message.from_row(row))
                inserted += 1
        return inserted


@register_strategy
class BulkMappingsStrategy(InsertStrategy):
    name = "bulk_mappings"
    description = "Session.bulk_insert_mappings over the full row list"

    def _load(self, rows, total):
        mappings = [dict(row) for row in rows]
        if not mappings:
            return 0
        with self.database.session_scope() as session:
            session.bulk_insert_mappings(Message, mappings)
        return len(mappings)


@register_strategy
class CoreInsertStrategy(InsertStrategy):
    name = "core_insert"
    description = "One Core insert() executemany over the full row list"

    def _load(self, rows, total):
        batch = [dict(row) for row in rows]
        if not batch:
            return 0
        with self.database.session_scope() as session:
            session.execute(insert(Message), batch)
        return len(batch)


@register_strategy
class ChunkedStrategy(InsertStrategy):
    """
    Core inserts in fixed-size chunks with a commit per chunk.
    The source is consumed lazily, so at most one chunk is held in memory.
    """

    name = "chunked"
    description = "Core insert per chunk with a commit per chunk (bounded memory)"
    materializes = False

    def _load(self, rows, total):
        inserted = 0
        with self._progress(total) as progress:
            for chunk in chunked(rows, self.config.chunk_size):
                with self.database.session_scope() as session:
                    session.execute(insert(Message), chunk)
                inserted += len(chunk)
                self.metrics.record_count("chunks_committed")
                progress.update(len(chunk))
        return inserted


class _CopyStrategy(InsertStrategy):
    """Spools a COPY payload to a temporary file, then streams it to the server."""

    materializes = False
    requires_copy = True
    copy_format = ""

    def _spool(self):
        raise NotImplementedError

    def _write_payload(self, spool, rows, progress) -> int:
        raise NotImplementedError

    def _load(self, rows, total):
        # Stays in memory up to copy_spool_bytes, then rolls over to disk
        with self._spool() as spool:
            with self.metrics.timer(f"encode_{self.copy_format}"):
                with self._progress(total) as progress:
                    written = self._write_payload(spool, rows, progress)
            spool.seek(0)
            self.database.copy_from(spool, MESSAGE_COLUMNS, fmt=self.copy_format)
        return written


@register_strategy
class CopyBinaryStrategy(_CopyStrategy):
    name = "copy_binary"
    description = "PostgreSQL COPY FROM STDIN in binary format"
    copy_format = "binary"

    def _spool(self):
        return tempfile.SpooledTemporaryFile(max_size=self.config.copy_spool_bytes, mode="w+b")

    def _write_payload(self, spool, rows, progress):
        writer = BinaryCopyWriter(spool, MESSAGE_COLUMNS)
        writer.write_header()
        for chunk in chunked(rows, self.config.chunk_size):
            writer.write_rows(chunk)
            progress.update(len(chunk))
        writer.write_trailer()
        return writer.rows_written


@register_strategy
class CopyCsvStrategy(_CopyStrategy):
    name = "copy_csv"
    description = "PostgreSQL COPY FROM STDIN in CSV format"
    copy_format = "csv"

    def _spool(self):
        return tempfile.SpooledTemporaryFile(
            max_size=self.config.copy_spool_bytes, mode="w+", newline="", encoding="utf-8"
        )

    def _write_payload(self, spool, rows, progress):
        return write_csv_rows(spool, rows, progress.update)


def write_csv_rows(stream: io.TextIOBase, rows: Iterable[Row], on_row: Optional[Callable[[int], Any]] = None) -> int:
    """Write rows as COPY-compatible CSV (no header) and return the row count."""
    names = column_names()
    writer = csv.writer(stream)
    written = 0
    for row in rows:
        writer.writerow([_csv_value(row[name]) for name in names])
        written += 1
        if on_row is not None:
            on_row(1)
    return written


def _csv_value(value):
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        # timestamp columns carry no zone; store UTC like the binary encoder
        if getattr(value, "tzinfo", None) is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(sep=" ")
    return value
