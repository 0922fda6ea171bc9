import csv
import io
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from bulkload.generator import generate_messages
from bulkload.models import MESSAGE_COLUMNS
from bulkload.pgcopy import BinaryCopyWriter, read_copy_stream
from bulkload.strategies import (
    InsertStrategy,
    available_strategies,
    get_strategy,
    register_strategy,
    write_csv_rows,
)

SQL_STRATEGIES = ["orm_single", "orm_loop", "bulk_mappings", "core_insert", "chunked"]


def test_registry_order():
    assert available_strategies() == SQL_STRATEGIES + ["copy_binary", "copy_csv"]


def test_unknown_strategy(database, config):
    with pytest.raises(ValueError, match="Available: orm_single"):
        get_strategy("pandas_to_sql", database, config)


def test_duplicate_registration_is_rejected():
    class Again(InsertStrategy):
        name = "chunked"

    with pytest.raises(ValueError, match="already registered"):
        register_strategy(Again)


@pytest.mark.parametrize("name", SQL_STRATEGIES)
def test_sql_strategies_insert_every_row(name, database, config, metrics):
    strategy = get_strategy(name, database, config, metrics)

    inserted = strategy.load(generate_messages(60, seed=1), total=60)

    assert inserted == 60
    assert database.count_rows() == 60
    assert database.max_id() == 60
    assert metrics.get_count(f"rows_inserted:{name}") == 60
    assert metrics.get_timer_stats(f"strategy:{name}")["count"] == 1


@pytest.mark.parametrize("name", SQL_STRATEGIES)
def test_sql_strategies_accept_empty_input(name, database, config):
    assert get_strategy(name, database, config).load(iter([])) == 0
    assert database.count_rows() == 0


def test_chunked_commits_per_chunk(database, config, metrics):
    config.chunk_size = 25

    get_strategy("chunked", database, config, metrics).load(generate_messages(60))

    assert metrics.get_count("chunks_committed") == 3


def test_chunked_keeps_committed_chunks_when_a_later_chunk_fails(database, config):
    config.chunk_size = 10
    rows = list(generate_messages(15)) + list(generate_messages(5))  # ids 1-5 repeat

    with pytest.raises(IntegrityError):
        get_strategy("chunked", database, config).load(rows)

    assert database.count_rows() == 10


def test_single_transaction_strategy_rolls_back_everything(database, config):
    rows = list(generate_messages(15)) + list(generate_messages(5))

    with pytest.raises(IntegrityError):
        get_strategy("core_insert", database, config).load(rows)

    assert database.count_rows() == 0


def test_orm_single_is_capped_for_benchmarks(database, config):
    assert get_strategy("orm_single", database, config).max_rows == config.slow_strategy_limit
    assert get_strategy("core_insert", database, config).max_rows is None


@pytest.mark.parametrize("name", ["copy_binary", "copy_csv"])
def test_copy_strategies_need_postgresql(name, database, config):
    strategy = get_strategy(name, database, config)

    assert strategy.is_supported() is False
    with pytest.raises(RuntimeError, match="PostgreSQL"):
        strategy.load(generate_messages(1))


def test_copy_binary_payload(copy_database, config):
    config.chunk_size = 4
    rows = list(generate_messages(10, seed=2))

    inserted = get_strategy("copy_binary", copy_database, config).load(iter(rows))

    assert inserted == 10
    ((fmt, payload),) = copy_database.payloads
    assert fmt == "binary"
    decoded = list(read_copy_stream(io.BytesIO(payload), MESSAGE_COLUMNS))
    assert decoded == [(r["id"], r["message"], r["created_at"]) for r in rows]


def test_copy_csv_payload(copy_database, config):
    rows = list(generate_messages(3, seed=2))

    inserted = get_strategy("copy_csv", copy_database, config).load(rows)

    assert inserted == 3
    ((fmt, payload),) = copy_database.payloads
    assert fmt == "csv"
    parsed = list(csv.reader(io.StringIO(payload)))
    assert parsed[0] == ["1", rows[0]["message"], "2024-01-01 00:00:00"]
    assert len(parsed) == 3


def test_csv_and_binary_store_the_same_aware_timestamp():
    aware = datetime(2000, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=1)))
    row = {"id": 1, "message": "hello", "created_at": aware}

    text = io.StringIO()
    write_csv_rows(text, [row])
    binary = io.BytesIO()
    writer = BinaryCopyWriter(binary, MESSAGE_COLUMNS)
    writer.write_header()
    writer.write_row(row)
    writer.write_trailer()
    binary.seek(0)

    ((_, _, decoded),) = read_copy_stream(binary, MESSAGE_COLUMNS)
    assert decoded == datetime(2000, 1, 1, 0, 0)
    assert next(csv.reader(io.StringIO(text.getvalue())))[2] == str(decoded)


def test_copy_spool_rolls_over_to_disk(copy_database, config):
    config.copy_spool_bytes = 64

    inserted = get_strategy("copy_binary", copy_database, config).load(generate_messages(50))

    assert inserted == 50
    assert len(copy_database.payloads[0][1]) > 64
