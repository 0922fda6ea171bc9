import pytest

from bulkload.export import count_file_rows, export_copy_file, import_copy_file
from bulkload.pgcopy import SIGNATURE


def test_export_binary_file(tmp_path, config):
    path = tmp_path / "messages.pgcopy"

    size = export_copy_file(path, 25, config)

    assert size == path.stat().st_size
    assert path.read_bytes().startswith(SIGNATURE)
    assert count_file_rows(path) == 25


def test_export_csv_file(tmp_path, config):
    path = tmp_path / "messages.csv"

    export_copy_file(path, 12, config, fmt="csv")

    assert count_file_rows(path, "csv") == 12
    assert path.read_text(encoding="utf-8").splitlines()[0].startswith("1,")


def test_unknown_format(tmp_path, config):
    with pytest.raises(ValueError):
        export_copy_file(tmp_path / "m.bin", 1, config, fmt="avro")


def test_import_streams_file(tmp_path, config, copy_database):
    path = tmp_path / "messages.pgcopy"
    export_copy_file(path, 8, config)

    rows = import_copy_file(copy_database, path)

    assert rows == 8
    ((fmt, payload),) = copy_database.payloads
    assert fmt == "binary"
    assert payload == path.read_bytes()
    assert copy_database.metrics.get_count("rows_imported") == 8


def test_import_missing_file(tmp_path, copy_database):
    with pytest.raises(FileNotFoundError):
        import_copy_file(copy_database, tmp_path / "absent.pgcopy")


def test_import_rejects_corrupt_file(tmp_path, copy_database):
    path = tmp_path / "broken.pgcopy"
    path.write_bytes(b"not a copy file at all")

    with pytest.raises(ValueError):
        import_copy_file(copy_database, path)
    assert copy_database.payloads == []


def test_import_csv_file(tmp_path, config, copy_database):
    path = tmp_path / "messages.csv"
    export_copy_file(path, 6, config, fmt="csv")

    rows = import_copy_file(copy_database, path, fmt="csv")

    assert rows == 6
    ((fmt, payload),) = copy_database.payloads
    assert fmt == "csv"
    assert payload == path.read_text(encoding="utf-8")
    assert copy_database.metrics.get_count("rows_imported") == 6
