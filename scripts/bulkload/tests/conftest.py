import pytest

from bulkload.config import LoadConfig
from bulkload.database import DatabaseManager
from bulkload.logger import LogLevel, StructuredLogger, set_logger
from bulkload.metrics import MetricsCollector


class RecordingCopyDatabase:
    """Stands in for a PostgreSQL DatabaseManager and keeps COPY payloads."""

    dialect = "postgresql"
    supports_copy = True

    def __init__(self):
        self.metrics = MetricsCollector()
        self.payloads = []

    def copy_from(self, stream, columns, fmt="binary", conn=None):
        self.payloads.append((fmt, stream.read()))


@pytest.fixture(autouse=True)
def quiet_logger():
    set_logger(StructuredLogger(min_level=LogLevel.ERROR))
    yield
    set_logger(StructuredLogger())


@pytest.fixture
def config(tmp_path):
    return LoadConfig(
        database_url=f"sqlite:///{tmp_path / 'bulkload.db'}",
        chunk_size=25,
        seed=7,
        slow_strategy_limit=100,
        show_progress=False,
    )


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def database(config, metrics):
    db = DatabaseManager(config, metrics)
    db.create_schema()
    yield db
    db.close()


@pytest.fixture
def copy_database():
    return RecordingCopyDatabase()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run in an empty directory with none of the loader's variables set."""
    monkeypatch.chdir(tmp_path)
    # setenv first so teardown also undoes values loaded from .env files
    for name in ("DATABASE_URL", "BULKLOAD_CHUNK_SIZE", "BULKLOAD_ECHO_SQL", "BULKLOAD_SEED"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
