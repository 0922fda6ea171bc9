"""
Database manager built on a SQLAlchemy engine.
Provides ORM sessions for the ORM/Core strategies and raw psycopg2
connections for PostgreSQL COPY.
"""
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, delete, func, select, text
from sqlalchemy.orm import Session, sessionmaker

from .config import ERR_COPY_UNSUPPORTED, LoadConfig
from .logger import get_logger
from .metrics import MetricsCollector
from .models import MESSAGE_COLUMNS, TABLE_NAME, Base, Message, column_names

COPY_FORMATS = ("binary", "csv")


class DatabaseManager:
    """
    Owns the engine and session factory for one database.
    Sessions and raw connections commit on success and roll back on error.
    """

    def __init__(self, config: LoadConfig, metrics: Optional[MetricsCollector] = None):
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.logger = get_logger()

        try:
            self.engine = create_engine(
                config.database_url,
                echo=config.echo_sql,
                pool_pre_ping=True,
            )
        except Exception as e:
            self.logger.error("Failed to create database engine", url=config.masked_url(), error=str(e))
            raise

        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.logger.debug("Database engine created", dialect=self.dialect)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @property
    def supports_copy(self) -> bool:
        """COPY FROM STDIN is only available on PostgreSQL (psycopg2)."""
        return self.dialect == "postgresql"

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """ORM session as a unit of work."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def raw_connection(self):
        """
        DBAPI connection checked out of the engine pool.
        Returned to the pool on exit.
        """
        conn = self.engine.raw_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def test_connection(self) -> bool:
        """Run a trivial query and log server details."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
                version = self.engine.dialect.server_version_info
            self.logger.info(
                "Database connected",
                dialect=self.dialect,
                version=".".join(str(part) for part in version) if version else "unknown"
            )
            return True
        except Exception as e:
            self.logger.error("Database connection failed", url=self.config.masked_url(), error=str(e))
            return False

    def create_schema(self):
        """Create the messages table if it does not exist."""
        Base.metadata.create_all(self.engine)

    def drop_schema(self):
        Base.metadata.drop_all(self.engine)

    def truncate(self):
        """Remove every row from the messages table."""
        with self.session_scope() as session:
            if self.dialect == "postgresql":
                session.execute(text(f"TRUNCATE TABLE {TABLE_NAME}"))
            else:
                session.execute(delete(Message))
        self.logger.debug("Table truncated", table=TABLE_NAME)

    def count_rows(self) -> int:
        with self.session_scope() as session:
            return session.execute(select(func.count()).select_from(Message)).scalar_one()

    def max_id(self) -> int:
        """Highest stored id, 0 for an empty table."""
        with self.session_scope() as session:
            return session.execute(select(func.max(Message.id))).scalar() or 0

    def copy_from(
        self,
        stream: IO,
        columns: List[Tuple[str, str]] = MESSAGE_COLUMNS,
        fmt: str = "binary",
        conn=None
    ):
        """
        Stream a prepared COPY payload into the messages table.

        Args:
            stream: Readable file-like object positioned at the start of the payload
            columns: (name, type) pairs in payload order
            fmt: "binary" or "csv"
            conn: Optional DBAPI connection (if None, one is checked out)
        """
        if fmt not in COPY_FORMATS:
            raise ValueError(f"Unknown COPY format '{fmt}'. Use one of: {', '.join(COPY_FORMATS)}")
        if not self.supports_copy:
            raise RuntimeError(f"{ERR_COPY_UNSUPPORTED} (dialect: {self.dialect})")

        columns_str = ", ".join(column_names(columns))
        copy_sql = f"COPY {TABLE_NAME} ({columns_str}) FROM STDIN WITH (FORMAT {fmt.upper()})"

        def _execute(connection):
            cursor = connection.cursor()
            try:
                cursor.copy_expert(copy_sql, stream)
            finally:
                cursor.close()

        with self.metrics.timer(f"db_copy_{fmt}"):
            try:
                if conn is not None:
                    _execute(conn)
                else:
                    with self.raw_connection() as connection:
                        _execute(connection)
            except Exception as e:
                self.logger.error(f"COPY into {TABLE_NAME} failed", format=fmt, error=str(e))
                raise

    def close(self):
        """Dispose of all pooled connections."""
        if getattr(self, "engine", None) is not None:
            self.engine.dispose()
            self.logger.debug("Database engine disposed")
