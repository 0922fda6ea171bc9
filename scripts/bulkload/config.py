"""
Configuration management for bulk loading.
Handles environment variables, performance profiles, and runtime parameters.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv


MIB = 1024 * 1024

# Performance profiles: rows per chunk and in-memory COPY spool size
PROFILES = {
    "safe": {"chunk_size": 1_000, "copy_spool_bytes": 16 * MIB},
    "balanced": {"chunk_size": 10_000, "copy_spool_bytes": 64 * MIB},
    "fast": {"chunk_size": 50_000, "copy_spool_bytes": 256 * MIB},
}

DEFAULT_ENV_FILES = (".env.local", ".env")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LoadConfig:
    """Central configuration for loading runs."""

    database_url: str
    environment: str = "environment"
    profile: str = "balanced"

    # Performance tuning
    chunk_size: int = 10_000
    copy_spool_bytes: int = 64 * MIB
    slow_strategy_limit: int = 10_000

    # Dataset
    seed: Optional[int] = None
    words_per_message: int = 8

    # Behaviour
    reset_before_run: bool = True
    show_progress: bool = True
    echo_sql: bool = False

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        profile: str = "balanced",
        database_url: Optional[str] = None,
        require_database: bool = True
    ) -> "LoadConfig":
        """
        Load configuration from environment variables.

        Args:
            env_file: Explicit .env file (defaults to .env.local, then .env in cwd)
            profile: Performance profile - "safe", "balanced" or "fast"
            database_url: Overrides DATABASE_URL when given
            require_database: Fail when no database URL is configured
        """
        if profile not in PROFILES:
            raise ValueError(
                f"Unknown profile '{profile}'. Use one of: {', '.join(PROFILES)}"
            )

        # Determine which env file to load
        environment = "environment"
        if env_file:
            env_path = Path(env_file)
            if not env_path.exists():
                raise ValueError(f"Env file not found: {env_file}")
            candidates = [env_path]
        else:
            candidates = [Path.cwd() / name for name in DEFAULT_ENV_FILES]
        for env_path in candidates:
            if env_path.exists():
                load_dotenv(env_path)
                environment = env_path.name
                break

        database_url = database_url or os.getenv("DATABASE_URL")
        if not database_url and require_database:
            raise ValueError("Missing required environment variables: DATABASE_URL")

        settings = dict(PROFILES[profile])

        # Explicit overrides win over the profile
        chunk_size = os.getenv("BULKLOAD_CHUNK_SIZE")
        if chunk_size:
            settings["chunk_size"] = int(chunk_size)

        seed = os.getenv("BULKLOAD_SEED")

        return cls(
            database_url=database_url or "",
            environment=environment,
            profile=profile,
            seed=int(seed) if seed else None,
            echo_sql=_env_flag("BULKLOAD_ECHO_SQL"),
            **settings,
        )

    def masked_url(self) -> str:
        """Database URL with the password hidden, safe for logs."""
        scheme, sep, rest = self.database_url.partition("://")
        if not sep or "@" not in rest:
            return self.database_url
        credentials, _, host = rest.rpartition("@")
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


# Message constants
MSG_CONNECTING_DB = "Establishing database connection"
MSG_LOAD_COMPLETE = "Load completed successfully"

# Error messages
ERR_CONNECTION_FAILED = "Database connection failed"
ERR_COPY_UNSUPPORTED = "COPY requires a PostgreSQL database"
