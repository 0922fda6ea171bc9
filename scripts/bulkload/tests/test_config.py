import pytest

from bulkload.config import PROFILES, LoadConfig


pytestmark = pytest.mark.usefixtures("clean_env")


def test_missing_database_url_is_an_error():
    with pytest.raises(ValueError, match="DATABASE_URL"):
        LoadConfig.from_env()


def test_database_url_optional_when_not_required():
    config = LoadConfig.from_env(require_database=False)
    assert config.database_url == ""


def test_reads_env_local_file(tmp_path):
    (tmp_path / ".env.local").write_text("DATABASE_URL=sqlite:///local.db\n")

    config = LoadConfig.from_env()

    assert config.database_url == "sqlite:///local.db"
    assert config.environment == ".env.local"


def test_explicit_env_file(tmp_path):
    env_file = tmp_path / "bench.env"
    env_file.write_text("DATABASE_URL=postgresql://u:p@db/bench\nBULKLOAD_SEED=42\n")

    config = LoadConfig.from_env(env_file=env_file)

    assert config.database_url == "postgresql://u:p@db/bench"
    assert config.seed == 42


def test_missing_explicit_env_file_is_an_error(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///other.db")

    with pytest.raises(ValueError, match="Env file not found"):
        LoadConfig.from_env(env_file=tmp_path / "missing.env")


@pytest.mark.parametrize("profile", sorted(PROFILES))
def test_profiles(profile):
    config = LoadConfig.from_env(profile=profile, database_url="sqlite://")

    assert config.chunk_size == PROFILES[profile]["chunk_size"]
    assert config.copy_spool_bytes == PROFILES[profile]["copy_spool_bytes"]


def test_unknown_profile():
    with pytest.raises(ValueError, match="Unknown profile"):
        LoadConfig.from_env(profile="reckless", database_url="sqlite://")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BULKLOAD_CHUNK_SIZE", "123")
    monkeypatch.setenv("BULKLOAD_ECHO_SQL", "yes")

    config = LoadConfig.from_env(profile="fast", database_url="sqlite://")

    assert config.chunk_size == 123
    assert config.echo_sql is True


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        LoadConfig(database_url="sqlite://", chunk_size=0)


def test_masked_url_hides_password():
    config = LoadConfig(database_url="postgresql://loader:s3cret@db:5432/app")

    assert config.masked_url() == "postgresql://loader:***@db:5432/app"
    assert LoadConfig(database_url="sqlite:///x.db").masked_url() == "sqlite:///x.db"
