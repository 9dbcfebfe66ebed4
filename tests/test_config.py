import pytest

from graphql_todo_server.config import DEFAULT_PORT, Settings, is_production, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ENV", "APP_PORT", "DBHOST", "DBPORT", "DBUSER", "DBPASS", "DBNAME", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / "dev.env"
    path.write_text("DBHOST=db.dev\nDBUSER=dev\nDBPASS=devpass\nDBNAME=tutor\nAPP_PORT=9000\n")
    return str(path)


class TestSettings:
    @pytest.mark.parametrize("env", ["PRODUCTION", "production", "Production"])
    def test_is_production(self, env):
        assert is_production(env)

    @pytest.mark.parametrize("env", ["", None, "development", "PROD"])
    def test_is_not_production(self, env):
        assert not is_production(env)

    def test_default_port(self):
        assert Settings().app_port == DEFAULT_PORT == 8081

    def test_empty_port_falls_back(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "")

        assert Settings().app_port == 8081

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DBHOST", "db.example")
        monkeypatch.setenv("DBPORT", "6543")
        monkeypatch.setenv("APP_PORT", "9090")

        settings = Settings()

        assert settings.db_host == "db.example"
        assert settings.db_port == 6543
        assert settings.app_port == 9090

    def test_query_logging_follows_env(self):
        assert Settings(ENV="development").enable_query_logging
        assert not Settings(ENV="production").enable_query_logging


class TestLoadSettings:
    def test_env_file_outside_production(self, env_file):
        settings = load_settings(env_file)

        assert settings.db_host == "db.dev"
        assert settings.db_user == "dev"
        assert settings.db_pass == "devpass"
        assert settings.db_name == "tutor"
        assert settings.app_port == 9000
        assert settings.enable_query_logging

    def test_environment_beats_env_file(self, env_file, monkeypatch):
        monkeypatch.setenv("DBHOST", "db.override")

        assert load_settings(env_file).db_host == "db.override"

    def test_env_file_ignored_in_production(self, env_file, monkeypatch):
        monkeypatch.setenv("ENV", "Production")

        settings = load_settings(env_file)

        assert settings.db_host == "localhost"
        assert settings.app_port == 8081
        assert not settings.enable_query_logging

    def test_missing_env_file(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.env"))

        assert settings.app_port == 8081
