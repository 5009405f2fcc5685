"""Configuration — defaults, YAML loading, environment overlay, env var overrides.

Invariants:
    - Precedence: env vars > app.<env>.yaml overlay > app.yaml > defaults
    - Missing, unparsable, non-mapping or invalid files raise ConfigLoadError
"""

import pytest

from webtemplate.config import DatabaseSettings, Settings, load_settings
from webtemplate.core.errors import ConfigLoadError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("WEBTEMPLATE_CONFIG", raising=False)


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults():
    s = Settings()
    assert s.app.port == 8080
    assert s.app.addr == "0.0.0.0:8080"
    assert s.app.timezone == "UTC"
    assert s.logger.format == "console"
    assert s.jwt.expire_hours == 24
    assert s.jwt.issuer == "web-template"
    assert s.tracing.enabled is False
    assert s.tracing.sample_rate == 1.0


def test_load_yaml(tmp_path):
    cfg = _write(tmp_path / "app.yaml", "app:\n  port: 9000\njwt:\n  secret: from-file\n")
    s = load_settings(cfg)
    assert s.app.port == 9000
    assert s.jwt.secret == "from-file"
    assert s.database.port == 5432


def test_empty_file_gives_defaults(tmp_path):
    s = load_settings(_write(tmp_path / "app.yaml", ""))
    assert s.app.port == 8080


def test_environment_overlay(tmp_path):
    cfg = _write(tmp_path / "app.yaml", "app:\n  port: 9000\n  debug: true\n")
    _write(tmp_path / "app.production.yaml", "app:\n  port: 80\n")

    s = load_settings(cfg, environment="production")
    assert s.app.port == 80
    assert s.app.debug is True


def test_missing_overlay_is_ignored(tmp_path):
    cfg = _write(tmp_path / "app.yaml", "app:\n  port: 9000\n")
    assert load_settings(cfg, environment="staging").app.port == 9000


def test_env_var_overrides_file(tmp_path, monkeypatch):
    cfg = _write(tmp_path / "app.yaml", "app:\n  port: 9000\njwt:\n  secret: from-file\n")
    monkeypatch.setenv("WEBTEMPLATE_JWT__SECRET", "from-env")

    s = load_settings(cfg)
    assert s.jwt.secret == "from-env"
    assert s.app.port == 9000


def test_config_path_from_env(tmp_path, monkeypatch):
    cfg = _write(tmp_path / "custom.yaml", "app:\n  version: 2.0.0\n")
    monkeypatch.setenv("WEBTEMPLATE_CONFIG", str(cfg))
    assert load_settings().app.version == "2.0.0"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigLoadError) as exc_info:
        load_settings(tmp_path / "nope.yaml")
    assert exc_info.value.path.endswith("nope.yaml")


def test_unparsable_yaml(tmp_path):
    with pytest.raises(ConfigLoadError):
        load_settings(_write(tmp_path / "app.yaml", "app: [unclosed\n"))


def test_non_mapping_yaml(tmp_path):
    with pytest.raises(ConfigLoadError):
        load_settings(_write(tmp_path / "app.yaml", "- just\n- a list\n"))


@pytest.mark.parametrize("text", [
    "logger:\n  format: xml\n",
    "jwt:\n  expire_hours: 0\n",
    "tracing:\n  sample_rate: 0\n",
])
def test_invalid_values(tmp_path, text):
    with pytest.raises(ConfigLoadError):
        load_settings(_write(tmp_path / "app.yaml", text))


def test_database_url_from_components():
    db = DatabaseSettings(host="db", port=5433, username="app", password="pw", dbname="main")
    assert db.url == "postgresql+asyncpg://app:pw@db:5433/main"
    assert db.connect_args == {}
    assert db.pool_size == 10
    assert db.max_overflow == 90


def test_database_dsn_wins_and_is_converted():
    db = DatabaseSettings(dsn="postgresql://u:p@h:5432/d", sslmode="require")
    assert db.url == "postgresql+asyncpg://u:p@h:5432/d"
    assert db.connect_args == {"ssl": "require"}
