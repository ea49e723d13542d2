"""Tests for YAML config loading and path resolution."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.config import AppConfig, PaginationSettings, get_config, load_config, set_config


def test_defaults_when_files_missing(tmp_path):
    cfg = load_config(
        settings_path=tmp_path / "missing.settings.yaml",
        secrets_path=tmp_path / "missing.secrets.yaml",
    )
    assert cfg.server.port == 8000
    assert cfg.auth.token_expire_days == 30
    assert cfg.pagination.default_page_size == 20
    assert cfg.pagination.max_page_size == 100
    assert cfg.notifications.default_page_size == 20
    assert cfg.secrets.jwt.algorithm == "HS256"


def test_settings_and_secrets_are_merged(tmp_path):
    settings_file = tmp_path / "rooms.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 9100\n"
        "  debug: true\n"
        "pagination:\n"
        "  default_page_size: 10\n"
        "logging:\n"
        "  level: debug\n",
        encoding="utf-8",
    )
    secrets_file = tmp_path / "rooms.secrets.yaml"
    secrets_file.write_text(
        "jwt:\n"
        "  secret_key: from-secrets-file\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file, secrets_path=secrets_file)
    assert cfg.server.port == 9100
    assert cfg.server.debug is True
    assert cfg.pagination.default_page_size == 10
    assert cfg.pagination.max_page_size == 100
    assert cfg.logging.level == "debug"
    assert cfg.secrets.jwt.secret_key == "from-secrets-file"


def test_database_path_relative_to_project_root_when_settings_in_config_dir(tmp_path):
    """Relative database path resolves from project root for ./config layout."""
    project_root = tmp_path / "project"
    config_dir = project_root / "config"
    config_dir.mkdir(parents=True)
    settings_file = config_dir / "rooms.settings.yaml"
    settings_file.write_text("database:\n  path: data/rooms.duckdb\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file, secrets_path=config_dir / "none.yaml")
    assert Path(cfg.database.path) == project_root.resolve() / "data" / "rooms.duckdb"


def test_database_path_relative_to_settings_dir_for_nonstandard_layout(tmp_path):
    settings_file = tmp_path / "rooms.settings.yaml"
    settings_file.write_text("database:\n  path: local/rooms.duckdb\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file, secrets_path=tmp_path / "none.yaml")
    assert Path(cfg.database.path) == tmp_path.resolve() / "local" / "rooms.duckdb"


def test_in_memory_database_path_is_kept(tmp_path):
    settings_file = tmp_path / "rooms.settings.yaml"
    settings_file.write_text('database:\n  path: ":memory:"\n', encoding="utf-8")

    cfg = load_config(settings_path=settings_file, secrets_path=tmp_path / "none.yaml")
    assert cfg.database.path == ":memory:"


def test_page_size_must_be_positive():
    with pytest.raises(ValidationError):
        PaginationSettings(default_page_size=0)


def test_set_config_replaces_cached_instance():
    custom = AppConfig()
    custom.pagination.default_page_size = 5
    set_config(custom)
    assert get_config() is custom
