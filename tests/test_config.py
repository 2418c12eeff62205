import pytest
from pydantic import ValidationError

from geo_migration.config import MigrationYAMLConfig, TargetDBSettings, load_yaml_config


def test_defaults():
    config = MigrationYAMLConfig()
    assert config.missing_country == "null"
    assert config.workers_per_cpu == 2
    assert config.source_tables == {"country": "countries", "city": "cities"}


def test_resolve_workers_prefers_override_then_config(monkeypatch):
    monkeypatch.setattr("geo_migration.config.os.cpu_count", lambda: 3)

    assert MigrationYAMLConfig().resolve_workers() == 6
    assert MigrationYAMLConfig(workers=5).resolve_workers() == 5
    assert MigrationYAMLConfig(workers=5).resolve_workers(override=2) == 2


def test_load_yaml_config(tmp_path):
    path = tmp_path / "migration.yaml"
    path.write_text(
        "workers: 4\nmissing_country: reject\ncities:\n  source_table: city_src\n  target_table: city_dst\n",
        encoding="utf-8",
    )

    config = load_yaml_config(path)

    assert config.workers == 4
    assert config.missing_country == "reject"
    assert config.cities.target_table == "city_dst"
    assert config.source_tables["city"] == "city_src"


def test_load_empty_yaml(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_yaml_config(path) == MigrationYAMLConfig()


def test_invalid_yaml_values(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("missing_country: ignore\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_yaml_config(path)


def test_missing_yaml_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "nope.yaml")


def test_target_url_read_from_db_url(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DB_URL", "postgres://geo@db:5432/geo")
    monkeypatch.setenv("TARGET_DB_PORT", "6543")

    settings = TargetDBSettings()

    assert settings.url == "postgres://geo@db:5432/geo"
    assert settings.port == 6543
    assert settings.driver == "postgres"
