"""
Config Tests — DatabaseOptions and layered ConfigLoader.
"""

import json

import pytest

from shellite.config import ConfigLoader, DatabaseOptions
from shellite.faults import ConfigFault


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep SHELLITE_* variables of the host out of the tests."""
    import os
    for key in list(os.environ):
        if key.startswith("SHELLITE_"):
            monkeypatch.delenv(key)


class TestDatabaseOptions:
    """Test defaults, validation and init script."""

    def test_defaults(self):
        options = DatabaseOptions()
        assert options.bin is None
        assert options.args == []
        assert options.readonly is False
        assert options.backend == "shell"
        assert options.close_timeout == 5.0

    def test_unknown_backend(self):
        with pytest.raises(ConfigFault, match="backend"):
            DatabaseOptions(backend="postgres").validate()

    def test_negative_timeout(self):
        with pytest.raises(ConfigFault, match="timeout"):
            DatabaseOptions(timeout=-1).validate()

    def test_size_requires_page(self):
        with pytest.raises(ConfigFault, match="size"):
            DatabaseOptions(size=1024).validate()

    def test_init_script_empty(self):
        assert DatabaseOptions().init_script() == ""

    def test_init_script(self):
        script = DatabaseOptions(wal=True, page=4096, size=4096 * 10).init_script()
        assert script.split(";\n") == [
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
            "PRAGMA page_size=4096",
            "PRAGMA max_page_count=10",
        ]


class TestConfigLoaderSources:
    """Test each source and their precedence."""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "shellite.yaml"
        path.write_text("timeout: 2500\nwal: true\nargs: ['-bail']\n")
        options = ConfigLoader.load(paths=[str(path)]).get_options()
        assert options.timeout == 2500
        assert options.wal is True
        assert options.args == ["-bail"]

    def test_json_file_database_section(self, tmp_path):
        path = tmp_path / "shellite.json"
        path.write_text(json.dumps({"ttl": 1, "database": {"ttl": 30.5, "backend": "native"}}))
        options = ConfigLoader.load(paths=[str(path)]).get_options()
        assert options.ttl == 30.5
        assert options.backend == "native"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFault):
            ConfigLoader.load(paths=[str(tmp_path / "absent.yaml")])

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("SHELLITE_READONLY=true\nSHELLITE_TIMEOUT=100\nOTHER=1\n")
        options = ConfigLoader.load(env_file=str(env)).get_options()
        assert options.readonly is True
        assert options.timeout == 100

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("SHELLITE_DATABASE__CLOSE_TIMEOUT", "1.5")
        monkeypatch.setenv("SHELLITE_BIN", "/opt/sqlite/bin/sqlite3")
        options = ConfigLoader.load().get_options()
        assert options.close_timeout == 1.5
        assert options.bin == "/opt/sqlite/bin/sqlite3"

    def test_precedence(self, tmp_path, monkeypatch):
        path = tmp_path / "shellite.yaml"
        path.write_text("timeout: 1\nttl: 1\nbackend: native\n")
        env = tmp_path / ".env"
        env.write_text("SHELLITE_TIMEOUT=2\nSHELLITE_TTL=2\n")
        monkeypatch.setenv("SHELLITE_TIMEOUT", "3")

        options = ConfigLoader.load(
            paths=[str(path)],
            env_file=str(env),
            overrides={"ttl": 4.0, "bin": None},
        ).get_options()

        assert options.timeout == 3
        assert options.ttl == 4.0
        assert options.backend == "native"
        assert options.bin is None

    def test_args_string_is_split(self):
        options = ConfigLoader.load(overrides={"args": "-bail -echo"}).get_options()
        assert options.args == ["-bail", "-echo"]


class TestConfigLoaderValidation:
    """Test type checking."""

    def test_wrong_type(self):
        with pytest.raises(ConfigFault, match="timeout"):
            ConfigLoader.load(overrides={"timeout": "soon"}).get_options()

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConfigFault):
            ConfigLoader.load(overrides={"page": True}).get_options()

    def test_int_accepted_for_float(self):
        options = ConfigLoader.load(overrides={"close_timeout": 2}).get_options()
        assert options.close_timeout == 2

    def test_parse_value(self):
        loader = ConfigLoader()
        assert loader._parse_value("yes") is True
        assert loader._parse_value("off") is False
        assert loader._parse_value("10") == 10
        assert loader._parse_value("0.25") == 0.25
        assert loader._parse_value('["-bail"]') == ["-bail"]
        assert loader._parse_value("sqlite3") == "sqlite3"

    def test_get_dotted(self):
        loader = ConfigLoader.load(overrides={"database": {"wal": True}})
        assert loader.get("database.wal") is True
        assert loader.get("database.missing", "x") == "x"
