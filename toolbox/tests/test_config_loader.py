"""
Tests for the config loader
"""

import json

import pytest

from toolbox.server.app import ToolboxServer
from toolbox.server.backends.errors import ConfigValidationError, SourceNotFound
from toolbox.server.config_loader import (
    ConfigLoader,
    expand_env_vars,
    get_default_config,
    load_config,
)


def config_dict(db_path, **tools):
    return {
        "server": {"title": "Test Toolbox"},
        "sources": {
            "_comment": "ignored",
            "test-db": {"kind": "sqlite", "database": db_path, "poolSize": 2},
        },
        "tools": tools,
    }


GOOD_TOOL = {
    "kind": "sqlite-sql",
    "source": "test-db",
    "description": "one row",
    "statement": "SELECT * FROM t WHERE id = ?",
    "parameters": [{"name": "id", "type": "integer", "description": "id"}],
}

BAD_SOURCE_TOOL = {
    "kind": "sqlite-sql",
    "source": "missing-db",
    "description": "broken",
    "statement": "SELECT 1",
}


class TestEnvExpansion:
    """${VAR} and ${VAR:-default}"""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("TOOLBOX_TEST_DB", "/data/app.db")
        assert expand_env_vars({"database": "${TOOLBOX_TEST_DB}"}) == {"database": "/data/app.db"}

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TOOLBOX_TEST_UNSET", raising=False)
        assert expand_env_vars(["${TOOLBOX_TEST_UNSET:-fallback}"]) == ["fallback"]

    def test_unset_without_default_kept(self, monkeypatch):
        monkeypatch.delenv("TOOLBOX_TEST_UNSET", raising=False)
        assert expand_env_vars("${TOOLBOX_TEST_UNSET}") == "${TOOLBOX_TEST_UNSET}"

    def test_non_strings_untouched(self):
        assert expand_env_vars({"n": 5, "b": True, "x": None}) == {"n": 5, "b": True, "x": None}


class TestConfigLoader:
    """Loading, building and server creation"""

    def test_load_file(self, tmp_path, db_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config_dict(db_path, one=GOOD_TOOL)))

        config = load_config(str(path))
        assert config.server.title == "Test Toolbox"
        assert list(config.sources) == ["test-db"]
        assert config.sources["test-db"].options == {"database": db_path, "poolSize": 2}
        assert list(config.tools) == ["one"]

    def test_dotenv_next_to_config(self, tmp_path, db_path, monkeypatch):
        """A .env beside the config feeds ${VAR} expansion"""
        monkeypatch.delenv("TOOLBOX_TEST_DOTENV_DB", raising=False)
        (tmp_path / ".env").write_text(f"TOOLBOX_TEST_DOTENV_DB={db_path}\n")
        data = config_dict("${TOOLBOX_TEST_DOTENV_DB}")
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))

        config = ConfigLoader().load(str(path))
        assert config.sources["test-db"].options["database"] == db_path

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigValidationError):
            load_config(str(path))

    def test_source_kind_required(self, db_path):
        with pytest.raises(ConfigValidationError):
            ConfigLoader().load_from_dict({"sources": {"x": {"database": db_path}}})

    def test_unknown_source_kind(self, db_path):
        loader = ConfigLoader()
        loader.load_from_dict({"sources": {"x": {"kind": "postgres", "database": db_path}}})
        with pytest.raises(ConfigValidationError):
            loader.build_sources()

    def test_build_tools(self, db_path):
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, one=GOOD_TOOL))
        sources = loader.build_sources()
        tools = loader.build_tools(sources)
        assert list(tools) == ["one"]
        assert tools["one"].kind == "sqlite-sql"
        assert loader.failed_tools == {}

    def test_failed_tool_is_skipped(self, db_path):
        """A tool that cannot be built is absent and reported"""
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, one=GOOD_TOOL, broken=BAD_SOURCE_TOOL))
        tools = loader.build_tools(loader.build_sources())
        assert list(tools) == ["one"]
        assert "no source named 'missing-db' configured" in loader.failed_tools["broken"]

    @pytest.mark.parametrize("broken", [
        dict(GOOD_TOOL, parameters=5),
        dict(GOOD_TOOL, templateParameters={"name": "table"}),
        dict(GOOD_TOOL, parameters=[{"name": "id", "type": "integer", "description": "", "required": "no"}]),
        dict(GOOD_TOOL, parameters=[{"name": "id", "type": "integer", "description": "", "authServices": "google"}]),
        dict(GOOD_TOOL, kind=["sqlite-sql"]),
    ])
    def test_malformed_tool_is_skipped(self, db_path, broken):
        """Malformed definitions are recorded like any other failed tool"""
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, one=GOOD_TOOL, broken=broken))
        tools = loader.build_tools(loader.build_sources())
        assert list(tools) == ["one"]
        assert list(loader.failed_tools) == ["broken"]

    def test_strict_mode_raises(self, db_path):
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, broken=BAD_SOURCE_TOOL))
        with pytest.raises(SourceNotFound):
            loader.build_tools(loader.build_sources(), strict=True)

    def test_unknown_tool_kind_skipped(self, db_path):
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, odd=dict(GOOD_TOOL, kind="postgres-sql")))
        assert loader.build_tools(loader.build_sources()) == {}
        assert "odd" in loader.failed_tools

    def test_create_server(self, db_path):
        loader = ConfigLoader()
        loader.load_from_dict(config_dict(db_path, one=GOOD_TOOL, broken=BAD_SOURCE_TOOL))
        server = loader.create_server(host="127.0.0.1", port=5001)
        assert isinstance(server, ToolboxServer)
        assert server.title == "Test Toolbox"
        assert server.port == 5001
        assert server.list_tools() == ["one"]
        assert server.get_source("test-db") is not None

    def test_create_server_requires_config(self):
        with pytest.raises(RuntimeError):
            ConfigLoader().create_server()

    def test_default_config_loads(self):
        config = ConfigLoader().load_from_dict(get_default_config())
        assert config.sources == {}
        assert config.tools == {}
