"""
Tests for ToolboxServer dispatch, the tool response wrapper and the CLI
"""

import asyncio
import json

import pytest

from toolbox.__main__ import main
from toolbox.server.app import ToolboxServer
from toolbox.server.backends.errors import ConfigValidationError


class TestToolboxServer:
    """Registration and dispatch"""

    def test_duplicate_tool_name(self, make_tool):
        server = ToolboxServer()
        tool = make_tool("SELECT 1 AS one")
        server.register_tool("one", tool)
        with pytest.raises(ConfigValidationError):
            server.register_tool("one", tool)

    def test_duplicate_source_name(self, source):
        server = ToolboxServer()
        server.add_source(source)
        with pytest.raises(ConfigValidationError):
            server.add_source(source)

    def test_invoke_unknown_tool(self, make_tool):
        server = ToolboxServer()
        server.register_tool("one", make_tool("SELECT 1 AS one"))
        response = asyncio.run(server.invoke("two", {}))
        assert response["code"] == 4004
        assert response["data"]["details"]["available_tools"] == ["one"]

    def test_invoke(self, make_tool):
        server = ToolboxServer()
        server.register_tool("one", make_tool("SELECT 1 AS one"))
        response = asyncio.run(server.invoke("one", {}, trace_id="abc", session_id="s1"))
        assert response["code"] == 0
        assert response["data"]["result"] == [{"one": 1}]
        assert response["meta"]["trace_id"] == "abc"
        assert response["meta"]["session_id"] == "s1"
        assert response["meta"]["execution_time_ms"] >= 0

    def test_timeout_response(self, make_tool):
        server = ToolboxServer()
        server.register_tool("slow", make_tool(
            "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) SELECT COUNT(*) FROM c"
        ))
        response = asyncio.run(server.invoke("slow", {}, timeout=0.2))
        assert response["code"] == 5006
        assert response["data"]["error"] == "QueryExecutionError"

    def test_toolset(self, make_tool):
        server = ToolboxServer(version="1.2.3")
        server.register_tool("one", make_tool("SELECT 1 AS one"))
        toolset = server.toolset()
        assert toolset["serverVersion"] == "1.2.3"
        assert toolset["tools"]["one"]["parameters"] == []


class TestToolResponses:
    """The response envelope built around one invocation"""

    def test_error_envelope(self, make_tool):
        tool = make_tool("SELECT * FROM no_such_table", name="broken")
        response = asyncio.run(tool({}, trace_id="t-1"))
        assert response["code"] == 5001
        assert response["message"] == "Unable to execute query: no such table: no_such_table"
        assert response["data"]["stage"] == "execute"
        assert response["data"]["error"] == "QueryExecutionError"
        assert response["data"]["cause"].startswith("OperationalError(")
        assert response["data"]["details"] == {"statement": "SELECT * FROM no_such_table"}
        assert response["meta"]["tool"] == "broken"
        assert response["meta"]["resource_type"] == "sqlite-sql"
        assert response["meta"]["trace_id"] == "t-1"

    def test_parameter_error_envelope(self, make_tool):
        tool = make_tool(
            "SELECT * FROM t WHERE id = ?",
            parameters=[{"name": "id", "type": "integer", "description": "id"}],
        )
        response = asyncio.run(tool({}))
        assert response["code"] == 4002
        assert response["message"] == 'Unable to extract standard parameters: parameter "id" is required'
        assert response["data"]["details"] == {"parameter": "id"}
        assert response["data"]["cause"] is None
        assert response["data"]["inputs"] == {}

    @pytest.mark.parametrize("params", [{"id": 2 ** 70}, {"id": 1, "name": "\ud800"}])
    def test_unbindable_values_are_caller_errors(self, make_tool, params):
        """Oversized integers and lone surrogates never reach the driver"""
        tool = make_tool(
            "SELECT ? AS id, ? AS name",
            parameters=[
                {"name": "id", "type": "integer", "description": "id"},
                {"name": "name", "type": "string", "description": "name", "required": False},
            ],
        )
        response = asyncio.run(tool(params))
        assert response["code"] == 4002
        assert response["data"]["stage"] == "extract_params"

    def test_timeout_message(self, make_tool):
        tool = make_tool(
            "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) SELECT COUNT(*) FROM c"
        )
        response = asyncio.run(tool({}, timeout=0.2))
        assert response["message"] == "Request timeout: query did not finish within 0.2s"
        assert response["meta"]["execution_time_ms"] >= 150


class TestCli:
    """python -m toolbox"""

    def write_config(self, tmp_path, db_path, tools):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "sources": {"test-db": {"kind": "sqlite", "database": db_path}},
            "tools": tools,
        }))
        return str(path)

    def test_validate_ok(self, tmp_path, db_path, capsys):
        path = self.write_config(tmp_path, db_path, {
            "one": {"kind": "sqlite-sql", "source": "test-db", "description": "d", "statement": "SELECT 1"},
        })
        main(["validate", "--config", path])
        assert "Configuration is valid" in capsys.readouterr().out

    def test_validate_strict_failure(self, tmp_path, db_path, capsys):
        path = self.write_config(tmp_path, db_path, {
            "one": {"kind": "sqlite-sql", "source": "other", "description": "d", "statement": "SELECT 1"},
        })
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--config", path, "--strict", "--exit-on-error"])
        assert exc_info.value.code == 1
        assert "FAILED one" in capsys.readouterr().out

    def test_server_show(self, tmp_path, db_path, capsys):
        path = self.write_config(tmp_path, db_path, {
            "one": {"kind": "sqlite-sql", "source": "test-db", "description": "d", "statement": "SELECT 1"},
        })
        main(["server", "--config", path, "--show"])
        out = capsys.readouterr().out
        assert "test-db [sqlite]" in out
        assert "one [sqlite-sql] -> test-db" in out

    def test_missing_config(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["server", "--config", str(tmp_path / "nope.json")])
