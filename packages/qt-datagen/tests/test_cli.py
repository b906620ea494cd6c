"""CLI tests using Click's test runner."""

import json

import pytest
import yaml
from click.testing import CliRunner

from qt_datagen.cli import cli


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def query_file(tmp_path, scenario_a_sql):
    sql_file = tmp_path / "query.sql"
    sql_file.write_text(scenario_a_sql)
    return str(sql_file)


@pytest.fixture
def schema_file(tmp_path, sample_schema):
    path = tmp_path / "schema.yaml"
    path.write_text(yaml.safe_dump(sample_schema))
    return str(path)


class TestDataGenCLI:
    """Tests for qt-datagen commands."""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "generate" in result.output

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_extract_json(self, runner, query_file):
        result = runner.invoke(cli, ["extract", query_file, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"]["like"] == 1
        assert data["summary"]["where"] == 1
        assert data["alias_map"]["u"] == "users"

    def test_extract_rejects_other_extensions(self, runner, tmp_path):
        path = tmp_path / "query.csv"
        path.write_text("SELECT 1")
        result = runner.invoke(cli, ["extract", str(path)])
        assert result.exit_code != 0

    def test_plan_json(self, runner, query_file, schema_file):
        result = runner.invoke(cli, ["plan", query_file, "--schema", schema_file, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["generation_order"] == ["roles", "users"]
        assert data["teardown_order"] == ["users", "roles"]

    def test_plan_table(self, runner, query_file, schema_file):
        result = runner.invoke(cli, ["plan", query_file, "-s", schema_file])
        assert result.exit_code == 0
        assert "Teardown order: users -> roles" in result.output

    def test_generate_writes_script(self, runner, query_file, schema_file, tmp_path):
        output = tmp_path / "data.sql"
        result = runner.invoke(cli, [
            "generate", query_file, "-s", schema_file, "-n", "3", "--seed", "7", "-o", str(output),
        ])
        assert result.exit_code == 0
        script = output.read_text()
        assert script.startswith("-- 6 INSERT statements (mysql)")
        assert script.count("INSERT INTO `users`") == 3

    def test_generate_unknown_table(self, runner, tmp_path, schema_file):
        sql_file = tmp_path / "ghost.sql"
        sql_file.write_text("SELECT * FROM ghosts g")
        result = runner.invoke(cli, ["generate", str(sql_file), "-s", schema_file])
        assert result.exit_code != 0
        assert "ghosts" in result.output
