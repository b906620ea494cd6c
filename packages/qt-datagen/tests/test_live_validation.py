"""Live DuckDB round trip of generated data."""

import pytest

from qt_datagen.pipeline import DataGenPipeline
from qt_datagen.validation import LiveQueryValidator, duckdb_ddl


class TestDuckDBDDL:
    """Catalog rendered as DuckDB DDL."""

    def test_identity_uses_sequence(self, catalog):
        statements = duckdb_ddl(catalog, ["audit_log"])
        assert statements[0] == "CREATE SEQUENCE IF NOT EXISTS seq_audit_log_id START 1"
        assert "DEFAULT nextval('seq_audit_log_id')" in statements[1]
        assert '"row_hash" VARCHAR' in statements[1]

    def test_foreign_keys_need_created_parent(self, catalog):
        """An FK is declared only once its parent table exists."""
        ordered = duckdb_ddl(catalog, ["roles", "users"])
        assert 'REFERENCES "roles" ("id")' in ordered[1]
        reversed_order = duckdb_ddl(catalog, ["users", "roles"])
        assert "REFERENCES" not in reversed_order[0]

    def test_decimal_precision(self, catalog):
        ddl = duckdb_ddl(catalog, ["roles", "users", "orders"])[2]
        assert '"amount" DECIMAL(10, 2)' in ddl


@pytest.mark.duckdb
class TestLiveQueryValidator:
    """Generated rows make the query return results."""

    @pytest.mark.parametrize("dialect", ["duckdb", "postgres"])
    def test_generated_rows_match_query(self, catalog, settings, scenario_a_sql, dialect):
        result = DataGenPipeline(catalog, dialect, settings).run(scenario_a_sql, row_count=4, live_check=True)
        assert result.live_check is not None
        assert result.live_check.error is None
        assert result.live_check.ok
        assert result.live_check.actual_rows == 4

    def test_failure_is_reported_not_raised(self, catalog):
        outcome = LiveQueryValidator(catalog, "duckdb").check("SELECT * FROM ghosts", [], ["roles"])
        assert not outcome.ok
        assert outcome.error
        assert outcome.to_dict()["actual_rows"] == 0
