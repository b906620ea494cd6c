"""Tests for catalog loading and the schema data models."""

import json

import pytest
import yaml

from qt_datagen.errors import SchemaError, UnknownTableError
from qt_datagen.schemas import ColumnSchema, Dialect, SchemaCatalog, Severity, ValidationReport, Violation


MYSQL_DDL = """
CREATE TABLE roles (
    id INT AUTO_INCREMENT PRIMARY KEY,
    name VARCHAR(50) NOT NULL
);
CREATE TABLE users (
    id INT PRIMARY KEY,
    email VARCHAR(100) UNIQUE,
    role_id INT,
    FOREIGN KEY (role_id) REFERENCES roles(id)
);
"""


class TestCatalogLoading:
    """Catalogs from mappings, files and DDL."""

    def test_from_mysql_ddl(self):
        catalog = SchemaCatalog.from_ddl(MYSQL_DDL, dialect="mysql")
        assert catalog.table_names == ["roles", "users"]

        roles = catalog.lookup("roles")
        assert roles.column("id").is_identity
        assert roles.column("id").is_primary_key
        assert roles.column("name").nullable is False
        assert roles.column("name").max_length == 50

        users = catalog.lookup("users")
        assert users.column("email").is_unique
        assert users.column("email").max_length == 100
        fk = users.foreign_key_for("role_id")
        assert (fk.referenced_table, fk.referenced_column) == ("roles", "id")

    def test_postgres_serial_is_identity(self):
        catalog = SchemaCatalog.from_ddl(
            "CREATE TABLE items (id SERIAL PRIMARY KEY, price NUMERIC(8,2))", dialect="postgres"
        )
        items = catalog.lookup("items")
        assert items.column("id").is_identity
        assert items.column("price").numeric_precision == 8
        assert items.column("price").numeric_scale == 2

    def test_ddl_without_tables(self):
        with pytest.raises(SchemaError):
            SchemaCatalog.from_ddl("SELECT 1")

    def test_from_dict_inline_references(self, catalog):
        orders = catalog.lookup("orders")
        assert orders.fk_count == 1
        assert orders.foreign_key_for("user_id").referenced_table == "users"
        assert catalog.lookup("user_roles").referenced_tables == ["users", "roles"]

    def test_from_dict_column_mapping(self):
        catalog = SchemaCatalog.from_dict({
            "t": {"columns": {"id": {"type": "int", "primary_key": True}, "label": "varchar(10)"}},
        })
        table = catalog.lookup("t")
        assert [c.name for c in table.columns] == ["id", "label"]
        assert table.column("label").max_length == 10

    def test_from_yaml_and_json_files(self, tmp_path, sample_schema):
        yaml_path = tmp_path / "schema.yaml"
        yaml_path.write_text(yaml.safe_dump(sample_schema))
        json_path = tmp_path / "schema.json"
        json_path.write_text(json.dumps(sample_schema))
        assert len(SchemaCatalog.from_file(yaml_path)) == 5
        assert len(SchemaCatalog.from_file(json_path)) == 5

    def test_from_sql_file(self, tmp_path):
        path = tmp_path / "schema.sql"
        path.write_text(MYSQL_DDL)
        assert "users" in SchemaCatalog.from_file(path, dialect="mysql")

    def test_unsupported_file_type(self, tmp_path):
        path = tmp_path / "schema.txt"
        path.write_text("")
        with pytest.raises(SchemaError):
            SchemaCatalog.from_file(path)

    def test_lookup_is_case_insensitive(self, catalog):
        assert "USERS" in catalog
        assert catalog.lookup("Users").name == "users"
        with pytest.raises(UnknownTableError):
            catalog.lookup("ghosts")


class TestColumnSchema:
    """Type parsing and type families."""

    @pytest.mark.parametrize("name,data_type,family", [
        ("is_paid", "tinyint(1)", "boolean"),
        ("is_deleted", "tinyint", "boolean"),
        ("qty", "tinyint", "integer"),
        ("amount", "number(10,2)", "decimal"),
        ("id", "number(10)", "integer"),
        ("created_at", "timestamp", "datetime"),
        ("size", "enum('s','m')", "enum"),
        ("payload", "jsonb", "json"),
        ("label", "varchar2(30)", "string"),
    ])
    def test_type_family(self, name, data_type, family):
        assert ColumnSchema(name, data_type).type_family == family

    def test_lengths_and_precision(self):
        assert ColumnSchema("code", "varchar(20)").max_length == 20
        price = ColumnSchema("price", "decimal(12, 4)")
        assert (price.numeric_precision, price.numeric_scale) == (12, 4)

    def test_enum_values_unescaped(self):
        assert ColumnSchema("mood", "enum('ok','it''s fine')").enum_values == ["ok", "it's fine"]

    def test_primary_key_is_not_null(self):
        assert ColumnSchema("id", "int", is_primary_key=True).nullable is False

    def test_insertable_columns(self, catalog):
        audit = catalog.lookup("audit_log")
        assert [c.name for c in audit.insertable_columns()] == ["message"]
        assert [c.name for c in audit.insertable_columns(preserve_ids=True)] == ["id", "message"]


class TestReportsAndDialects:
    """ValidationReport scoring and dialect parsing."""

    def test_empty_report_passes(self):
        report = ValidationReport()
        assert report.pass_rate == 100.0
        assert report.all_passed

    def test_record_and_threshold(self):
        report = ValidationReport()
        report.record(True)
        report.record(False, Violation("like", "users", "email", "LIKE '%a%'", "'b'", Severity.CRITICAL))
        report.record(True)
        assert report.pass_rate == pytest.approx(66.666, rel=1e-3)
        assert report.is_acceptable(60.0)
        assert not report.is_acceptable(70.0)
        assert len(report.violations_by_severity(Severity.CRITICAL)) == 1
        assert report.to_dict()["pass_rate"] == 66.67

    def test_schema_violations_do_not_score(self):
        report = ValidationReport()
        report.schema_violations.append(Violation("not_null", "roles", "name", "NOT NULL", "NULL"))
        assert report.pass_rate == 100.0

    def test_dialect_parse(self):
        assert Dialect.parse("PostgreSQL") is Dialect.POSTGRES
        assert Dialect.parse("mariadb") is Dialect.MYSQL
        assert Dialect.parse(Dialect.ORACLE) is Dialect.ORACLE
        with pytest.raises(ValueError):
            Dialect.parse("sqlite")
