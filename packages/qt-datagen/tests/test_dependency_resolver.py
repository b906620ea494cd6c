"""Tests for DependencyResolver: FK closure and insert/teardown ordering."""

import pytest

from qt_datagen.dependency import DependencyResolver
from qt_datagen.errors import SchemaError, UnknownTableError
from qt_datagen.schemas import SchemaCatalog


class TestDependencyResolver:
    """Closure, ordering, and failure modes."""

    def test_fk_closure_pulls_in_parents(self, catalog, between_sql):
        """orders -> users -> roles are all required."""
        plan = DependencyResolver(catalog, "mysql").resolve(between_sql)
        assert plan.query_tables == ["orders"]
        assert set(plan.required_tables) == {"orders", "users", "roles"}

    def test_generation_order_parents_first(self, catalog, between_sql):
        """Parents precede children; teardown is the reverse."""
        plan = DependencyResolver(catalog).resolve(between_sql)
        assert plan.generation_order == ["roles", "users", "orders"]
        assert plan.teardown_order == ["orders", "users", "roles"]

    def test_priority_is_fk_count(self, catalog, junction_sql):
        """priority(table) equals the table's FK count."""
        plan = DependencyResolver(catalog).resolve(junction_sql)
        assert plan.priority("roles") == 0
        assert plan.priority("users") == 1
        assert plan.priority("user_roles") == 2
        assert plan.generation_order == ["roles", "users", "user_roles"]

    def test_unknown_query_table_is_skipped(self, catalog):
        """A table missing from the catalog is skipped when others resolve."""
        plan = DependencyResolver(catalog).resolve(
            "SELECT * FROM users u JOIN ghosts g ON g.user_id = u.id"
        )
        assert plan.query_tables == ["users"]
        assert "ghosts" not in plan.required_tables

    def test_all_query_tables_unknown(self, catalog):
        """Nothing resolvable is a hard error."""
        with pytest.raises(UnknownTableError):
            DependencyResolver(catalog).resolve("SELECT * FROM ghosts")

    def test_missing_fk_parent(self):
        """An FK to a table absent from the catalog is a hard error."""
        catalog = SchemaCatalog.from_dict({
            "child": {"columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "parent_id", "type": "int", "references": "parent.id"},
            ]},
        })
        with pytest.raises(UnknownTableError) as exc:
            DependencyResolver(catalog).resolve("SELECT * FROM child")
        assert exc.value.table_name == "parent"

    def test_query_without_tables(self, catalog):
        """A query with no FROM clause cannot be planned."""
        with pytest.raises(SchemaError):
            DependencyResolver(catalog).resolve("SELECT 1")

    def test_fk_cycle_is_broken(self):
        """Mutually referencing tables are both generated."""
        catalog = SchemaCatalog.from_dict({
            "a": {"columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "b_id", "type": "int", "references": "b.id"},
            ]},
            "b": {"columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "a_id", "type": "int", "references": "a.id"},
            ]},
        })
        plan = DependencyResolver(catalog).resolve("SELECT * FROM a")
        assert plan.generation_order == ["a", "b"]

    def test_alias_map_uses_catalog_casing(self):
        """Aliases point at the catalog's spelling of a table."""
        catalog = SchemaCatalog.from_dict({
            "Users": {"columns": [{"name": "id", "type": "int", "primary_key": True}]},
        })
        plan = DependencyResolver(catalog).resolve("select * from users u")
        assert plan.alias_map["u"] == "Users"
        assert plan.query_tables == ["Users"]

    def test_explicit_alias_map_is_used(self, catalog):
        """A caller-supplied alias map replaces re-parsing."""
        plan = DependencyResolver(catalog).resolve("ignored", alias_map={"r": "roles"})
        assert plan.query_tables == ["roles"]
        assert plan.requires("ROLES")
