"""Pytest configuration and fixtures for qt-datagen tests."""

import random

import pytest

from qt_datagen.config import Settings
from qt_datagen.schemas import SchemaCatalog


# =============================================================================
# CATALOG FIXTURES
# =============================================================================

SAMPLE_SCHEMA = {
    "tables": {
        "roles": {
            "columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "name", "type": "varchar(50)", "nullable": False},
                {"name": "is_active", "type": "boolean"},
            ],
        },
        "users": {
            "columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "email", "type": "varchar(100)", "unique": True},
                {"name": "age", "type": "int"},
                {"name": "role_id", "type": "int", "references": "roles.id"},
                {"name": "status", "type": "varchar(20)"},
                {"name": "created_at", "type": "datetime"},
            ],
        },
        "user_roles": {
            "columns": [
                {"name": "user_id", "type": "int", "references": "users.id"},
                {"name": "role_id", "type": "int", "references": "roles.id"},
                {"name": "assigned_at", "type": "date"},
            ],
        },
        "orders": {
            "columns": [
                {"name": "id", "type": "int", "primary_key": True},
                {"name": "user_id", "type": "int", "references": "users.id"},
                {"name": "amount", "type": "decimal(10,2)"},
                {"name": "order_date", "type": "date"},
                {"name": "is_paid", "type": "tinyint(1)"},
            ],
        },
        "audit_log": {
            "columns": [
                {"name": "id", "type": "bigint", "primary_key": True, "identity": True},
                {"name": "message", "type": "text"},
                {"name": "row_hash", "type": "varchar(64)", "generated": True},
            ],
        },
    }
}


@pytest.fixture
def sample_schema() -> dict:
    """Raw schema mapping behind ``catalog``."""
    return SAMPLE_SCHEMA


@pytest.fixture
def catalog() -> SchemaCatalog:
    """Users/roles/orders catalog with a junction table and an identity table."""
    return SchemaCatalog.from_dict(SAMPLE_SCHEMA)


@pytest.fixture
def generated_only_catalog() -> SchemaCatalog:
    """A table with nothing left to insert once identity/generated columns go."""
    return SchemaCatalog.from_dict({
        "counters": {
            "columns": [
                {"name": "id", "type": "int", "primary_key": True, "identity": True},
                {"name": "total", "type": "int", "generated": True},
            ],
        },
    })


# =============================================================================
# SAMPLE SQL FIXTURES
# =============================================================================

@pytest.fixture
def scenario_a_sql() -> str:
    """LIKE plus a lower bound on a single aliased table."""
    return "SELECT * FROM users u WHERE u.email LIKE '%test%' AND u.age >= 18"


@pytest.fixture
def scenario_b_sql() -> str:
    """JOIN relationship with a boolean filter in the ON clause."""
    return (
        "SELECT u.email, r.name FROM users u "
        "JOIN roles r ON u.role_id = r.id AND r.is_active = TRUE"
    )


@pytest.fixture
def junction_sql() -> str:
    """Many-to-many through user_roles."""
    return (
        "SELECT u.email, r.name FROM user_roles ur "
        "JOIN users u ON ur.user_id = u.id "
        "JOIN roles r ON ur.role_id = r.id"
    )


@pytest.fixture
def between_sql() -> str:
    """Numeric BETWEEN on a decimal column, two FK hops from roles."""
    return "SELECT * FROM orders o WHERE o.amount BETWEEN 10 AND 20"


# =============================================================================
# RUNTIME FIXTURES
# =============================================================================

@pytest.fixture
def rng() -> random.Random:
    """Seeded request-scoped RNG."""
    return random.Random(1234)


@pytest.fixture
def settings() -> Settings:
    """Settings with no retry backoff and no live validation."""
    return Settings(
        default_dialect="mysql",
        default_row_count=5,
        seed=42,
        retry_backoff_ms=0,
        live_validation=False,
        _env_file=None,
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "duckdb: marks tests that require DuckDB"
    )
