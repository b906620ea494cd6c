"""Tests for ConstraintExtractor.

Covers each constraint family, alias-before-bare precedence, literal
quoting, and the never-raises contract.
"""

import pytest
from sqlglot.errors import ParseError

from qt_datagen.constraints import extractor as extractor_module
from qt_datagen.constraints import (
    ConstraintExtractor,
    ConstraintKind,
    DateKind,
    InKind,
    LikeKind,
    ValueKind,
    clean_sql,
    where_clause,
)


@pytest.fixture
def extractor() -> ConstraintExtractor:
    return ConstraintExtractor(dialect="mysql")


class TestScenarios:
    """The two reference queries."""

    def test_scenario_a_like_and_comparison(self, extractor, scenario_a_sql):
        """LIKE '%test%' and age >= 18 become one LikePattern and one WhereConstraint."""
        cs = extractor.extract(scenario_a_sql)

        assert len(cs.likes) == 1
        like = cs.likes[0]
        assert (like.table_alias, like.column) == ("u", "email")
        assert like.required_substring == "test"
        assert like.like_kind == LikeKind.CONTAINS

        assert len(cs.where) == 1
        where = cs.where[0]
        assert (where.table_alias, where.column, where.operator, where.value) == ("u", "age", ">=", "18")
        assert cs.total_count == 2

    def test_scenario_b_join_relationship_and_filter(self, extractor, scenario_b_sql):
        """ON u.role_id = r.id AND r.is_active = TRUE yields two JoinConstraints."""
        cs = extractor.extract(scenario_b_sql)

        assert len(cs.joins) == 2
        relationship = [j for j in cs.joins if not j.is_filter]
        filters = [j for j in cs.joins if j.is_filter]
        assert len(relationship) == 1 and len(filters) == 1

        rel = relationship[0]
        assert (rel.table_alias, rel.column, rel.right_alias, rel.right_column) == ("u", "role_id", "r", "id")
        assert rel.right_table == "roles"

        flt = filters[0]
        assert (flt.table_alias, flt.column, flt.operator, flt.value) == ("r", "is_active", "=", "TRUE")

    def test_alias_map_built_from_from_and_join(self, extractor, scenario_b_sql):
        """Aliases in FROM/JOIN are mapped to their tables."""
        cs = extractor.extract(scenario_b_sql)
        assert cs.alias_map["u"] == "users"
        assert cs.alias_map["r"] == "roles"


class TestWhereConstraints:
    """Equality and comparison predicates from the WHERE clause."""

    def test_bare_column_comparison(self, extractor):
        """A column without alias is captured with an empty alias."""
        cs = extractor.extract("SELECT * FROM users WHERE age > 21")
        assert len(cs.where) == 1
        assert cs.where[0].table_alias == ""
        assert cs.where[0].operator == ">"
        assert cs.where[0].value == "21"

    def test_quoted_value_with_escaped_quote(self, extractor):
        """Doubled single quotes are unescaped."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.name = 'O''Brien'")
        assert cs.where[0].value == "O'Brien"

    def test_double_quoted_value(self, extractor):
        """Double-quoted literals are accepted."""
        cs = extractor.extract('SELECT * FROM users u WHERE u.status = "active"')
        assert cs.where[0].value == "active"

    def test_column_to_column_is_not_a_literal(self, extractor):
        """alias.col = alias.col in WHERE is not a value constraint."""
        cs = extractor.extract("SELECT * FROM users u, orders o WHERE o.user_id = u.id")
        assert cs.where == ()

    def test_aliased_column_not_captured_twice_as_bare(self, extractor):
        """The bare pass skips columns preceded by an alias."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.age >= 18 AND u.age <= 65")
        assert len(cs.where) == 2
        assert all(w.table_alias == "u" for w in cs.where)

    def test_function_call_values_are_ignored(self, extractor):
        """NOW() on the right-hand side is not a literal."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.created_at < NOW()")
        assert cs.where == ()

    def test_fractional_value_is_not_boolean(self, extractor):
        """The 0 of 0.5 is not a boolean literal."""
        cs = extractor.extract("SELECT * FROM orders o WHERE o.amount = 0.5")
        assert cs.booleans == ()
        assert [(w.column, w.operator, w.value) for w in cs.where] == [("amount", "=", "0.5")]

    def test_where_clause_stops_at_order_by(self):
        """ORDER BY terminates the WHERE clause."""
        clean = clean_sql("SELECT * FROM t WHERE a = 1 ORDER BY b")
        assert where_clause(clean) == "a = 1"


class TestPatternFamilies:
    """LIKE, BETWEEN, IN, NULL, EXISTS."""

    def test_like_kinds(self, extractor):
        """Leading/trailing wildcards decide the LikeKind."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE u.email LIKE '%.com' AND u.name LIKE 'Jo%'"
        )
        kinds = {like.column: like.like_kind for like in cs.likes}
        assert kinds == {"email": LikeKind.ENDS_WITH, "name": LikeKind.STARTS_WITH}

    def test_like_without_literal_is_skipped(self, extractor):
        """A pattern of only wildcards constrains nothing."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.email LIKE '%'")
        assert cs.likes == ()

    def test_between_numeric(self, extractor, between_sql):
        """Numeric bounds give ValueKind.NUMERIC."""
        cs = extractor.extract(between_sql)
        assert len(cs.betweens) == 1
        b = cs.betweens[0]
        assert (b.min_value, b.max_value, b.value_kind) == ("10", "20", ValueKind.NUMERIC)

    def test_between_dates(self, extractor):
        """Date bounds give ValueKind.DATE."""
        cs = extractor.extract(
            "SELECT * FROM orders o WHERE o.order_date BETWEEN '2024-01-01' AND '2024-12-31'"
        )
        assert cs.betweens[0].value_kind == ValueKind.DATE

    def test_in_string_list(self, extractor):
        """Quoted IN values form a STRING_LIST."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.status IN ('active', 'pending')")
        assert cs.in_clauses[0].in_kind == InKind.STRING_LIST
        assert cs.in_clauses[0].values == ("active", "pending")

    def test_in_numeric_list(self, extractor):
        """Unquoted numbers form a NUMERIC_LIST."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.id IN (1, 2, 3)")
        assert cs.in_clauses[0].in_kind == InKind.NUMERIC_LIST
        assert cs.in_clauses[0].values == ("1", "2", "3")

    def test_in_subquery(self, extractor):
        """IN (SELECT ...) is recorded as a subquery."""
        cs = extractor.extract("SELECT * FROM users u WHERE u.id IN (SELECT user_id FROM orders)")
        assert cs.in_clauses[0].in_kind == InKind.SUBQUERY
        assert cs.in_clauses[0].subquery.startswith("SELECT user_id")

    def test_null_checks(self, extractor):
        """IS NULL and IS NOT NULL are both captured."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE u.status IS NULL AND u.email IS NOT NULL"
        )
        flags = {n.column: n.is_null for n in cs.null_checks}
        assert flags == {"status": True, "email": False}

    def test_not_exists_is_not_also_exists(self, extractor):
        """NOT EXISTS is masked before the positive EXISTS scan."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE NOT EXISTS (SELECT 1 FROM orders o WHERE o.user_id = u.id)"
        )
        assert len(cs.exists) == 1
        assert cs.exists[0].is_exists is False
        assert cs.where == ()

    def test_exists(self, extractor):
        """Positive EXISTS."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE EXISTS (SELECT 1 FROM orders o WHERE o.user_id = u.id)"
        )
        assert len(cs.exists) == 1
        assert cs.exists[0].is_exists is True


class TestDateAndBoolean:
    """Date functions and boolean literals."""

    def test_year_equals(self, extractor):
        """YEAR(col) = yyyy."""
        cs = extractor.extract("SELECT * FROM orders o WHERE YEAR(o.order_date) = 2023")
        assert len(cs.dates) == 1
        d = cs.dates[0]
        assert (d.table_alias, d.column, d.date_kind, d.value) == ("o", "order_date", DateKind.YEAR_EQUALS, "2023")
        assert cs.where == ()

    def test_extract_year_oracle(self):
        """EXTRACT(YEAR FROM col) = yyyy is the Oracle spelling."""
        cs = ConstraintExtractor("oracle").extract(
            "SELECT * FROM orders o WHERE EXTRACT(YEAR FROM o.order_date) = 2022"
        )
        assert cs.dates[0].date_kind == DateKind.YEAR_EQUALS
        assert cs.dates[0].value == "2022"

    def test_date_sub_interval(self, extractor):
        """DATE_SUB stores a negative amount."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE u.created_at >= DATE_SUB(NOW(), INTERVAL 30 DAY)"
        )
        assert len(cs.dates) == 1
        d = cs.dates[0]
        assert d.date_kind == DateKind.DATE_INTERVAL
        assert d.operator == ">="
        assert d.value == "-30_DAY"
        assert d.interval == (-30, "DAY")
        assert cs.where == ()

    def test_reversed_interval_mirrors_operator(self, extractor):
        """DATE_ADD(...) > col is stored as col < DATE_ADD(...)."""
        cs = extractor.extract(
            "SELECT * FROM orders o WHERE DATE_ADD(CURDATE(), INTERVAL 7 DAYS) > o.order_date"
        )
        assert len(cs.dates) == 1
        assert cs.dates[0].operator == "<"
        assert cs.dates[0].value == "7_DAY"
        assert cs.dates[0].column == "order_date"

    def test_boolean_numeric_literal(self, extractor):
        """= 1 is captured as a true boolean."""
        cs = extractor.extract("SELECT * FROM orders o WHERE o.is_paid = 1")
        assert len(cs.booleans) == 1
        assert cs.booleans[0].boolean_value is True

    def test_boolean_false(self, extractor):
        """= FALSE is captured as a false boolean."""
        cs = extractor.extract("SELECT * FROM roles r WHERE r.is_active = FALSE")
        assert cs.booleans[0].boolean_value is False


class TestRobustness:
    """Extraction never raises and ignores comments."""

    def test_comments_are_stripped(self, extractor):
        """Predicates inside comments are not extracted."""
        sql = """
        -- WHERE u.age > 99
        SELECT * FROM users u /* u.status = 'gone' */ WHERE u.age > 21
        """
        cs = extractor.extract(sql)
        assert [(w.column, w.value) for w in cs.where] == [("age", "21")]

    @pytest.mark.parametrize("sql", ["", "not sql at all ((", "SELECT", "WHERE = = ="])
    def test_garbage_does_not_raise(self, extractor, sql):
        """Malformed input yields an (often empty) ConstraintSet."""
        cs = extractor.extract(sql)
        assert cs.total_count >= 0

    def test_summary_counts_every_kind(self, extractor, scenario_a_sql):
        """summary() reports all nine kinds."""
        summary = extractor.extract(scenario_a_sql).summary()
        assert set(summary) == {k.value for k in ConstraintKind}
        assert summary["like"] == 1
        assert summary["where"] == 1


class TestSyntaxTree:
    """Predicates are read off the parsed query."""

    def test_negated_families_are_skipped(self, extractor):
        """NOT LIKE, NOT IN and NOT BETWEEN constrain nothing positively."""
        cs = extractor.extract(
            "SELECT * FROM users u WHERE u.email NOT LIKE '%spam%' "
            "AND u.status NOT IN ('banned') AND u.age NOT BETWEEN 1 AND 5"
        )
        assert (cs.likes, cs.in_clauses, cs.betweens) == ((), (), ())

    def test_join_filter_is_not_a_where(self, extractor, scenario_b_sql):
        """ON-clause literals belong to the join, not the WHERE clause."""
        cs = extractor.extract(scenario_b_sql)
        assert cs.where == ()

    def test_literal_on_the_left_mirrors_operator(self, extractor):
        cs = extractor.extract("SELECT * FROM users u WHERE 18 <= u.age")
        assert [(w.column, w.operator, w.value) for w in cs.where] == [("age", ">=", "18")]

    def test_negative_number(self, extractor):
        cs = extractor.extract("SELECT * FROM orders o WHERE o.amount > -5")
        assert cs.where[0].value == "-5"

    def test_join_filters_follow_their_join(self, extractor):
        """Each ON clause contributes its own relationship and filter."""
        cs = extractor.extract(
            "SELECT * FROM orders o "
            "JOIN users u ON o.user_id = u.id AND u.age > 30 "
            "JOIN roles r ON u.role_id = r.id"
        )
        described = [(j.table_alias, j.column, j.right_table, j.value) for j in cs.joins]
        assert described == [
            ("o", "user_id", "users", None),
            ("u", "age", "users", "30"),
            ("u", "role_id", "roles", None),
        ]

    def test_nested_in_subquery(self, extractor):
        cs = extractor.extract(
            "SELECT * FROM users u WHERE u.id IN (SELECT o.user_id FROM orders o WHERE o.amount > 100)"
        )
        subqueries = [c for c in cs.in_clauses if c.in_kind == InKind.SUBQUERY]
        assert len(subqueries) == 1
        assert "orders" in subqueries[0].subquery


class TestPatternFallback:
    """Text sqlglot rejects is scanned with the regex passes."""

    @pytest.fixture(autouse=True)
    def unparseable(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ParseError("refused")

        monkeypatch.setattr(extractor_module.sqlglot, "parse", refuse)

    def test_scenario_a(self, extractor, scenario_a_sql):
        cs = extractor.extract(scenario_a_sql)
        assert cs.likes[0].required_substring == "test"
        assert [(w.column, w.operator, w.value) for w in cs.where] == [("age", ">=", "18")]

    def test_scenario_b(self, extractor, scenario_b_sql):
        cs = extractor.extract(scenario_b_sql)
        assert len(cs.joins) == 2
        assert cs.alias_map["r"] == "roles"

    def test_fractional_value_is_not_boolean(self, extractor):
        cs = extractor.extract("SELECT * FROM orders o WHERE o.amount = 0.5")
        assert cs.booleans == ()
        assert cs.where[0].value == "0.5"
