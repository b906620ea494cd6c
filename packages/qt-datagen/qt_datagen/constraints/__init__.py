"""Constraint extraction from SQL text."""

from .aliases import build_alias_map, resolve_alias, table_acronym
from .binding import Bindings, bind_constraints
from .extractor import ConstraintExtractor, clean_sql, where_clause
from .models import (
    CONSTRAINT_TYPES,
    BetweenConstraint,
    BooleanConstraint,
    Constraint,
    ConstraintKind,
    ConstraintSet,
    DateConstraint,
    DateKind,
    ExistsConstraint,
    InClauseConstraint,
    InKind,
    JoinConstraint,
    LikeKind,
    LikePattern,
    NullConstraint,
    ValueKind,
    WhereConstraint,
    require_exhaustive,
)

__all__ = [
    "CONSTRAINT_TYPES",
    "BetweenConstraint",
    "Bindings",
    "BooleanConstraint",
    "Constraint",
    "ConstraintExtractor",
    "ConstraintKind",
    "ConstraintSet",
    "DateConstraint",
    "DateKind",
    "ExistsConstraint",
    "InClauseConstraint",
    "InKind",
    "JoinConstraint",
    "LikeKind",
    "LikePattern",
    "NullConstraint",
    "ValueKind",
    "WhereConstraint",
    "bind_constraints",
    "build_alias_map",
    "clean_sql",
    "require_exhaustive",
    "resolve_alias",
    "table_acronym",
    "where_clause",
]
