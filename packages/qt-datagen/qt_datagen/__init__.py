"""qt-datagen: query-aware synthetic test data for SQL predicates.

Given a SQL query and a schema catalog, produce a small batch of
dependency-ordered INSERT statements whose rows make the query's
predicates true.
"""

from .codec import LiteralCodec, get_formatter
from .constraints import ConstraintExtractor, ConstraintSet
from .dependency import DependencyPlan, DependencyResolver
from .errors import (
    CodecError,
    DataGenError,
    GenerationExhaustedError,
    NoInsertableColumnsError,
    SchemaError,
    UnknownTableError,
)
from .generation import CoordinatedGenerator, UnconstrainedGenerator, ValueSynthesizer
from .pipeline import DataGenPipeline, PipelineResult, render_script
from .schemas import (
    ColumnSchema,
    Dialect,
    ForeignKeySchema,
    InsertStatement,
    SchemaCatalog,
    Severity,
    TableSchema,
    ValidationReport,
    Violation,
)
from .validation import ConstraintValidator, LiveQueryValidator, RetryOrchestrator

__version__ = "0.1.0"

__all__ = [
    "CodecError",
    "ColumnSchema",
    "ConstraintExtractor",
    "ConstraintSet",
    "ConstraintValidator",
    "CoordinatedGenerator",
    "DataGenError",
    "DataGenPipeline",
    "DependencyPlan",
    "DependencyResolver",
    "Dialect",
    "ForeignKeySchema",
    "GenerationExhaustedError",
    "InsertStatement",
    "LiteralCodec",
    "LiveQueryValidator",
    "NoInsertableColumnsError",
    "PipelineResult",
    "RetryOrchestrator",
    "SchemaCatalog",
    "SchemaError",
    "Severity",
    "TableSchema",
    "UnconstrainedGenerator",
    "UnknownTableError",
    "ValidationReport",
    "ValueSynthesizer",
    "Violation",
    "get_formatter",
    "render_script",
]
