"""Exception hierarchy for qt-datagen.

Extraction misses are never errors. Schema problems are fatal and
propagate to the caller; attempt-level failures are absorbed by the
retry loop.
"""


class DataGenError(Exception):
    """Base class for all data generation failures."""


class SchemaError(DataGenError):
    """Raised when the catalog cannot support generation for a query."""


class UnknownTableError(SchemaError):
    """Raised when a required table is missing from the catalog."""

    def __init__(self, table_name: str):
        super().__init__(f"Table not found in schema catalog: {table_name}")
        self.table_name = table_name


class NoInsertableColumnsError(SchemaError):
    """Raised when every column of a table is generated or identity."""

    def __init__(self, table_name: str):
        super().__init__(
            f"Table {table_name} has no insertable columns "
            f"after excluding generated/identity columns"
        )
        self.table_name = table_name


class CodecError(DataGenError):
    """Raised when INSERT text cannot be decoded back into a record."""


class GenerationExhaustedError(DataGenError):
    """Raised when every generation attempt and fallback strategy failed."""

    def __init__(self, message: str, reasons=None):
        super().__init__(message)
        self.reasons = list(reasons or [])
