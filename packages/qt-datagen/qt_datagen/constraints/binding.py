"""Attach column-bound constraints to concrete (table, column) pairs.

The generator and the validator both read constraints through these
bindings, so a constraint is only ever checked on the columns it was
generated for.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..schemas import SchemaCatalog
from .aliases import resolve_alias
from .models import Constraint, ConstraintSet

logger = logging.getLogger(__name__)

# (table lower, column lower) -> constraints bound to that column
Bindings = Dict[Tuple[str, str], List[Constraint]]


def _owners(catalog: SchemaCatalog, tables: Sequence[str], column: str) -> List[str]:
    owners = []
    for name in tables:
        table = catalog.get(name)
        if table is not None and table.has_column(column):
            owners.append(table.name)
    return owners


def bind_constraints(
    constraints: ConstraintSet,
    catalog: SchemaCatalog,
    query_tables: Sequence[str],
    required_tables: Sequence[str] = (),
    alias_map: Optional[Mapping[str, str]] = None,
) -> Bindings:
    """Bind every constraint that names a column.

    Aliased constraints resolve through ``alias_map`` first, then the name
    heuristics, over query tables followed by the other required tables.
    They stay bound when the catalog lacks the column so a missing value
    is still reported. Bare-column constraints bind to every query table
    owning the column, or to the required tables owning it when no query
    table does.
    """
    bindings: Bindings = defaultdict(list)
    tables = list(query_tables) + [t for t in required_tables if t not in query_tables]

    for constraint in constraints.all():
        if not constraint.column:
            continue

        if constraint.table_alias:
            resolved = resolve_alias(constraint.table_alias, tables, alias_map)
            targets = [resolved] if resolved else []
        else:
            targets = (
                _owners(catalog, query_tables, constraint.column)
                or _owners(catalog, required_tables, constraint.column)
            )

        if not targets:
            logger.debug("Constraint %s did not bind to any required table", constraint.source_text)
        for table_name in targets:
            table = catalog.get(table_name)
            column = table.column(constraint.column) if table is not None else None
            key = (
                (table.name if table is not None else table_name).lower(),
                (column.name if column is not None else constraint.column).lower(),
            )
            bindings[key].append(constraint)
    return bindings
