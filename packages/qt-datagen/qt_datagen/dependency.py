"""Required-table discovery and insert/teardown ordering."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .constraints.aliases import build_alias_map, query_tables
from .constraints.patterns import clean_sql
from .errors import SchemaError, UnknownTableError
from .schemas import SchemaCatalog, TableSchema

logger = logging.getLogger(__name__)


@dataclass
class DependencyPlan:
    """Tables a query needs and the orders to insert/delete them in.

    ``required_tables`` is the FK closure of ``query_tables``, listed in
    generation order. Names use the catalog's casing.
    """

    query_tables: List[str]
    required_tables: List[str]
    generation_order: List[str]
    teardown_order: List[str]
    alias_map: Dict[str, str] = field(default_factory=dict)
    priorities: Dict[str, int] = field(default_factory=dict)

    def priority(self, table_name: str) -> int:
        return self.priorities.get(table_name.lower(), 0)

    def requires(self, table_name: str) -> bool:
        return table_name.lower() in {t.lower() for t in self.required_tables}

    def to_dict(self) -> Dict[str, object]:
        return {
            "query_tables": list(self.query_tables),
            "required_tables": list(self.required_tables),
            "generation_order": list(self.generation_order),
            "teardown_order": list(self.teardown_order),
            "priorities": dict(self.priorities),
        }


def _order_key(table: TableSchema):
    return (table.fk_count, table.name.lower())


class DependencyResolver:
    """Expand a query's tables through FK edges and order them."""

    def __init__(self, catalog: SchemaCatalog, dialect: Optional[str] = None):
        self.catalog = catalog
        self.dialect = dialect

    def resolve(self, sql: str, alias_map: Optional[Mapping[str, str]] = None) -> DependencyPlan:
        alias_map = dict(alias_map) if alias_map else build_alias_map(clean_sql(sql), self.dialect)
        named = query_tables(alias_map)
        if not named:
            raise SchemaError("No tables found in query FROM/JOIN clauses")

        found: List[TableSchema] = []
        for name in named:
            table = self.catalog.get(name)
            if table is None:
                logger.warning("Table %s is not in the schema catalog; skipping", name)
                continue
            found.append(table)
        if not found:
            raise UnknownTableError(named[0])

        closure = self._closure(found)
        generation = self._generation_order(closure)
        teardown = list(reversed(generation))
        priorities = {t.name.lower(): t.fk_count for t in closure.values()}

        # Re-point aliases at catalog casing
        canonical = {}
        for alias, table_name in alias_map.items():
            table = self.catalog.get(table_name)
            if table is not None:
                canonical[alias] = table.name

        plan = DependencyPlan(
            query_tables=[t.name for t in found],
            required_tables=list(generation),
            generation_order=generation,
            teardown_order=teardown,
            alias_map=canonical,
            priorities=priorities,
        )
        logger.info(
            "Resolved %d query tables to %d required tables: %s",
            len(found), len(generation), " -> ".join(generation),
        )
        return plan

    def _closure(self, start: List[TableSchema]) -> Dict[str, TableSchema]:
        """Follow FK edges transitively from the query tables."""
        closure: Dict[str, TableSchema] = {}
        pending = list(start)
        while pending:
            table = pending.pop()
            key = table.name.lower()
            if key in closure:
                continue
            closure[key] = table
            for fk in table.foreign_keys:
                parent = self.catalog.get(fk.referenced_table)
                if parent is None:
                    raise UnknownTableError(fk.referenced_table)
                if parent.name.lower() not in closure:
                    logger.debug("%s.%s pulls in %s", table.name, fk.column, parent.name)
                    pending.append(parent)
        return closure

    def _generation_order(self, closure: Dict[str, TableSchema]) -> List[str]:
        """Parents before children; ties broken by (FK count, name).

        When the FK graph is already ordered by FK count this is exactly
        the ascending (FK count, name) sort.
        """
        parents: Dict[str, set] = {}
        for key, table in closure.items():
            parents[key] = {
                fk.referenced_table.lower()
                for fk in table.foreign_keys
                if fk.referenced_table.lower() != key
            }

        order: List[str] = []
        placed: set = set()
        remaining = dict(closure)
        while remaining:
            ready = [t for k, t in remaining.items() if parents[k] <= placed]
            if not ready:
                # FK cycle: break it at the lowest-key table
                ready = [min(remaining.values(), key=_order_key)]
                logger.warning("FK cycle among %s; breaking at %s", sorted(remaining), ready[0].name)
            nxt = min(ready, key=_order_key)
            order.append(nxt.name)
            placed.add(nxt.name.lower())
            del remaining[nxt.name.lower()]
        return order
