"""Table alias discovery and resolution.

The explicit alias map is read off FROM/JOIN clauses (sqlglot AST, with
a regex fallback for text sqlglot rejects). ``resolve_alias`` consults it
first and only falls back to name heuristics when the alias is unknown.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

logger = logging.getLogger(__name__)

_KEYWORDS = {
    "where", "on", "join", "inner", "left", "right", "full", "outer", "cross",
    "natural", "group", "order", "having", "limit", "union", "using", "as",
    "set", "values", "select", "and", "or", "not", "lateral", "straight_join",
}

_FROM_JOIN = re.compile(
    r"\b(?:FROM|JOIN)\s+([\w$.`\"\[\]]+)(?:\s+(?:AS\s+)?([\w$]+))?",
    re.IGNORECASE,
)


def _singularize(token: str) -> str:
    """Best-effort singularization for alias/table matching."""
    if token.endswith("ies") and len(token) > 3:
        return token[:-3] + "y"
    if token.endswith("ses") and len(token) > 3:
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss") and len(token) > 1:
        return token[:-1]
    return token


def table_acronym(table_name: str) -> str:
    """First letters of underscore-separated words (user_roles -> ur).

    Single-word names use their first two characters (users -> us).
    """
    tokens = [t for t in table_name.lower().split("_") if t]
    if not tokens:
        return ""
    if len(tokens) == 1:
        return tokens[0][:2]
    return "".join(t[0] for t in tokens)


def _strip_quotes(name: str) -> str:
    return name.strip("`\"[]")


def build_alias_map(sql: str, dialect: Optional[str] = None) -> Dict[str, str]:
    """Map lower-cased alias and bare table name -> table name.

    CTE names are excluded; they are not base tables.
    """
    try:
        parsed = sqlglot.parse(sql, read=dialect)
    except SqlglotError as e:
        logger.debug("sqlglot could not parse query, using regex alias scan: %s", e)
        return _regex_alias_map(sql)

    alias_map: Dict[str, str] = {}
    for tree in parsed:
        if tree is None:
            continue
        cte_names = {cte.alias.lower() for cte in tree.find_all(exp.CTE) if cte.alias}
        for table in tree.find_all(exp.Table):
            name = table.name
            if not name or name.lower() in cte_names:
                continue
            alias_map.setdefault(name.lower(), name)
            if table.alias:
                alias_map[table.alias.lower()] = name

    if not alias_map:
        return _regex_alias_map(sql)
    return alias_map


def _regex_alias_map(sql: str) -> Dict[str, str]:
    alias_map: Dict[str, str] = {}
    for match in _FROM_JOIN.finditer(sql):
        raw_name = _strip_quotes(match.group(1))
        if raw_name.startswith("("):
            continue
        name = _strip_quotes(raw_name.split(".")[-1])
        if not name or name.lower() in _KEYWORDS:
            continue
        alias_map.setdefault(name.lower(), name)
        alias = match.group(2)
        if alias and alias.lower() not in _KEYWORDS:
            alias_map[alias.lower()] = name
    return alias_map


def query_tables(alias_map: Mapping[str, str]) -> List[str]:
    """Distinct table names in first-seen order."""
    seen = []
    lowered = set()
    for table in alias_map.values():
        if table.lower() not in lowered:
            lowered.add(table.lower())
            seen.append(table)
    return seen


# Tried in order; alias and table are lower-cased.
_ALIAS_RULES = (
    lambda a, t: a == t,
    lambda a, t: len(a) <= 3 and t.startswith(a),
    lambda a, t: a == table_acronym(t),
    lambda a, t: a in t or t in a,
    lambda a, t: _singularize(a) == _singularize(t) or a + "s" == t or t + "s" == a,
)


def resolve_alias(
    alias: str,
    tables: Sequence[str],
    alias_map: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Resolve ``alias`` to one of ``tables`` deterministically.

    Order: explicit alias map, exact name, short prefix (<= 3 chars),
    acronym, substring, singular/plural. Within one rule the first table
    in ``tables`` order wins. An empty alias resolves to None; callers
    treat it as "any table owning the column".
    """
    if not alias:
        return None

    by_lower = {t.lower(): t for t in tables}
    if alias_map:
        mapped = alias_map.get(alias.lower())
        if mapped and mapped.lower() in by_lower:
            return by_lower[mapped.lower()]

    a = alias.lower()
    for rule in _ALIAS_RULES:
        for table in tables:
            if rule(a, table.lower()):
                return table
    return None

