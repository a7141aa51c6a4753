# core/clauses.py
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class Clause:
    """A named SQL predicate together with the values bound to its placeholders."""
    name: str
    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.sql.count("?") != len(self.params):
            raise ValueError(
                f"Clause {self.name!r} has {self.sql.count('?')} placeholders "
                f"but {len(self.params)} params"
            )


def placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def in_clause(name: str, column: str, values: Sequence[Any]) -> Clause:
    return Clause(name=name, sql=f"{column} IN ({placeholders(values)})", params=tuple(values))


def join_clauses(clauses: Iterable[Clause]) -> Tuple[str, List[Any]]:
    """AND together ``clauses``; an empty set yields ``TRUE``."""
    sql_parts: List[str] = []
    params: List[Any] = []
    for clause in clauses:
        sql_parts.append(f"({clause.sql})")
        params.extend(clause.params)
    if not sql_parts:
        return "TRUE", params
    return " AND ".join(sql_parts), params
