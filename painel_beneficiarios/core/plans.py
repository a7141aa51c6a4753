# core/plans.py
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from painel_beneficiarios.core.clauses import Clause

ENTITY_LISTING_DENYLIST: Tuple[str, ...] = ("DENT", "AESP")
DETAILED_REPORT_DENYLIST: Tuple[str, ...] = ("DENT", "AESP", "STANDARD")


@dataclass(frozen=True)
class PlanExclusion:
    """
    Rejects plan names whose uppercased text contains any denylisted term.

    ``include_null`` controls what happens to a missing plan name. The SQL form
    mirrors the row-wise form: a NULL plan only passes when ``include_null`` is
    set, while an empty string is an ordinary name that contains no term.
    """
    terms: Tuple[str, ...]
    include_null: bool = False

    def __post_init__(self):
        cleaned = tuple(t.strip().strip("%").upper() for t in self.terms if t and t.strip().strip("%"))
        object.__setattr__(self, "terms", cleaned)

    @classmethod
    def from_terms(cls, terms: Iterable[str], include_null: bool = False) -> "PlanExclusion":
        return cls(terms=tuple(terms), include_null=include_null)

    def includes(self, plan: Optional[str]) -> bool:
        if plan is None:
            return self.include_null
        upper = plan.upper()
        return not any(term in upper for term in self.terms)

    def to_clause(self, alias: str = "b") -> Clause:
        column = f"{alias}.plano"
        if not self.terms:
            sql = "TRUE" if self.include_null else f"{column} IS NOT NULL"
            return Clause(name="plan_exclusion", sql=sql)
        # contains() matches literally, terms are not LIKE patterns
        checks = " AND ".join(f"NOT contains(upper({column}), ?)" for _ in self.terms)
        if self.include_null:
            sql = f"{column} IS NULL OR ({checks})"
        else:
            sql = f"{column} IS NOT NULL AND {checks}"
        return Clause(name="plan_exclusion", sql=sql, params=self.terms)


ENTITY_LISTING_EXCLUSION = PlanExclusion(terms=ENTITY_LISTING_DENYLIST)
DETAILED_REPORT_EXCLUSION = PlanExclusion(terms=DETAILED_REPORT_DENYLIST)
