# core/filters.py
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from painel_beneficiarios.core.clauses import Clause, in_clause, join_clauses
from painel_beneficiarios.core.eligibility import currently_valid_clause
from painel_beneficiarios.core.exceptions import ValidationError
from painel_beneficiarios.core.months import last_day_of_month
from painel_beneficiarios.core.plans import DETAILED_REPORT_EXCLUSION, PlanExclusion

logger = logging.getLogger(__name__)

TIPO_TODOS = "Todos"

BILLABLE_CLAIM = Clause(name="billable_claim", sql="p.evento IS NOT NULL")


@dataclass(frozen=True)
class FilterSpec:
    """
    AND-ed predicates over the beneficiary (``b``) and claim (``p``) tables.

    ``end`` is always the last day of its month.
    """
    start: date
    end: date
    beneficiary_clauses: Tuple[Clause, ...] = field(default_factory=tuple)
    claim_clauses: Tuple[Clause, ...] = field(default_factory=tuple)

    @property
    def clause_names(self) -> List[str]:
        return [c.name for c in self.beneficiary_clauses + self.claim_clauses]

    def where(self, extra: Iterable[Clause] = ()) -> Tuple[str, List[Any]]:
        return join_clauses(self.beneficiary_clauses + self.claim_clauses + tuple(extra))


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class ReportFilterBuilder:
    """
    Assembles the filters for the detailed beneficiary report.

    Optional filters left empty contribute no clause. The eligibility clause and
    the plan exclusion are always present.
    """

    def __init__(self, start: date, end: date, today: date):
        if start is None or end is None:
            raise ValidationError("data_inicio e data_fim são obrigatórios")
        self.start = start
        self.end = last_day_of_month(end)
        if self.start > self.end:
            raise ValidationError("data_inicio não pode ser posterior a data_fim")
        self.today = today
        self._operators: List[str] = []
        self._entities: List[str] = []
        self._tipo: Optional[str] = None
        self._plan_exclusion: PlanExclusion = DETAILED_REPORT_EXCLUSION
        self._months: List[pd.Period] = []

    def operators(self, values: Optional[Sequence[str]]) -> "ReportFilterBuilder":
        self._operators = [v.strip() for v in values or [] if v and v.strip()]
        return self

    def entities(self, values: Optional[Sequence[str]]) -> "ReportFilterBuilder":
        self._entities = [v.strip() for v in values or [] if v and v.strip()]
        return self

    def beneficiary_type(self, value: Optional[str]) -> "ReportFilterBuilder":
        value = value.strip() if value else None
        self._tipo = None if not value or value == TIPO_TODOS else value
        return self

    def plan_exclusion(self, exclusion: PlanExclusion) -> "ReportFilterBuilder":
        self._plan_exclusion = exclusion
        return self

    def competency_months(self, months: Optional[Sequence[pd.Period]]) -> "ReportFilterBuilder":
        self._months = sorted(set(months or []))
        return self

    def build(self) -> FilterSpec:
        beneficiary: List[Clause] = [currently_valid_clause(self.end, self.today)]
        if self._operators:
            beneficiary.append(in_clause("operators", "b.operadora", self._operators))
        if self._entities:
            beneficiary.append(in_clause("entities", "b.entidade", self._entities))
        if self._tipo is not None:
            beneficiary.append(Clause(name="beneficiary_type", sql="b.tipo = ?", params=(self._tipo,)))
        beneficiary.append(self._plan_exclusion.to_clause("b"))

        claim: List[Clause] = [BILLABLE_CLAIM]
        if self._months:
            first_days = [m.start_time.date() for m in self._months]
            claim.append(in_clause("competency_months", "p.data_competencia", first_days))
        else:
            claim.append(
                Clause(
                    name="competency_range",
                    sql="p.data_competencia BETWEEN ? AND ?",
                    params=(self.start, self.end),
                )
            )

        spec = FilterSpec(
            start=self.start,
            end=self.end,
            beneficiary_clauses=tuple(beneficiary),
            claim_clauses=tuple(claim),
        )
        logger.debug("Built report filter: %s", spec.clause_names)
        return spec
