# modules/beneficiarios/service.py
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from painel_beneficiarios.core.clauses import Clause, in_clause, join_clauses
from painel_beneficiarios.core.database import BENEFICIARIOS_TABLE, PROCEDIMENTOS_TABLE, ReportDataSource
from painel_beneficiarios.core.eligibility import currently_valid_mask, overlaps_period_clause
from painel_beneficiarios.core.exceptions import ValidationError
from painel_beneficiarios.core.filters import TIPO_TODOS, ReportFilterBuilder, split_csv
from painel_beneficiarios.core.months import (
    last_day_of_month, parse_date, parse_month_list, rolling_window,
)
from painel_beneficiarios.core.pagination import paginate, validate_page
from painel_beneficiarios.core.plans import PlanExclusion
from painel_beneficiarios.core.trailing_spend import WINDOW_MONTHS, trailing_spend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeneficiaryFilters:
    start: date
    end: date
    operadoras: List[str] = field(default_factory=list)
    entidades: List[str] = field(default_factory=list)
    tipo: Optional[str] = None


@dataclass(frozen=True)
class DetailedReportRequest:
    filters: BeneficiaryFilters
    meses: List[pd.Period]
    pagina: int
    limite: int


@dataclass(frozen=True)
class PeriodListingRequest:
    start: date
    end: date
    operadora: str


def parse_beneficiary_filters(
    data_inicio: Optional[str],
    data_fim: Optional[str],
    operadoras: Optional[str] = None,
    entidades: Optional[str] = None,
    tipo: Optional[str] = None,
) -> BeneficiaryFilters:
    start = parse_date(data_inicio, "data_inicio")
    end = last_day_of_month(parse_date(data_fim, "data_fim"))
    tipo = tipo.strip() if tipo else None
    return BeneficiaryFilters(
        start=start,
        end=end,
        operadoras=split_csv(operadoras),
        entidades=split_csv(entidades),
        tipo=None if not tipo or tipo == TIPO_TODOS else tipo,
    )


def parse_detailed_request(
    data_inicio: Optional[str],
    data_fim: Optional[str],
    operadoras: Optional[str] = None,
    entidades: Optional[str] = None,
    tipo: Optional[str] = None,
    meses: Optional[str] = None,
    pagina: int = 1,
    limite: int = 20,
    max_page_size: int = 500,
) -> DetailedReportRequest:
    filters = parse_beneficiary_filters(data_inicio, data_fim, operadoras, entidades, tipo)
    if filters.start > filters.end:
        raise ValidationError("data_inicio não pode ser posterior a data_fim")
    validate_page(pagina, limite, max_page_size)
    return DetailedReportRequest(
        filters=filters,
        meses=parse_month_list(meses, "meses"),
        pagina=pagina,
        limite=limite,
    )


def _records(df: pd.DataFrame, date_columns: Sequence[str] = ()) -> List[Dict]:
    df = df.copy()
    for col in date_columns:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce").dt.date
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def build_detailed_report(
    source: ReportDataSource,
    request: DetailedReportRequest,
    today: date,
    plan_denylist: Sequence[str],
    window_months: int = WINDOW_MONTHS,
) -> Dict:
    filters = request.filters
    spec = (
        ReportFilterBuilder(filters.start, filters.end, today)
        .operators(filters.operadoras)
        .entities(filters.entidades)
        .beneficiary_type(filters.tipo)
        .plan_exclusion(PlanExclusion.from_terms(plan_denylist))
        .competency_months(request.meses)
        .build()
    )
    page = paginate(source, spec, request.pagina, request.limite)

    rows = page.rows.copy()
    if page.cpfs:
        spend = trailing_spend(source, page.cpfs, window_months)
        rows["valor_12_meses"] = rows["cpf"].map(spend).fillna(0.0)
    else:
        rows["valor_12_meses"] = pd.Series(dtype=float)

    return {
        "dados": _records(rows, ("data_competencia", "data_atendimento")),
        "total": page.total,
        "pagina": page.page,
        "limite": page.page_size,
        "total_paginas": page.total_pages,
    }


def _optional_filter_clauses(filters: BeneficiaryFilters) -> List[Clause]:
    clauses: List[Clause] = []
    if filters.operadoras:
        clauses.append(in_clause("operators", "b.operadora", filters.operadoras))
    if filters.entidades:
        clauses.append(in_clause("entities", "b.entidade", filters.entidades))
    if filters.tipo:
        clauses.append(Clause(name="beneficiary_type", sql="b.tipo = ?", params=(filters.tipo,)))
    return clauses


def build_active_months(
    source: ReportDataSource,
    filters: BeneficiaryFilters,
    today: date,
    window_months: int = WINDOW_MONTHS,
) -> List[Dict]:
    """
    Active lives for the window ending at the month of ``filters.end``, using
    the rule that also accepts exclusion dates still in the future at ``today``.
    """
    anchors = rolling_window(pd.Period(filters.end, freq="M"), window_months)
    frame = source.query_beneficiaries(
        _optional_filter_clauses(filters),
        columns=["id_beneficiario", "data_inicio_vigencia_beneficiario", "data_exclusao", "status_beneficiario"],
    )
    result = []
    for anchor in anchors:
        mask = currently_valid_mask(frame, anchor.last_day, today)
        result.append({
            "mes_referencia": anchor.label,
            "vidas_ativas": int(frame.loc[mask, "id_beneficiario"].nunique()),
        })
    return result


def _distinct_values(source: ReportDataSource, column: str, descending: bool = False) -> List[str]:
    order = "DESC" if descending else "ASC"
    df = source.fetch(
        f"SELECT DISTINCT {column} AS valor FROM {BENEFICIARIOS_TABLE} "
        f"WHERE {column} IS NOT NULL AND {column} != '' ORDER BY valor {order}"
    )
    return df["valor"].tolist()


def build_filter_options(source: ReportDataSource) -> Dict:
    pairs = source.fetch(
        f"""
        SELECT DISTINCT operadora, entidade
        FROM {BENEFICIARIOS_TABLE}
        WHERE operadora IS NOT NULL AND operadora != ''
          AND entidade IS NOT NULL AND entidade != ''
        ORDER BY operadora ASC, entidade ASC
        """
    )
    por_operadora: Dict[str, List[str]] = {}
    for operadora, entidade in zip(pairs["operadora"], pairs["entidade"]):
        por_operadora.setdefault(operadora, []).append(entidade)

    recente = source.fetch(
        f"SELECT strftime(MAX(data_inicio_vigencia_beneficiario), '%Y-%m') AS mes "
        f"FROM {BENEFICIARIOS_TABLE}"
    )
    mes = recente["mes"].iloc[0] if not recente.empty else None

    return {
        "operadoras": _distinct_values(source, "operadora"),
        "entidades": _distinct_values(source, "entidade"),
        "entidades_por_operadora": por_operadora,
        "tipos": _distinct_values(source, "tipo", descending=True),
        "mes_mais_recente": mes if isinstance(mes, str) else None,
    }


def parse_period_listing_request(
    data_inicio: Optional[str], data_fim: Optional[str], operadora: str
) -> PeriodListingRequest:
    return PeriodListingRequest(
        start=parse_date(data_inicio, "data_inicio"),
        end=parse_date(data_fim, "data_fim"),
        operadora=operadora.strip(),
    )


def _list_with_claims_in_period(
    source: ReportDataSource,
    column: str,
    request: PeriodListingRequest,
    plan_exclusion: PlanExclusion,
    descending: bool,
) -> List[str]:
    beneficiary_where, beneficiary_params = join_clauses([
        Clause(name="operator", sql="upper(b.operadora) = upper(?)", params=(request.operadora,)),
        Clause(name=f"{column}_present", sql=f"b.{column} IS NOT NULL AND b.{column} != ''"),
        overlaps_period_clause(request.start, request.end),
        plan_exclusion.to_clause("b"),
    ])
    order = "DESC" if descending else "ASC"
    sql = f"""
        SELECT DISTINCT b.{column} AS valor
        FROM {PROCEDIMENTOS_TABLE} p
        INNER JOIN {BENEFICIARIOS_TABLE} b
          ON b.cpf = p.cpf
         AND {beneficiary_where}
        WHERE upper(p.operadora) = upper(?)
          AND p.evento IS NOT NULL
          AND p.data_competencia BETWEEN ? AND ?
        ORDER BY valor {order}
    """
    params = [*beneficiary_params, request.operadora, request.start, request.end]
    return source.fetch(sql, params)["valor"].tolist()


def list_entities_with_claims(
    source: ReportDataSource, request: PeriodListingRequest, plan_denylist: Sequence[str]
) -> List[str]:
    return _list_with_claims_in_period(
        source, "entidade", request, PlanExclusion.from_terms(plan_denylist), descending=False
    )


def list_types_with_claims(
    source: ReportDataSource, request: PeriodListingRequest, plan_denylist: Sequence[str]
) -> List[str]:
    return _list_with_claims_in_period(
        source, "tipo", request, PlanExclusion.from_terms(plan_denylist), descending=True
    )
