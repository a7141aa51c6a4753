# modules/sinistralidade/service.py
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from painel_beneficiarios.core.clauses import Clause
from painel_beneficiarios.core.database import BENEFICIARIOS_TABLE, PROCEDIMENTOS_TABLE, ReportDataSource
from painel_beneficiarios.core.eligibility import active_mask
from painel_beneficiarios.core.exceptions import ValidationError
from painel_beneficiarios.core.filters import split_csv
from painel_beneficiarios.core.months import (
    first_day_of_month, last_day_of_month, months_between, parse_date, parse_month, rolling_window,
)
from painel_beneficiarios.core.plans import PlanExclusion

logger = logging.getLogger(__name__)

ELIGIBILITY_COLUMNS = [
    "id_beneficiario", "data_inicio_vigencia_beneficiario", "data_exclusao", "status_beneficiario",
]


@dataclass(frozen=True)
class ActiveLivesRequest:
    reference: pd.Period
    operadora: str
    window_months: int = 12


@dataclass(frozen=True)
class ClaimStatusRequest:
    start: date
    end: date
    operadora: str
    plan_exclusion: PlanExclusion


def parse_active_lives_request(
    mes_referencia: Optional[str], operadora: str, window_months: int = 12
) -> ActiveLivesRequest:
    if not operadora or not operadora.strip():
        raise ValidationError("Parâmetro operadora não pode ser vazio")
    return ActiveLivesRequest(
        reference=parse_month(mes_referencia, "mes_referencia"),
        operadora=operadora.strip(),
        window_months=window_months,
    )


def build_active_lives_series(source: ReportDataSource, request: ActiveLivesRequest) -> List[Dict]:
    """
    Distinct active beneficiaries of one operator for each month of the rolling
    window ending at the reference month, oldest first. Months with no active
    lives are reported with a zero count.
    """
    anchors = rolling_window(request.reference, request.window_months)
    frame = source.query_beneficiaries(
        [
            Clause(name="operator", sql="b.operadora = ?", params=(request.operadora,)),
            Clause(
                name="started_by_window_end",
                sql="b.data_inicio_vigencia_beneficiario <= ?",
                params=(anchors[-1].last_day,),
            ),
        ],
        columns=ELIGIBILITY_COLUMNS,
    )

    series = []
    for anchor in anchors:
        mask = active_mask(frame, anchor.last_day)
        series.append({
            "ano_mes_referencia": anchor.label,
            "vidas_ativas": int(frame.loc[mask, "id_beneficiario"].nunique()),
        })
    logger.info(
        "Active lives for %s ending %s: %s months",
        request.operadora, anchors[-1].label, len(series),
    )
    return series


def parse_claim_status_request(
    data_inicio: Optional[str],
    data_fim: Optional[str],
    operadora: str,
    planos_excluir: Optional[str],
    default_denylist: Sequence[str],
    mes_referencia: Optional[str] = None,
) -> ClaimStatusRequest:
    """
    ``mes_referencia`` (``YYYY-MM``), when given, replaces both dates with the
    first and last day of that month.
    """
    if mes_referencia:
        month = parse_month(mes_referencia, "mes_referencia")
        start, end = month.start_time.date(), month.end_time.date()
    else:
        start = first_day_of_month(parse_date(data_inicio, "data_inicio"))
        end = last_day_of_month(parse_date(data_fim, "data_fim"))
    terms = split_csv(planos_excluir) if planos_excluir else list(default_denylist)
    return ClaimStatusRequest(
        start=start,
        end=end,
        operadora=operadora.strip(),
        plan_exclusion=PlanExclusion.from_terms(terms),
    )


def _claim_status_by_month(source: ReportDataSource, request: ClaimStatusRequest) -> Dict[str, Dict]:
    """
    Per competency month, CPFs with billable claims split by the status of
    their most recent overlapping enrollment episode with the operator, with
    the claim value of each group.
    """
    plan = request.plan_exclusion.to_clause("b")
    sql = f"""
        WITH procedimentos_filtrados AS (
            SELECT
                strftime(p.data_competencia, '%Y-%m') AS mes_label,
                CAST(date_trunc('month', p.data_competencia) AS DATE) AS mes_inicio,
                CAST(last_day(p.data_competencia) AS DATE) AS mes_fim,
                p.cpf,
                COALESCE(SUM(p.valor_procedimento), 0) AS valor_cpf_mes
            FROM {PROCEDIMENTOS_TABLE} p
            WHERE p.evento IS NOT NULL
              AND p.data_competencia BETWEEN ? AND ?
            GROUP BY 1, 2, 3, 4
        ),
        beneficiarios_rankeados AS (
            SELECT
                pf.mes_label,
                pf.cpf,
                b.status_beneficiario,
                ROW_NUMBER() OVER (
                    PARTITION BY pf.mes_label, pf.cpf
                    ORDER BY b.data_inicio_vigencia_beneficiario DESC, b.id DESC
                ) AS rn
            FROM procedimentos_filtrados pf
            JOIN {BENEFICIARIOS_TABLE} b
              ON b.cpf = pf.cpf
             AND upper(b.operadora) = ?
             AND ({plan.sql})
             AND b.data_inicio_vigencia_beneficiario <= pf.mes_fim
             AND (b.data_exclusao IS NULL OR b.data_exclusao >= pf.mes_inicio)
        ),
        beneficiarios_mes AS (
            SELECT mes_label, cpf, status_beneficiario
            FROM beneficiarios_rankeados
            WHERE rn = 1
        ),
        procedimentos_com_status AS (
            SELECT
                pf.mes_label,
                pf.cpf,
                pf.valor_cpf_mes,
                CASE
                    WHEN bm.cpf IS NULL THEN 'nao_localizado'
                    WHEN lower(bm.status_beneficiario) = 'ativo' THEN 'ativo'
                    ELSE 'inativo'
                END AS categoria_status
            FROM procedimentos_filtrados pf
            LEFT JOIN beneficiarios_mes bm
              ON bm.mes_label = pf.mes_label AND bm.cpf = pf.cpf
        )
        SELECT
            mes_label AS mes,
            COUNT(CASE WHEN categoria_status = 'ativo' THEN cpf END) AS ativo,
            COUNT(CASE WHEN categoria_status = 'inativo' THEN cpf END) AS inativo,
            COUNT(CASE WHEN categoria_status = 'nao_localizado' THEN cpf END) AS nao_localizado,
            COUNT(cpf) AS total,
            COALESCE(SUM(CASE WHEN categoria_status = 'ativo' THEN valor_cpf_mes END), 0) AS valor_ativo,
            COALESCE(SUM(CASE WHEN categoria_status = 'inativo' THEN valor_cpf_mes END), 0) AS valor_inativo,
            COALESCE(SUM(CASE WHEN categoria_status = 'nao_localizado' THEN valor_cpf_mes END), 0)
                AS valor_nao_localizado,
            COALESCE(SUM(valor_cpf_mes), 0) AS valor_total_geral
        FROM procedimentos_com_status
        GROUP BY mes_label
        ORDER BY mes_label
    """
    params = [request.start, request.end, request.operadora.upper(), *plan.params]
    df = source.fetch(sql, params)
    return {row["mes"]: row for row in df.to_dict(orient="records")}


def build_claim_status_dashboard(source: ReportDataSource, request: ClaimStatusRequest) -> List[Dict]:
    months = months_between(request.start, request.end)
    if not months:
        return []
    por_mes = _claim_status_by_month(source, request)
    result = []
    for anchor in months:
        row = por_mes.get(anchor.label, {})
        result.append({
            "mes": anchor.label,
            "ativo": int(row.get("ativo", 0)),
            "inativo": int(row.get("inativo", 0)),
            "nao_localizado": int(row.get("nao_localizado", 0)),
            "total": int(row.get("total", 0)),
        })
    return result


def build_claim_status_cards(source: ReportDataSource, request: ClaimStatusRequest) -> List[Dict]:
    """Dashboard counts plus the claim value of each status group, only for months with claims."""
    if not months_between(request.start, request.end):
        return []
    por_mes = _claim_status_by_month(source, request)
    cards = []
    for mes in sorted(por_mes):
        row = por_mes[mes]
        cards.append({
            "mes": mes,
            "ativo": int(row["ativo"]),
            "inativo": int(row["inativo"]),
            "nao_localizado": int(row["nao_localizado"]),
            "total_vidas": int(row["total"]),
            "valor_ativo": float(row["valor_ativo"]),
            "valor_inativo": float(row["valor_inativo"]),
            "valor_nao_localizado": float(row["valor_nao_localizado"]),
            "valor_total_geral": float(row["valor_total_geral"]),
        })
    logger.info("Claim status cards for %s: %s months", request.operadora, len(cards))
    return cards
