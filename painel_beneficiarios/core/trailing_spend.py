# core/trailing_spend.py
import logging
from typing import Dict, Iterable

from painel_beneficiarios.core.clauses import placeholders
from painel_beneficiarios.core.database import PROCEDIMENTOS_TABLE, ReportDataSource

logger = logging.getLogger(__name__)

WINDOW_MONTHS = 12


def trailing_spend(
    source: ReportDataSource, cpfs: Iterable[str], window_months: int = WINDOW_MONTHS
) -> Dict[str, float]:
    """
    Sum of billable claim values per CPF over the ``window_months`` competency
    months ending at that CPF's own latest competency date.

    The window starts on the first day of the month ``window_months - 1``
    months before the latest competency month, so a latest claim in 2024-06
    covers 2023-07-01 through the latest date. CPFs without claims map to 0.
    """
    cpfs = list(dict.fromkeys(c for c in cpfs if c is not None))
    if not cpfs:
        return {}

    marks = placeholders(cpfs)
    sql = f"""
        WITH ultimas AS (
            SELECT cpf, MAX(data_competencia) AS ultima_competencia
            FROM {PROCEDIMENTOS_TABLE}
            WHERE evento IS NOT NULL AND cpf IN ({marks})
            GROUP BY cpf
        )
        SELECT u.cpf AS cpf, COALESCE(SUM(p.valor_procedimento), 0) AS valor_12_meses
        FROM ultimas u
        JOIN {PROCEDIMENTOS_TABLE} p
          ON p.cpf = u.cpf
         AND p.evento IS NOT NULL
         AND p.data_competencia >= CAST(
               date_trunc('month', u.ultima_competencia) - to_months({int(window_months) - 1})
             AS DATE)
         AND p.data_competencia <= u.ultima_competencia
        GROUP BY u.cpf
    """
    df = source.fetch(sql, cpfs)

    totals = {cpf: 0.0 for cpf in cpfs}
    for cpf, valor in zip(df["cpf"], df["valor_12_meses"]):
        totals[cpf] = float(valor)
    logger.debug("Trailing spend computed for %s CPFs", len(totals))
    return totals
