# core/pagination.py
"""
Two-phase pagination for reports joining beneficiaries to their claims.

Pages are cut over distinct beneficiaries (by CPF), never over claim rows:

1. resolve one page of identities matching the filter;
2. stop early when the page is empty (no row query, and no count on page 1);
3. fetch every matching claim row for exactly those identities;
4. count all matching identities separately;
5. derive the number of pages from that count.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pandas as pd

from painel_beneficiarios.core.clauses import in_clause
from painel_beneficiarios.core.database import REPORT_FROM, ReportDataSource
from painel_beneficiarios.core.exceptions import ValidationError
from painel_beneficiarios.core.filters import FilterSpec

logger = logging.getLogger(__name__)

REPORT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("b.operadora", "operadora"),
    ("b.plano", "plano"),
    ("b.cpf", "cpf"),
    ("b.nome", "nome"),
    ("b.entidade", "entidade"),
    ("b.status_beneficiario", "status"),
    ("b.idade", "idade"),
    ("p.evento", "evento"),
    ("p.descricao", "descricao"),
    ("p.especialidade", "especialidade"),
    ("p.valor_procedimento", "valor"),
    ("p.data_competencia", "data_competencia"),
    ("p.data_atendimento", "data_atendimento"),
    ("p.id", "id_procedimento"),
)


@dataclass(frozen=True)
class IdentityPage:
    """Phase-one result: the CPFs that make up one page, in display order."""
    cpfs: Tuple[str, ...]
    page: int
    page_size: int

    def __len__(self) -> int:
        return len(self.cpfs)


@dataclass
class PageResult:
    rows: pd.DataFrame
    total: int
    page: int
    page_size: int
    total_pages: int
    cpfs: List[str] = field(default_factory=list)


def validate_page(page: int, page_size: int, max_page_size: Optional[int] = None):
    if page is None or page < 1:
        raise ValidationError("pagina deve ser maior ou igual a 1")
    if page_size is None or page_size < 1:
        raise ValidationError("limite deve ser maior ou igual a 1")
    if max_page_size is not None and page_size > max_page_size:
        raise ValidationError(f"limite não pode ser maior que {max_page_size}")


def resolve_identity_page(
    source: ReportDataSource, spec: FilterSpec, page: int, page_size: int
) -> IdentityPage:
    offset = (page - 1) * page_size
    where, params = spec.where()
    sql = f"""
        SELECT b.cpf AS cpf, MIN(b.nome) AS nome
        FROM {REPORT_FROM}
        WHERE {where}
        GROUP BY b.cpf
        ORDER BY nome, cpf
        LIMIT {int(page_size)} OFFSET {int(offset)}
    """
    df = source.fetch(sql, params)
    return IdentityPage(cpfs=tuple(df["cpf"].tolist()), page=page, page_size=page_size)


def fetch_rows_for_identities(
    source: ReportDataSource, spec: FilterSpec, identities: IdentityPage
) -> pd.DataFrame:
    selected = ",\n            ".join(f"{expr} AS {name}" for expr, name in REPORT_COLUMNS)
    where, params = spec.where(extra=[in_clause("page_identities", "b.cpf", identities.cpfs)])
    sql = f"""
        SELECT
            {selected}
        FROM {REPORT_FROM}
        WHERE {where}
        -- one row per claim, from the latest matching enrollment episode
        QUALIFY ROW_NUMBER() OVER (
            PARTITION BY p.id
            ORDER BY b.data_inicio_vigencia_beneficiario DESC, b.id DESC
        ) = 1
        ORDER BY nome, cpf, data_competencia DESC, evento, id_procedimento
    """
    return source.fetch(sql, params)


def count_identities(source: ReportDataSource, spec: FilterSpec) -> int:
    return source.count_distinct("beneficiario", spec)


def empty_rows() -> pd.DataFrame:
    return pd.DataFrame(columns=[name for _, name in REPORT_COLUMNS])


def paginate(
    source: ReportDataSource, spec: FilterSpec, page: int, page_size: int
) -> PageResult:
    validate_page(page, page_size)

    identities = resolve_identity_page(source, spec, page, page_size)
    if not identities:
        # An empty first page means nothing matches; past the last page the
        # total is still reported.
        total = count_identities(source, spec) if page > 1 else 0
        total_pages = math.ceil(total / page_size)
        logger.info("Page %s is empty (total %s)", page, total)
        return PageResult(
            rows=empty_rows(),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
        )

    rows = fetch_rows_for_identities(source, spec, identities)
    total = count_identities(source, spec)
    total_pages = math.ceil(total / page_size)
    logger.info(
        "Resolved page %s/%s: %s beneficiaries, %s rows (total %s)",
        page, total_pages, len(identities), len(rows), total,
    )
    return PageResult(
        rows=rows,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        cpfs=list(identities.cpfs),
    )
