# core/eligibility.py
"""
Eligibility rules for beneficiary enrollment episodes.

Two rules are kept apart:

* ``is_active_on`` answers "was this episode active on reference date R?"
  and is used for the rolling active-lives series.
* ``is_currently_valid`` is the rule embedded in the detailed and monthly
  beneficiary reports. It additionally accepts an exclusion date that is still
  in the future relative to the processing date ``today``.

Each rule has a row-wise form, a vectorized pandas form and an SQL clause form.
"""
from datetime import date, datetime
from typing import Any, Mapping, Optional

import pandas as pd

from painel_beneficiarios.core.clauses import Clause

STATUS_ATIVO = "ativo"


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, str):
        value = pd.to_datetime(value, errors="coerce")
    if isinstance(value, datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


def is_active_on(record: Mapping[str, Any], reference: date) -> bool:
    inicio = _as_date(record.get("data_inicio_vigencia_beneficiario"))
    exclusao = _as_date(record.get("data_exclusao"))
    if inicio is None or inicio > reference:
        return False
    if exclusao is None:
        return record.get("status_beneficiario") == STATUS_ATIVO
    return exclusao > reference


def is_currently_valid(record: Mapping[str, Any], end: date, today: date) -> bool:
    inicio = _as_date(record.get("data_inicio_vigencia_beneficiario"))
    exclusao = _as_date(record.get("data_exclusao"))
    if inicio is None or inicio > end:
        return False
    if exclusao is None:
        return record.get("status_beneficiario") == STATUS_ATIVO
    return exclusao > today or exclusao > end


def _dates(frame: pd.DataFrame, column: str) -> pd.Series:
    return pd.to_datetime(frame[column], errors="coerce")


def active_mask(frame: pd.DataFrame, reference: date) -> pd.Series:
    """Vectorized ``is_active_on`` over an enrollment frame."""
    ref = pd.Timestamp(reference)
    inicio = _dates(frame, "data_inicio_vigencia_beneficiario")
    exclusao = _dates(frame, "data_exclusao")
    ativo = frame["status_beneficiario"].eq(STATUS_ATIVO)
    return (inicio <= ref) & (
        (exclusao.isna() & ativo) | (exclusao.notna() & (exclusao > ref))
    )


def currently_valid_mask(frame: pd.DataFrame, end: date, today: date) -> pd.Series:
    """Vectorized ``is_currently_valid`` over an enrollment frame."""
    fim = pd.Timestamp(end)
    hoje = pd.Timestamp(today)
    inicio = _dates(frame, "data_inicio_vigencia_beneficiario")
    exclusao = _dates(frame, "data_exclusao")
    ativo = frame["status_beneficiario"].eq(STATUS_ATIVO)
    return (inicio <= fim) & (
        (exclusao.isna() & ativo)
        | (exclusao.notna() & ((exclusao > hoje) | (exclusao > fim)))
    )


def active_on_clause(reference: date, alias: str = "b") -> Clause:
    return Clause(
        name="active_on",
        sql=(
            f"{alias}.data_inicio_vigencia_beneficiario <= ? AND ("
            f"({alias}.data_exclusao IS NULL AND {alias}.status_beneficiario = '{STATUS_ATIVO}')"
            f" OR ({alias}.data_exclusao IS NOT NULL AND {alias}.data_exclusao > ?))"
        ),
        params=(reference, reference),
    )


def currently_valid_clause(end: date, today: date, alias: str = "b") -> Clause:
    return Clause(
        name="currently_valid",
        sql=(
            f"{alias}.data_inicio_vigencia_beneficiario <= ? AND ("
            f"({alias}.data_exclusao IS NULL AND {alias}.status_beneficiario = '{STATUS_ATIVO}')"
            f" OR ({alias}.data_exclusao IS NOT NULL AND ("
            f"{alias}.data_exclusao > ? OR {alias}.data_exclusao > ?)))"
        ),
        params=(end, today, end),
    )


def overlaps_period_clause(start: date, end: date, alias: str = "b") -> Clause:
    """Episode overlaps ``[start, end]``; status is not consulted."""
    return Clause(
        name="overlaps_period",
        sql=(
            f"{alias}.data_inicio_vigencia_beneficiario <= ? AND "
            f"({alias}.data_exclusao IS NULL OR {alias}.data_exclusao >= ?)"
        ),
        params=(end, start),
    )
