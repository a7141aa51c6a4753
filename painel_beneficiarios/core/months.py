# core/months.py
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

import pandas as pd

from painel_beneficiarios.core.exceptions import ValidationError

MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class MonthAnchor:
    label: str
    first_day: date
    last_day: date


def _anchor(period: pd.Period) -> MonthAnchor:
    return MonthAnchor(
        label=period.strftime("%Y-%m"),
        first_day=period.start_time.date(),
        last_day=period.end_time.date(),
    )


def parse_month(value: Optional[str], field: str = "mes_referencia") -> pd.Period:
    """Parse a ``YYYY-MM`` token into a monthly period."""
    if value is None or not MONTH_PATTERN.match(value.strip()):
        raise ValidationError(f"Parâmetro {field} deve estar no formato YYYY-MM")
    year, month = (int(part) for part in value.strip().split("-"))
    if not 1 <= month <= 12:
        raise ValidationError(f"Mês inválido em {field}: {value}")
    return pd.Period(year=year, month=month, freq="M")


def parse_date(value: Optional[str], field: str) -> date:
    if value is None or not value.strip():
        raise ValidationError(f"Parâmetro obrigatório ausente: {field}")
    value = value.strip()
    if not DATE_PATTERN.match(value):
        raise ValidationError(f"Data inválida em {field}: {value}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Data inválida em {field}: {value}") from exc


def parse_month_list(value: Optional[str], field: str = "meses") -> List[pd.Period]:
    if not value:
        return []
    tokens = [token.strip() for token in value.split(",") if token.strip()]
    return sorted({parse_month(token, field) for token in tokens})


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def last_day_of_month(day: date) -> date:
    return pd.Period(day, freq="M").end_time.date()


def rolling_window(reference: pd.Period, length: int = 12) -> List[MonthAnchor]:
    """Anchors for ``reference`` and the ``length - 1`` months before it, oldest first."""
    if length < 1:
        raise ValidationError("A janela deve ter pelo menos um mês")
    periods = pd.period_range(end=reference, periods=length, freq="M")
    return [_anchor(period) for period in periods]


def months_between(start: date, end: date) -> List[MonthAnchor]:
    if start > end:
        return []
    periods = pd.period_range(
        start=pd.Period(start, freq="M"), end=pd.Period(end, freq="M"), freq="M"
    )
    return [_anchor(period) for period in periods]


def labels(anchors: Iterable[MonthAnchor]) -> List[str]:
    return [anchor.label for anchor in anchors]
