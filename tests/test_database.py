from datetime import date

import pandas as pd
import pytest

from painel_beneficiarios.core.clauses import Clause
from painel_beneficiarios.core.database import ReportDataSource
from painel_beneficiarios.core.exceptions import DataSourceError
from painel_beneficiarios.core.filters import ReportFilterBuilder
from tests.conftest import beneficiario, procedimento


def test_frames_are_coerced_to_the_fixed_schema(make_source):
    source = make_source(
        beneficiarios=[beneficiario(data_exclusao="2024-02-30")],
        procedimentos=[procedimento(valor_procedimento="12.5")],
    )
    row = source.query_beneficiaries(columns=["data_inicio_vigencia_beneficiario", "data_exclusao"]).iloc[0]
    assert row["data_inicio_vigencia_beneficiario"] == pd.Timestamp("2022-01-01")
    assert pd.isna(row["data_exclusao"])
    assert source.query_claims(columns=["valor_procedimento"])["valor_procedimento"].tolist() == [12.5]


def test_missing_columns_become_nulls():
    source = ReportDataSource.from_frames(
        pd.DataFrame({"cpf": ["1"], "nome": ["ANA"]}),
        pd.DataFrame(),
    )
    try:
        df = source.query_beneficiaries(columns=["cpf", "status_beneficiario"])
        assert df["cpf"].tolist() == ["1"]
        assert df["status_beneficiario"].isna().all()
        assert source.query_claims().empty
    finally:
        source.close()


def test_query_claims_binds_clause_params(make_source):
    source = make_source(procedimentos=[
        procedimento(id=1, cpf="1"),
        procedimento(id=2, cpf="2"),
        procedimento(id=3, cpf="2", evento=None),
    ])
    df = source.query_claims(
        [Clause(name="cpf", sql="p.cpf = ?", params=("2",)), Clause(name="evento", sql="p.evento IS NOT NULL")],
        columns=["id"],
    )
    assert df["id"].tolist() == [2]


def test_count_distinct(make_source):
    source = make_source(
        beneficiarios=[
            beneficiario(id=1, id_beneficiario="B1", cpf="1"),
            beneficiario(id=2, id_beneficiario="B2", cpf="1", data_inicio_vigencia_beneficiario="2023-01-01"),
            beneficiario(id=3, id_beneficiario="B3", cpf="2"),
        ],
        procedimentos=[procedimento(id=1, cpf="1"), procedimento(id=2, cpf="2")],
    )
    spec = ReportFilterBuilder(date(2024, 1, 1), date(2024, 3, 1), date(2024, 7, 15)).build()
    assert source.count_distinct("beneficiario", spec) == 2
    assert source.count_distinct("id_beneficiario", spec) == 3
    with pytest.raises(ValueError):
        source.count_distinct("procedimento", spec)


def test_query_errors_are_wrapped(make_source):
    source = make_source()
    with pytest.raises(DataSourceError):
        source.fetch("SELECT coluna_inexistente FROM reg_beneficiarios")
