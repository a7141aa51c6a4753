"""Shared fixtures: DuckDB-backed report sources built from small frames."""

import pandas as pd
import pytest

from painel_beneficiarios.core.database import ReportDataSource

OPERADORA = "ASSIM SAÚDE"


def beneficiario(**overrides):
    row = {
        "id": 1,
        "id_beneficiario": "B1",
        "cpf": "00000000001",
        "nome": "Beneficiario 01",
        "operadora": OPERADORA,
        "entidade": "ENTIDADE A",
        "plano": "PLANO OURO",
        "tipo": "TITULAR",
        "status_beneficiario": "ativo",
        "idade": 40,
        "mes_reajuste": "05",
        "data_inicio_vigencia_beneficiario": "2022-01-01",
        "data_exclusao": None,
    }
    row.update(overrides)
    return row


def procedimento(**overrides):
    row = {
        "id": 1,
        "cpf": "00000000001",
        "operadora": OPERADORA,
        "evento": "10101012",
        "descricao": "CONSULTA",
        "especialidade": "CLINICA MEDICA",
        "valor_procedimento": 100.0,
        "data_competencia": "2024-03-01",
        "data_atendimento": "2024-02-20",
    }
    row.update(overrides)
    return row


def frame(rows, columns):
    return pd.DataFrame(rows, columns=columns) if rows else pd.DataFrame(columns=columns)


@pytest.fixture
def make_source():
    sources = []

    def _make(beneficiarios=(), procedimentos=()):
        source = ReportDataSource.from_frames(
            frame(list(beneficiarios), list(beneficiario())),
            frame(list(procedimentos), list(procedimento())),
        )
        sources.append(source)
        return source

    yield _make
    for source in sources:
        source.close()


@pytest.fixture
def paged_source(make_source):
    """25 active beneficiaries; ``Beneficiario 10`` has four claims in range."""
    beneficiarios = []
    procedimentos = []
    for i in range(1, 26):
        cpf = f"{i:011d}"
        beneficiarios.append(beneficiario(
            id=i, id_beneficiario=f"B{i}", cpf=cpf, nome=f"Beneficiario {i:02d}",
        ))
        if i == 10:
            for n, competencia in enumerate(["2024-01-01", "2024-02-01", "2024-03-01", "2024-04-01"]):
                procedimentos.append(procedimento(
                    id=1000 + n, cpf=cpf, data_competencia=competencia, valor_procedimento=10.0 * (n + 1),
                ))
        else:
            procedimentos.append(procedimento(id=i, cpf=cpf))
    return make_source(beneficiarios, procedimentos)
