from contextlib import contextmanager
from datetime import date

import pytest
from fastapi.testclient import TestClient

from painel_beneficiarios.core.database import get_source_opener
from painel_beneficiarios.core.exceptions import DataSourceError
from painel_beneficiarios.main import app
from painel_beneficiarios.modules.beneficiarios.routes import get_today
from tests.conftest import beneficiario, procedimento


@pytest.fixture
def opened():
    return []


@pytest.fixture
def client(make_source, opened):
    source = make_source(
        beneficiarios=[
            beneficiario(id=1, id_beneficiario="B1", cpf="1", nome="ANA"),
            beneficiario(id=2, id_beneficiario="B2", cpf="2", nome="BRUNO", tipo="DEPENDENTE"),
        ],
        procedimentos=[
            procedimento(id=1, cpf="1", data_competencia="2024-03-01", valor_procedimento=100.0),
            procedimento(id=2, cpf="2", data_competencia="2024-02-01", valor_procedimento=40.0),
        ],
    )

    @contextmanager
    def open_source():
        opened.append(source)
        yield source

    app.dependency_overrides[get_source_opener] = lambda: open_source
    app.dependency_overrides[get_today] = lambda: date(2024, 7, 15)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    assert client.get("/").status_code == 200


def test_detalhados(client):
    response = client.get("/beneficiarios/detalhados", params={
        "data_inicio": "2024-01-01", "data_fim": "2024-03-01", "limite": 1,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["total_paginas"] == 2
    assert body["pagina"] == 1
    assert body["limite"] == 1
    assert len(body["dados"]) == 1
    row = body["dados"][0]
    assert row["nome"] == "ANA"
    assert row["data_competencia"] == "2024-03-01"
    assert row["valor_12_meses"] == 100.0


def test_detalhados_page_past_end(client):
    response = client.get("/beneficiarios/detalhados", params={
        "data_inicio": "2024-01-01", "data_fim": "2024-03-01", "limite": 1, "pagina": 5,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["dados"] == []
    assert body["total"] == 2
    assert body["total_paginas"] == 2


@pytest.mark.parametrize("path, params", [
    ("/beneficiarios/detalhados", {"data_fim": "2024-03-01"}),
    ("/beneficiarios/detalhados", {"data_inicio": "2024-04-01", "data_fim": "2024-03-01"}),
    ("/beneficiarios/detalhados", {"data_inicio": "2024-01-01", "data_fim": "2024-03-01", "pagina": 0}),
    ("/beneficiarios/detalhados", {"data_inicio": "01/01/2024", "data_fim": "2024-03-01"}),
    ("/beneficiarios/ativos", {"data_inicio": "2024-01-01"}),
    ("/beneficiarios/entidades-por-mes", {"data_inicio": "2024-03-01"}),
    ("/beneficiarios/tipos-por-mes", {"data_fim": "2024-03-31"}),
    ("/sinistralidade/vidas-ativas", {}),
    ("/sinistralidade/vidas-ativas", {"mes_referencia": "2024-13"}),
    ("/sinistralidade/vidas-ativas", {"mes_referencia": "março"}),
    ("/sinistralidade/dashboard", {"data_inicio": "2024-01-01"}),
])
def test_invalid_parameters_never_reach_the_data_source(client, opened, path, params):
    response = client.get(path, params=params)
    assert response.status_code == 400
    assert "error" in response.json()
    assert opened == []


def test_ativos(client):
    response = client.get("/beneficiarios/ativos", params={
        "data_inicio": "2024-01-01", "data_fim": "2024-03-01",
    })
    assert response.status_code == 200
    body = response.json()
    assert len(body) == 12
    assert body[-1] == {"mes_referencia": "2024-03", "vidas_ativas": 2}


def test_filtros(client):
    body = client.get("/beneficiarios/filtros").json()
    assert body["tipos"] == ["TITULAR", "DEPENDENTE"]
    assert body["mes_mais_recente"] == "2022-01"


def test_entidades_e_tipos_por_mes(client):
    params = {"data_inicio": "2024-02-01", "data_fim": "2024-02-29"}
    assert client.get("/beneficiarios/entidades-por-mes", params=params).json() == {
        "entidades": ["ENTIDADE A"],
    }
    assert client.get("/beneficiarios/tipos-por-mes", params=params).json() == {
        "tipos": ["DEPENDENTE"],
    }


def test_vidas_ativas(client):
    response = client.get("/sinistralidade/vidas-ativas", params={"mes_referencia": "2024-03"})
    assert response.status_code == 200
    body = response.json()
    assert [e["ano_mes_referencia"] for e in body][:2] == ["2023-04", "2023-05"]
    assert all(e["vidas_ativas"] == 2 for e in body)


def test_dashboard(client):
    response = client.get("/sinistralidade/dashboard", params={
        "data_inicio": "2024-02-01", "data_fim": "2024-03-31",
    })
    assert response.status_code == 200
    assert response.json() == [
        {"mes": "2024-02", "ativo": 1, "inativo": 0, "nao_localizado": 0, "total": 1},
        {"mes": "2024-03", "ativo": 1, "inativo": 0, "nao_localizado": 0, "total": 1},
    ]


def test_data_source_failure_returns_500(client):
    @contextmanager
    def failing():
        raise DataSourceError("bucket indisponível")
        yield

    app.dependency_overrides[get_source_opener] = lambda: failing
    response = client.get("/beneficiarios/filtros")
    assert response.status_code == 500
    assert response.json() == {"error": "bucket indisponível"}


def test_cards(client):
    response = client.get("/sinistralidade/cards", params={"mes_referencia": "2024-03"})
    assert response.status_code == 200
    assert response.json() == [{
        "mes": "2024-03", "ativo": 1, "inativo": 0, "nao_localizado": 0, "total_vidas": 1,
        "valor_ativo": 100.0, "valor_inativo": 0.0, "valor_nao_localizado": 0.0, "valor_total_geral": 100.0,
    }]


@pytest.mark.parametrize("params", [{}, {"mes_referencia": "2024-13"}, {"data_inicio": "2024-01-01"}])
def test_cards_invalid_parameters(client, opened, params):
    assert client.get("/sinistralidade/cards", params=params).status_code == 400
    assert opened == []
