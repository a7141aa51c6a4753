# modules/beneficiarios/routes.py
from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from painel_beneficiarios.config.settings import get_settings
from painel_beneficiarios.core.database import get_source_opener
from painel_beneficiarios.modules.beneficiarios.service import (
    build_active_months, build_detailed_report, build_filter_options,
    list_entities_with_claims, list_types_with_claims,
    parse_beneficiary_filters, parse_detailed_request, parse_period_listing_request,
)
from painel_beneficiarios.modules.beneficiarios.schemas import (
    ActiveMonth, DetailedReportResponse, EntitiesResponse, FilterOptionsResponse, TypesResponse,
)

router = APIRouter(prefix="/beneficiarios", tags=["Beneficiarios"])

def get_today() -> date:
    return date.today()

@router.get("/detalhados", response_model=DetailedReportResponse)
def get_detalhados(
    data_inicio: Optional[str] = Query(None, description="Primeiro dia do período (YYYY-MM-DD)"),
    data_fim: Optional[str] = Query(None, description="Data final; normalizada para o último dia do mês"),
    operadoras: Optional[str] = Query(None, description="Operadoras separadas por vírgula"),
    entidades: Optional[str] = Query(None, description="Entidades separadas por vírgula"),
    tipo: Optional[str] = Query(None, description='Tipo de beneficiário; "Todos" ignora o filtro'),
    meses: Optional[str] = Query(None, description="Competências específicas (YYYY-MM), separadas por vírgula"),
    pagina: int = Query(1),
    limite: Optional[int] = Query(None),
    open_source=Depends(get_source_opener),
    today: date = Depends(get_today),
):
    settings = get_settings()
    request = parse_detailed_request(
        data_inicio, data_fim, operadoras, entidades, tipo, meses,
        pagina=pagina,
        limite=limite if limite is not None else settings.DEFAULT_PAGE_SIZE,
        max_page_size=settings.MAX_PAGE_SIZE,
    )
    with open_source() as source:
        report = build_detailed_report(
            source, request, today, settings.DETAILED_REPORT_PLAN_DENYLIST, settings.WINDOW_MONTHS
        )
    return DetailedReportResponse(**report)

@router.get("/ativos", response_model=List[ActiveMonth])
def get_ativos(
    data_inicio: Optional[str] = Query(None, description="Data inicial (YYYY-MM-DD)"),
    data_fim: Optional[str] = Query(None, description="Mês mais recente da janela (YYYY-MM-DD)"),
    operadoras: Optional[str] = Query(None),
    entidades: Optional[str] = Query(None),
    tipo: Optional[str] = Query(None),
    open_source=Depends(get_source_opener),
    today: date = Depends(get_today),
):
    settings = get_settings()
    filters = parse_beneficiary_filters(data_inicio, data_fim, operadoras, entidades, tipo)
    with open_source() as source:
        months = build_active_months(source, filters, today, settings.WINDOW_MONTHS)
    return [ActiveMonth(**m) for m in months]

@router.get("/filtros", response_model=FilterOptionsResponse)
def get_filtros(open_source=Depends(get_source_opener)):
    with open_source() as source:
        options = build_filter_options(source)
    return FilterOptionsResponse(**options)

@router.get("/entidades-por-mes", response_model=EntitiesResponse)
def get_entidades_por_mes(
    data_inicio: Optional[str] = Query(None),
    data_fim: Optional[str] = Query(None),
    operadora: Optional[str] = Query(None),
    open_source=Depends(get_source_opener),
):
    settings = get_settings()
    request = parse_period_listing_request(
        data_inicio, data_fim, operadora or settings.DEFAULT_OPERADORA
    )
    with open_source() as source:
        entidades = list_entities_with_claims(
            source, request, settings.ENTITY_LISTING_PLAN_DENYLIST
        )
    return EntitiesResponse(entidades=entidades)

@router.get("/tipos-por-mes", response_model=TypesResponse)
def get_tipos_por_mes(
    data_inicio: Optional[str] = Query(None),
    data_fim: Optional[str] = Query(None),
    operadora: Optional[str] = Query(None),
    open_source=Depends(get_source_opener),
):
    settings = get_settings()
    request = parse_period_listing_request(
        data_inicio, data_fim, operadora or settings.DEFAULT_OPERADORA
    )
    with open_source() as source:
        tipos = list_types_with_claims(
            source, request, settings.ENTITY_LISTING_PLAN_DENYLIST
        )
    return TypesResponse(tipos=tipos)
