# modules/sinistralidade/routes.py
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from painel_beneficiarios.config.settings import get_settings
from painel_beneficiarios.core.database import get_source_opener
from painel_beneficiarios.modules.sinistralidade.service import (
    build_active_lives_series, build_claim_status_cards, build_claim_status_dashboard,
    parse_active_lives_request, parse_claim_status_request,
)
from painel_beneficiarios.modules.sinistralidade.schemas import ActiveLivesEntry, ClaimStatusCard, ClaimStatusMonth

router = APIRouter(prefix="/sinistralidade", tags=["Sinistralidade"])

@router.get("/vidas-ativas", response_model=List[ActiveLivesEntry])
def get_vidas_ativas(
    mes_referencia: Optional[str] = Query(None, description="Mês de referência (YYYY-MM)"),
    operadora: Optional[str] = Query(None, description="Operadora; padrão configurado"),
    open_source=Depends(get_source_opener),
):
    settings = get_settings()
    request = parse_active_lives_request(
        mes_referencia, operadora or settings.DEFAULT_OPERADORA, settings.WINDOW_MONTHS
    )
    with open_source() as source:
        series = build_active_lives_series(source, request)
    return [ActiveLivesEntry(**entry) for entry in series]

@router.get("/dashboard", response_model=List[ClaimStatusMonth])
def get_dashboard(
    data_inicio: Optional[str] = Query(None, description="Data inicial (YYYY-MM-DD)"),
    data_fim: Optional[str] = Query(None, description="Data final (YYYY-MM-DD)"),
    operadora: Optional[str] = Query(None),
    planos_excluir: Optional[str] = Query(None, description="Termos de plano a excluir, separados por vírgula"),
    open_source=Depends(get_source_opener),
):
    settings = get_settings()
    request = parse_claim_status_request(
        data_inicio, data_fim, operadora or settings.DEFAULT_OPERADORA,
        planos_excluir, settings.ENTITY_LISTING_PLAN_DENYLIST,
    )
    with open_source() as source:
        months = build_claim_status_dashboard(source, request)
    return [ClaimStatusMonth(**m) for m in months]

@router.get("/cards", response_model=List[ClaimStatusCard])
def get_cards(
    data_inicio: Optional[str] = Query(None, description="Data inicial (YYYY-MM-DD)"),
    data_fim: Optional[str] = Query(None, description="Data final (YYYY-MM-DD)"),
    mes_referencia: Optional[str] = Query(None, description="Mês (YYYY-MM); substitui data_inicio e data_fim"),
    operadora: Optional[str] = Query(None),
    planos_excluir: Optional[str] = Query(None, description="Termos de plano a excluir, separados por vírgula"),
    open_source=Depends(get_source_opener),
):
    settings = get_settings()
    request = parse_claim_status_request(
        data_inicio, data_fim, operadora or settings.DEFAULT_OPERADORA,
        planos_excluir, settings.ENTITY_LISTING_PLAN_DENYLIST,
        mes_referencia=mes_referencia,
    )
    with open_source() as source:
        cards = build_claim_status_cards(source, request)
    return [ClaimStatusCard(**card) for card in cards]
