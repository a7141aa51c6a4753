# modules/beneficiarios/schemas.py
from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import date

class DetailedRow(BaseModel):
    operadora: Optional[str] = None
    plano: Optional[str] = None
    cpf: Optional[str] = None
    nome: Optional[str] = None
    entidade: Optional[str] = None
    status: Optional[str] = None
    idade: Optional[int] = None
    evento: Optional[str] = None
    descricao: Optional[str] = None
    especialidade: Optional[str] = None
    valor: Optional[float] = None
    data_competencia: Optional[date] = None
    data_atendimento: Optional[date] = None
    id_procedimento: Optional[int] = None
    valor_12_meses: float = 0.0

class DetailedReportResponse(BaseModel):
    dados: List[DetailedRow]
    total: int
    pagina: int
    limite: int
    total_paginas: int

class ActiveMonth(BaseModel):
    mes_referencia: str
    vidas_ativas: int

class FilterOptionsResponse(BaseModel):
    operadoras: List[str]
    entidades: List[str]
    entidades_por_operadora: Dict[str, List[str]]
    tipos: List[str]
    mes_mais_recente: Optional[str] = None

class EntitiesResponse(BaseModel):
    entidades: List[str]

class TypesResponse(BaseModel):
    tipos: List[str]
