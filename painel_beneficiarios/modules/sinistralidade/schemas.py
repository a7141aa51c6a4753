# modules/sinistralidade/schemas.py
from pydantic import BaseModel

class ActiveLivesEntry(BaseModel):
    ano_mes_referencia: str
    vidas_ativas: int

class ClaimStatusMonth(BaseModel):
    mes: str
    ativo: int = 0
    inativo: int = 0
    nao_localizado: int = 0
    total: int = 0

class ClaimStatusCard(BaseModel):
    mes: str
    ativo: int = 0
    inativo: int = 0
    nao_localizado: int = 0
    total_vidas: int = 0
    valor_ativo: float = 0.0
    valor_inativo: float = 0.0
    valor_nao_localizado: float = 0.0
    valor_total_geral: float = 0.0
