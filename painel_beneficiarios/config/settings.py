from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode
from functools import lru_cache
from typing import Annotated, List

class Settings(BaseSettings):
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    BUCKET_NAME: str = "painel"
    BENEFICIARIOS_FILE: str = "reg_beneficiarios.parquet"
    PROCEDIMENTOS_FILE: str = "reg_procedimentos.parquet"

    DEFAULT_OPERADORA: str = "ASSIM SAÚDE"
    # comma-separated in the environment, e.g. DENT,AESP
    ENTITY_LISTING_PLAN_DENYLIST: Annotated[List[str], NoDecode] = ["DENT", "AESP"]
    DETAILED_REPORT_PLAN_DENYLIST: Annotated[List[str], NoDecode] = ["DENT", "AESP", "STANDARD"]

    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 500
    WINDOW_MONTHS: int = 12

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"

    @field_validator(
        "ENTITY_LISTING_PLAN_DENYLIST", "DETAILED_REPORT_PLAN_DENYLIST", "CORS_ORIGINS",
        mode="before",
    )
    @classmethod
    def split_commas(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

@lru_cache
def get_settings() -> Settings:
    return Settings()
