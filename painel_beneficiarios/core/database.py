# core/database.py
import io
import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Callable, ContextManager, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd
from supabase import Client, create_client

from painel_beneficiarios.config.settings import get_settings
from painel_beneficiarios.core.clauses import Clause, join_clauses
from painel_beneficiarios.core.exceptions import DataSourceError
from painel_beneficiarios.core.filters import FilterSpec

logger = logging.getLogger(__name__)

BENEFICIARIOS_TABLE = "reg_beneficiarios"
PROCEDIMENTOS_TABLE = "reg_procedimentos"

BENEFICIARIOS_SCHEMA: Dict[str, str] = {
    "id": "BIGINT",
    "id_beneficiario": "VARCHAR",
    "cpf": "VARCHAR",
    "nome": "VARCHAR",
    "operadora": "VARCHAR",
    "entidade": "VARCHAR",
    "plano": "VARCHAR",
    "tipo": "VARCHAR",
    "status_beneficiario": "VARCHAR",
    "idade": "INTEGER",
    "mes_reajuste": "VARCHAR",
    "data_inicio_vigencia_beneficiario": "DATE",
    "data_exclusao": "DATE",
}

PROCEDIMENTOS_SCHEMA: Dict[str, str] = {
    "id": "BIGINT",
    "cpf": "VARCHAR",
    "operadora": "VARCHAR",
    "evento": "VARCHAR",
    "descricao": "VARCHAR",
    "especialidade": "VARCHAR",
    "valor_procedimento": "DOUBLE",
    "data_competencia": "DATE",
    "data_atendimento": "DATE",
}

BENEFICIARY_FROM = f"{BENEFICIARIOS_TABLE} b"
CLAIM_FROM = f"{PROCEDIMENTOS_TABLE} p"
REPORT_FROM = f"{BENEFICIARIOS_TABLE} b INNER JOIN {PROCEDIMENTOS_TABLE} p ON b.cpf = p.cpf"

# Countable identities, keyed by the name callers use
DISTINCT_ENTITIES: Dict[str, str] = {
    "beneficiario": "b.cpf",
    "id_beneficiario": "b.id_beneficiario",
}


class ReportDataSource:
    """
    Read-only query capability over the beneficiary and claim record streams.

    Every statement binds values through ``?`` placeholders. Only table and
    column names from the schemas above are formatted into SQL text.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    @classmethod
    def from_frames(cls, beneficiarios: pd.DataFrame, procedimentos: pd.DataFrame) -> "ReportDataSource":
        source = cls(duckdb.connect(":memory:"))
        source._load_table(BENEFICIARIOS_TABLE, beneficiarios, BENEFICIARIOS_SCHEMA)
        source._load_table(PROCEDIMENTOS_TABLE, procedimentos, PROCEDIMENTOS_SCHEMA)
        return source

    def _load_table(self, table: str, frame: pd.DataFrame, schema: Dict[str, str]):
        if frame is None or len(frame.columns) == 0:
            columns = ", ".join(f"{col} {typ}" for col, typ in schema.items())
            self.conn.execute(f"CREATE TABLE {table} ({columns})")
            return

        view = f"{table}_frame"
        select = ", ".join(
            f'TRY_CAST("{col}" AS {typ}) AS {col}' if col in frame.columns
            else f"CAST(NULL AS {typ}) AS {col}"
            for col, typ in schema.items()
        )
        self.conn.register(view, frame)
        try:
            self.conn.execute(f"CREATE TABLE {table} AS SELECT {select} FROM {view}")
        except duckdb.Error as exc:
            raise DataSourceError(f"Falha ao carregar {table}: {exc}") from exc
        finally:
            self.conn.unregister(view)
        logger.info("Loaded %s: %s rows", table, f"{len(frame):,}")

    def fetch(self, sql: str, params: Sequence[Any] = ()) -> pd.DataFrame:
        try:
            return self.conn.execute(sql, list(params)).df()
        except duckdb.Error as exc:
            logger.exception("Query failed")
            raise DataSourceError(f"Falha ao consultar a base de dados: {exc}") from exc

    def query_beneficiaries(
        self,
        clauses: Iterable[Clause] = (),
        columns: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        selected = ", ".join(f"b.{c}" for c in (columns or BENEFICIARIOS_SCHEMA))
        where, params = join_clauses(clauses)
        return self.fetch(f"SELECT {selected} FROM {BENEFICIARY_FROM} WHERE {where}", params)

    def query_claims(
        self,
        clauses: Iterable[Clause] = (),
        columns: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        selected = ", ".join(f"p.{c}" for c in (columns or PROCEDIMENTOS_SCHEMA))
        where, params = join_clauses(clauses)
        return self.fetch(f"SELECT {selected} FROM {CLAIM_FROM} WHERE {where}", params)

    def count_distinct(self, entity: str, spec: FilterSpec) -> int:
        if entity not in DISTINCT_ENTITIES:
            raise ValueError(f"Unknown entity {entity!r}")
        where, params = spec.where()
        df = self.fetch(
            f"SELECT COUNT(DISTINCT {DISTINCT_ENTITIES[entity]}) AS total "
            f"FROM {REPORT_FROM} WHERE {where}",
            params,
        )
        return int(df["total"].iloc[0]) if not df.empty else 0

    def close(self):
        self.conn.close()


@lru_cache
def get_supabase() -> Client:
    settings = get_settings()
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise DataSourceError("SUPABASE_URL e SUPABASE_KEY não configuradas")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def load_report_frames() -> Tuple[pd.DataFrame, pd.DataFrame]:
    settings = get_settings()
    frames: List[pd.DataFrame] = []
    for fname in (settings.BENEFICIARIOS_FILE, settings.PROCEDIMENTOS_FILE):
        try:
            data = get_supabase().storage.from_(settings.BUCKET_NAME).download(fname)
            frames.append(pd.read_parquet(io.BytesIO(data)))
        except DataSourceError:
            raise
        except Exception as exc:
            logger.exception("Failed to load %s", fname)
            raise DataSourceError(f"Falha ao carregar {fname}: {exc}") from exc
    beneficiarios, procedimentos = frames
    logger.info(
        "Loaded report data: %s beneficiarios, %s procedimentos",
        f"{len(beneficiarios):,}", f"{len(procedimentos):,}",
    )
    return beneficiarios, procedimentos


@contextmanager
def open_data_source() -> Iterator[ReportDataSource]:
    beneficiarios, procedimentos = load_report_frames()
    source = ReportDataSource.from_frames(beneficiarios, procedimentos)
    try:
        yield source
    finally:
        source.close()


def get_source_opener() -> Callable[[], ContextManager[ReportDataSource]]:
    """FastAPI dependency. Routes validate their parameters before opening the source."""
    return open_data_source
