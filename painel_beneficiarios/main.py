# main.py
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from painel_beneficiarios.config.settings import get_settings
from painel_beneficiarios.core.exceptions import DataSourceError, ValidationError

# === IMPORT ALL ROUTERS ===
from painel_beneficiarios.modules.beneficiarios.routes import router as beneficiarios_router
from painel_beneficiarios.modules.sinistralidade.routes import router as sinistralidade_router

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Painel de Beneficiários",
    version="1.0.0",
    description="Elegibilidade • Vidas ativas • Sinistralidade"
)

# === CORS: Allow frontend to call backend ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === ERROR HANDLERS ===
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})

@app.exception_handler(DataSourceError)
async def data_source_error_handler(request: Request, exc: DataSourceError):
    logger.error("Data source failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})

# === INCLUDE ROUTERS ===
app.include_router(beneficiarios_router)
app.include_router(sinistralidade_router)

@app.get("/")
async def root():
    return {"message": "Painel de Beneficiários API – All modules loaded"}

# === Run with uvicorn ===
if __name__ == "__main__":
    uvicorn.run(
        "painel_beneficiarios.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
