"""
Gestionnaires d'exceptions utilisés par la factory.
- HTTPException: corps JSON {"detail": ...} standard.
- TransientInfraError non interceptée par une vue: 503 (Supabase/Stripe indisponible).
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from backend.payments.errors import TransientInfraError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_errors(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(TransientInfraError)
    async def transient_infra_errors(request: Request, exc: TransientInfraError):
        logger.error("Service externe indisponible path=%s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=503, content={"detail": "Service momentanément indisponible"})
