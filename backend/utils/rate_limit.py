from typing import Dict, Any
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
import logging
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from backend.utils.security import COOKIE_NAME

logger = logging.getLogger(__name__)


def rate_limit_key(request: Request) -> str:
    """
    Identifiant de limitation: jeton de session hashé (ou Bearer), sinon IP.
    Le chemin est inclus pour limiter chaque endpoint séparément.
    """
    path = request.url.path
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else request.cookies.get(COOKIE_NAME)
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(request: Request, key: str, times: int, seconds: int) -> None:
    now = time.time()
    store = getattr(request.app.state, "_rl_store", {})
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Trop de tentatives, réessayez plus tard")
    hits.append(now)
    store[key] = hits
    request.app.state._rl_store = store


def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance FastAPI: limite `times` requêtes par `seconds` et par acheteur.
    - LOCAL_RATE_LIMIT_FALLBACK=1: compteur mémoire (dev/tests)
    - app.state.rate_limit_enabled is False: désactivé
    - sinon fastapi-limiter (Redis); un échec Redis ne bloque pas le checkout
    """
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, rate_limit_key(request), times, seconds)
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        async def _identifier(req: Request) -> str:
            return rate_limit_key(req)

        try:
            limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)
            return await limiter(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # Redis indisponible: pas de 429 en prod
            logger.warning("rate_limit skipped path=%s: %s", request.url.path, e)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
