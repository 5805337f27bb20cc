"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe
  `backend.asgi:app` pour servir l'application FastAPI.
- Toute la configuration (routers, middlewares, lifespan) est centralisée dans
  backend.app_setup.factory; ce fichier ne fait qu'exposer l'instance `app`.
"""

from backend.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "backend.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
