"""
Lancement local de l'API boutique.

Usage:
    python -m backend

Variables d'environnement lues:
- HOST / PORT: interface et port d'écoute (0.0.0.0:8000 par défaut)
- UVICORN_RELOAD: reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn et backend.* (ex: "info", "debug")
"""
import os
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "backend.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.environ.get("LOG_LEVEL", "info"),
    )
