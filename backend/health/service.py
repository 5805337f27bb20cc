import logging
from typing import Any, Dict
from backend.config import SUPABASE_URL, SUPABASE_SERVICE_KEY

logger = logging.getLogger(__name__)

def health_supabase_info() -> Dict[str, Any]:
    """
    Vérifie la connectivité Supabase par une lecture minimale sur 'products'.
    - Ne divulgue jamais les clés, seulement leur présence.
    """
    info: Dict[str, Any] = {
        "url_configured": bool(SUPABASE_URL),
        "service_key_present": bool(SUPABASE_SERVICE_KEY),
        "connect_ok": False,
    }
    try:
        from backend.infra.supabase_client import get_service_supabase
        get_service_supabase().table("products").select("id").limit(1).execute()
        info["connect_ok"] = True
    except Exception as e:
        logger.warning("health.supabase check failed: %s", e)
        info["error"] = type(e).__name__
    return info
