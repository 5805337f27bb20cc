from typing import Dict, Any
from .repository import get_user_from_access_token as _repo_get_user_from_token

# L'authentification est déléguée à Supabase Auth; ce service ne fait que
# normaliser l'identité de l'acheteur pour le checkout.

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, token}
    - metadata.full_name sert de nom d'affichage côté Stripe
    """
    raw = _repo_get_user_from_token(access_token)
    metadata = raw.get("user_metadata") or {}
    return {"id": raw.get("id"), "email": raw.get("email"), "metadata": metadata, "token": access_token}
