# backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), sécurité cookies, CORS/hosts
- Fournit l'URL de base pour les redirections du checkout (chaîne de fallback)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _csv_env(name: str, default: str) -> list[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]

# Supabase: URLs et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = _csv_env("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _csv_env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")

# Stripe: clé secrète, secret webhook, version d'API verrouillée (optionnelle)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "")

# Boutique: devise des line_items et pays autorisés pour la livraison
STORE_CURRENCY = _clean_env(os.getenv("STORE_CURRENCY") or "gbp").lower()
SHIPPING_COUNTRIES = [c.upper() for c in _csv_env(
    "SHIPPING_COUNTRIES",
    "GB,US,CA,AU,NZ,IE,DE,FR,ES,IT,NL,BE,AT,CH,SE,NO,DK,FI,PT,PL,CZ,GR,HU,RO,BG,"
    "HR,SI,SK,LT,LV,EE,LU,MT,CY,JP,SG,HK,KR,TW,MY,TH,IN,AE,SA,IL,ZA,BR,MX,AR,CL,CO",
)]

# Pages de succès/annulation du checkout (relatives à l'URL de base)
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/checkout/success")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/checkout")

LOCAL_BASE_URL = "http://localhost:8000"

def resolve_base_url() -> str:
    """
    URL publique de la boutique, utilisée pour les redirections Stripe.
    Ordre: BASE_URL explicite -> hôte de déploiement déduit
    (RENDER_EXTERNAL_URL, puis VERCEL_URL sans schéma) -> localhost.
    Lue à chaque appel pour suivre l'environnement courant.
    """
    explicit = _clean_env(os.getenv("BASE_URL") or "")
    if explicit:
        return explicit.rstrip("/")
    render_url = _clean_env(os.getenv("RENDER_EXTERNAL_URL") or "")
    if render_url:
        return render_url.rstrip("/")
    vercel_host = _clean_env(os.getenv("VERCEL_URL") or "")
    if vercel_host:
        if not vercel_host.startswith("http"):
            vercel_host = "https://" + vercel_host
        return vercel_host.rstrip("/")
    return LOCAL_BASE_URL
