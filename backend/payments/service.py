"""
Cas d'usage 'payments': orchestre cart, customers, metadata et Stripe.
Ne touche jamais au stock: la session valide la disponibilité sans réserver.
"""
from typing import Any, Dict, List, Optional
import logging

from backend.config import (
    CHECKOUT_CANCEL_PATH,
    CHECKOUT_SUCCESS_PATH,
    SHIPPING_COUNTRIES,
    STORE_CURRENCY,
)
from backend.customers.service import resolve_payment_customer
from . import cart as cart_logic
from .errors import AuthenticationError, CartValidationError, ReconciliationError, ValidationError
from .metadata import USER_ID_KEY, build_metadata, encode_metadata

logger = logging.getLogger(__name__)

GENERIC_CHECKOUT_ERROR = "Une erreur est survenue. Veuillez réessayer."


class CheckoutResult:
    def __init__(
        self,
        success: bool,
        url: Optional[str] = None,
        session_id: Optional[str] = None,
        error: Optional[str] = None,
        code: Optional[str] = None,
        problems: Optional[List[Dict[str, Any]]] = None,
        session: Optional[Dict[str, Any]] = None,
    ):
        self.success = success
        self.url = url
        self.session_id = session_id
        self.error = error
        self.code = code
        self.problems = problems or []
        self.session = session

    @classmethod
    def failure(cls, exc: ReconciliationError) -> "CheckoutResult":
        problems = []
        if isinstance(exc, CartValidationError):
            problems = [
                {"product_id": getattr(p, "product_id", None), "code": p.code, "message": p.message}
                for p in exc.problems
            ]
        return cls(False, error=exc.message, code=exc.code, problems=problems)


def build_redirect_urls(base_url: str) -> Dict[str, str]:
    sep = "&" if "?" in CHECKOUT_SUCCESS_PATH else "?"
    return {
        "success_url": f"{base_url}{CHECKOUT_SUCCESS_PATH}{sep}session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base_url}{CHECKOUT_CANCEL_PATH}",
    }


# module backend.payments.service
def create_checkout_session(
    buyer: Optional[Dict[str, Any]],
    items: List[Dict[str, Any]],
    *,
    catalog,
    customers,
    gateway,
    base_url: str,
) -> CheckoutResult:
    """
    Prépare la session Stripe à partir de l'acheteur authentifié et du panier.
    Étapes:
      1) Parser + revalider le panier contre le catalogue (prix du snapshot),
         puis vérifier qu'il tient dans les metadata Stripe
      2) Résoudre/créer le client Stripe et sa fiche Supabase
      3) Construire line_items (unités mineures) + metadata alignées
      4) Créer la session Stripe et renvoyer son URL
    Ne soulève jamais: toute erreur devient CheckoutResult(success=False, ...).
    """
    try:
        if not buyer or not buyer.get("id"):
            raise AuthenticationError()
        parsed = cart_logic.parse_cart(items)
        validated = cart_logic.validate_cart(parsed, catalog)
        # Avant tout appel Stripe: un panier trop gros ne doit créer aucun client
        encode_metadata(build_metadata(str(buyer["id"]), str(buyer.get("email") or ""), None, validated))

        link = resolve_payment_customer(buyer, customers, gateway)
        metadata = build_metadata(
            buyer_id=str(buyer["id"]),
            buyer_email=str(buyer.get("email") or ""),
            customer_record_id=link.record_id,
            validated=validated,
        )
        session = gateway.create_session(
            line_items=cart_logic.to_line_items(validated, STORE_CURRENCY),
            customer=link.stripe_customer_id,
            metadata=encode_metadata(metadata),
            allowed_countries=SHIPPING_COUNTRIES,
            **build_redirect_urls(base_url),
        )
        logger.info(
            "payments.checkout session=%s user_id=%s lines=%s",
            session.get("id"), buyer.get("id"), len(validated),
        )
        return CheckoutResult(True, url=session.get("url"), session_id=session.get("id"))
    except (ValidationError, AuthenticationError) as e:
        logger.info("payments.checkout refused code=%s user_id=%s: %s", e.code, (buyer or {}).get("id"), e.message)
        return CheckoutResult.failure(e)
    except Exception:
        logger.exception("Erreur create_checkout_session")
        return CheckoutResult(False, error=GENERIC_CHECKOUT_ERROR, code="provider")


def get_checkout_summary(session_id: str, buyer: Optional[Dict[str, Any]], *, gateway) -> CheckoutResult:
    """
    Récapitulatif pour la page de succès.
    - Vérifie que la session appartient à l'acheteur (metadata.userId), sinon « Session introuvable ».
    - Les montants restent en unités mineures (la vue convertit).
    """
    if not buyer or not buyer.get("id"):
        return CheckoutResult.failure(AuthenticationError("Non authentifié"))
    if not session_id:
        return CheckoutResult(False, error="session_id manquant", code="validation")
    try:
        session = gateway.get_session(session_id, expand=["line_items", "customer_details"])
    except Exception:
        logger.exception("Erreur get_checkout_summary session=%s", session_id)
        return CheckoutResult(False, error="Impossible de récupérer la commande", code="provider")

    if (session.get("metadata") or {}).get(USER_ID_KEY) != buyer.get("id"):
        return CheckoutResult(False, error="Session introuvable", code="not_found")

    details = session.get("customer_details") or {}
    line_items = ((session.get("line_items") or {}).get("data")) or []
    return CheckoutResult(
        True,
        session_id=session.get("id"),
        session={
            "id": session.get("id"),
            "customer_email": details.get("email"),
            "customer_name": details.get("name"),
            "amount_total": int(session.get("amount_total") or 0),
            "payment_status": session.get("payment_status"),
            "shipping_address": details.get("address"),
            "line_items": [
                {
                    "name": li.get("description"),
                    "quantity": li.get("quantity"),
                    "amount": int(li.get("amount_total") or 0),
                }
                for li in line_items
            ],
        },
    )
