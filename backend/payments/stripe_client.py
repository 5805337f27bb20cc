"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Une instance StripeGateway est construite une fois par processus
(backend.dependencies) puis passée aux services.
"""
import inspect
import logging
from typing import Any, Dict, List, Optional

import stripe

from backend.config import STRIPE_API_VERSION, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from .errors import SignatureInvalid

logger = logging.getLogger(__name__)


def _as_dict(obj: Any) -> Dict[str, Any]:
    """
    StripeObject -> dict (récursif); les dicts passent tels quels.
    - SDK récents: to_dict(recursive=True).
    - SDK anciens: to_dict_recursive(), to_dict() n'y étant que superficiel.
    """
    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if to_dict is not None and "recursive" in inspect.signature(to_dict).parameters:
        return to_dict(recursive=True)
    if hasattr(obj, "to_dict_recursive"):
        return obj.to_dict_recursive()
    if to_dict is not None:
        return to_dict()
    return dict(obj)


# module backend.payments.stripe_client
class StripeGateway:
    def __init__(
        self,
        api_key: str = STRIPE_SECRET_KEY,
        webhook_secret: str = STRIPE_WEBHOOK_SECRET,
        api_version: str = STRIPE_API_VERSION,
    ):
        """
        Prépare le module stripe prêt à l'emploi.
        - En absence de clé, les appels Stripe échoueront côté SDK (No API key provided).
        """
        if api_key:
            stripe.api_key = api_key
        if api_version:
            stripe.api_version = api_version
        self.webhook_secret = webhook_secret

    # --- Clients Stripe ---

    def find_customer_by_email(self, email: str) -> Optional[str]:
        if not email:
            return None
        res = stripe.Customer.list(email=email, limit=1)
        data = _as_dict(res).get("data") or []
        return data[0].get("id") if data else None

    def create_customer(self, *, email: str, name: str, user_id: str) -> str:
        customer = stripe.Customer.create(email=email, name=name, metadata={"user_id": user_id})
        return customer["id"]

    # --- Sessions Checkout ---

    def create_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        customer: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        allowed_countries: List[str],
    ) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout en mode paiement unique.
        Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
        """
        session = stripe.checkout.Session.create(
            mode="payment",
            payment_method_types=["card"],
            line_items=line_items,
            customer=customer,
            shipping_address_collection={"allowed_countries": allowed_countries},
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return _as_dict(session)

    def get_session(self, session_id: str, *, expand: Optional[List[str]] = None) -> Dict[str, Any]:
        session = stripe.checkout.Session.retrieve(session_id, expand=expand or [])
        return _as_dict(session)

    def list_line_items(self, session_id: str) -> List[Dict[str, Any]]:
        """
        Lignes réellement payées pour la session, dans l'ordre de création.
        auto_paging_iter pour ne pas tronquer au-delà de 10 lignes.
        """
        res = stripe.checkout.Session.list_line_items(session_id, limit=100)
        return [_as_dict(li) for li in res.auto_paging_iter()]

    # --- Webhooks ---

    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Vérifie la signature Stripe-Signature puis parse l'événement.
        - En-tête manquant, secret absent, signature ou JSON invalide -> SignatureInvalid.
        Aucune bascule « dev » sans vérification: c'est la seule authentification du webhook.
        """
        if not sig_header:
            raise SignatureInvalid("En-tête Stripe-Signature manquant")
        if not self.webhook_secret:
            raise SignatureInvalid("STRIPE_WEBHOOK_SECRET manquant")
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid(f"Signature invalide: {e}") from e
        except ValueError as e:
            raise SignatureInvalid(f"Payload invalide: {e}") from e
        return _as_dict(event)
