import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from backend.catalog.repository import CatalogRepository
from backend.config import resolve_base_url
from backend.customers.repository import CustomersRepository
from backend.dependencies import (
    get_catalog_repository,
    get_customers_repository,
    get_orders_repository,
    get_stripe_gateway,
)
from backend.orders.repository import OrdersRepository
from backend.payments import reconciliation
from backend.payments import service as payments_service
from backend.payments.errors import SignatureInvalid, TransientInfraError
from backend.payments.stripe_client import StripeGateway
from backend.utils.money import format_major
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

_FAILURE_STATUS = {
    "authentication": 401,
    "not_found": 404,
    "provider": 502,
}


class CheckoutRequest(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)


def _failure_response(result: payments_service.CheckoutResult) -> JSONResponse:
    status = _FAILURE_STATUS.get(result.code or "", 400)
    content: Dict[str, Any] = {"detail": result.error, "code": result.code}
    if result.problems:
        content["problems"] = result.problems
    return JSONResponse(status_code=status, content=content)


# module backend.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(
    body: CheckoutRequest,
    user: dict = Depends(require_user),
    catalog: CatalogRepository = Depends(get_catalog_repository),
    customers: CustomersRepository = Depends(get_customers_repository),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Crée une session Checkout Stripe pour le panier de l'utilisateur authentifié.
    - Entrée JSON: { "items": [ { "productId": "...", "name": "...", "price": 12.5, "quantity": 2 } ] }
    - Le prix envoyé est ignoré: revalidation prix/stock côté catalogue.
    - Réponses: 200 {id, url} | 400 {detail, problems} | 401 | 502
    """
    result = payments_service.create_checkout_session(
        user,
        body.items,
        catalog=catalog,
        customers=customers,
        gateway=gateway,
        base_url=resolve_base_url(),
    )
    if not result.success:
        return _failure_response(result)
    return {"id": result.session_id, "url": result.url}


@router.get("/session")
def get_checkout_session(
    session_id: str,
    user: dict = Depends(require_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Récapitulatif d'une session Checkout pour la page de succès.
    - 404 si la session n'appartient pas à l'utilisateur.
    """
    result = payments_service.get_checkout_summary(session_id, user, gateway=gateway)
    if not result.success:
        return _failure_response(result)
    session = dict(result.session or {})
    session["amount_total"] = format_major(session.get("amount_total") or 0)
    session["line_items"] = [
        {**li, "amount": format_major(li.get("amount") or 0)} for li in session.get("line_items") or []
    ]
    return session


@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(
    request: Request,
    orders: OrdersRepository = Depends(get_orders_repository),
    catalog: CatalogRepository = Depends(get_catalog_repository),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Webhook Stripe: checkout.session.completed -> commande + décrément de stock.
    - 400: signature/payload invalide (pas de relivraison utile)
    - 200: traité, déjà traité, ignoré, ou metadata inexploitable (abandon journalisé)
    - 500: échec Supabase/Stripe transitoire -> Stripe relivrera l'événement
    """
    payload = await request.body()
    signature: Optional[str] = request.headers.get("stripe-signature")
    try:
        # Appels Supabase/Stripe bloquants: hors de la boucle événementielle
        result = await run_in_threadpool(
            reconciliation.handle_webhook,
            payload, signature, orders=orders, catalog=catalog, gateway=gateway,
        )
    except SignatureInvalid as e:
        logger.warning("payments.webhook rejected: %s", e.message)
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")
    except TransientInfraError as e:
        logger.error("payments.webhook transient failure, redelivery requested: %s", e.message)
        return JSONResponse(status_code=500, content={"status": "retry"})
    return {"received": True, **result.to_dict()}
