"""
Rapprochement paiement -> commande (webhook Stripe).

États: received -> verified -> deduplicated | materialized -> stock_adjusted,
et rejected en cas de signature invalide.

Garanties:
- Une commande au plus par payment_id: lecture d'idempotence + contrainte
  UNIQUE(payment_id) en base pour les livraisons concurrentes.
- Le stock est décrémenté une seule fois: apply_order_stock est atomique et
  marque orders.stock_applied dans la même transaction. Une commande trouvée
  avec stock_applied=false (échec précédent après création) est reprise au
  décrément au lieu d'être ignorée.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from backend.orders.models import Order, OrderLine, ShippingAddress, generate_order_number
from .errors import DuplicateOrder, MalformedMetadata, ReconciliationError, TransientInfraError
from .events import CheckoutCompleted, IgnoredEvent, decode_event
from .metadata import CheckoutMetadata, decode_metadata

logger = logging.getLogger(__name__)

STATUS_REJECTED = "rejected"
STATUS_IGNORED = "ignored"
STATUS_DEDUPLICATED = "deduplicated"
STATUS_STOCK_ADJUSTED = "stock_adjusted"
STATUS_DROPPED = "dropped"


@dataclass(frozen=True)
class ReconciliationResult:
    status: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status}
        if self.order_id:
            out["order_id"] = self.order_id
        if self.order_number:
            out["order_number"] = self.order_number
        return out


# module backend.payments.reconciliation
def build_order_lines(meta: CheckoutMetadata, paid_items: List[Dict[str, Any]]) -> List[OrderLine]:
    """
    Aligne les lignes Stripe payées (même ordre qu'à la création) sur les paires
    (productId, quantité) des metadata. Le prix vient de Stripe, jamais des metadata.
    """
    if len(paid_items) != len(meta.product_ids):
        raise MalformedMetadata(
            f"{len(paid_items)} lignes Stripe pour {len(meta.product_ids)} produits en metadata"
        )
    lines: List[OrderLine] = []
    for (product_id, quantity), item in zip(meta.pairs(), paid_items):
        paid_qty = int(item.get("quantity") or 0)
        if paid_qty != quantity:
            raise MalformedMetadata(
                f"quantité Stripe {paid_qty} != metadata {quantity} pour {product_id}"
            )
        unit_amount = (item.get("price") or {}).get("unit_amount")
        if unit_amount is None:
            amount_total = int(item.get("amount_total") or 0)
            if amount_total % quantity:
                raise MalformedMetadata(f"montant non divisible pour {product_id}: {amount_total}/{quantity}")
            unit_amount = amount_total // quantity
        lines.append(OrderLine(product_id=product_id, quantity=quantity, price_at_purchase=int(unit_amount)))
    return lines


def _apply_stock(order: Order, catalog) -> ReconciliationResult:
    applied = catalog.apply_order_stock(order.id)
    if applied:
        logger.info("payments.reconcile stock updated order=%s products=%s", order.order_number, len(order.lines))
    else:
        logger.info("payments.reconcile stock already applied order=%s", order.order_number)
    return ReconciliationResult(STATUS_STOCK_ADJUSTED, order_id=order.id, order_number=order.order_number)


def materialize_order(event: CheckoutCompleted, meta: CheckoutMetadata, paid_items: List[Dict[str, Any]]) -> Order:
    lines = build_order_lines(meta, paid_items)
    order = Order(
        order_number=generate_order_number(),
        buyer_id=meta.buyer_id,
        customer_record_id=meta.customer_record_id,
        email=meta.buyer_email or event.customer_email,
        lines=lines,
        payment_id=event.payment_id,
        stripe_session_id=event.session_id,
        shipping_address=ShippingAddress.from_customer_details(event.customer_details),
    )
    if event.amount_total and event.amount_total != order.total:
        # Remises/taxes Stripe: le total de la commande reste Σ prix × quantité
        logger.warning(
            "payments.reconcile amount_total=%s differs from lines total=%s payment_id=%s",
            event.amount_total, order.total, event.payment_id,
        )
    return order


def reconcile_checkout(event: CheckoutCompleted, *, orders, catalog, gateway) -> ReconciliationResult:
    """
    Transforme un checkout.session.completed vérifié en commande + décrément de stock.
    - deduplicated: commande existante et stock déjà appliqué (aucune écriture).
    - stock_adjusted: commande créée (ou reprise) et stock appliqué.
    Soulève MalformedMetadata (terminal) ou TransientInfraError (rejouable).
    """
    existing = orders.find_by_payment_id(event.payment_id)
    if existing:
        if existing.stock_applied:
            logger.info("payments.reconcile already processed payment_id=%s, skipping", event.payment_id)
            return ReconciliationResult(STATUS_DEDUPLICATED, order_id=existing.id, order_number=existing.order_number)
        logger.warning("payments.reconcile resuming stock update order=%s", existing.order_number)
        return _apply_stock(existing, catalog)

    meta = decode_metadata(event.metadata)

    try:
        paid_items = gateway.list_line_items(event.session_id)
    except Exception as e:
        raise TransientInfraError(f"Lecture des lignes Stripe impossible: {e}") from e

    order = materialize_order(event, meta, paid_items)
    try:
        created = orders.create(order)
        logger.info("payments.reconcile order created id=%s number=%s", created.id, created.order_number)
    except DuplicateOrder:
        # Livraison concurrente: l'autre exécution a créé la commande
        created = orders.find_by_payment_id(event.payment_id)
        if not created:
            raise TransientInfraError(f"Commande introuvable après doublon payment_id={event.payment_id}")
        logger.info("payments.reconcile concurrent delivery payment_id=%s", event.payment_id)
        if created.stock_applied:
            return ReconciliationResult(STATUS_DEDUPLICATED, order_id=created.id, order_number=created.order_number)
    return _apply_stock(created, catalog)


def handle_webhook(payload: bytes, signature: Optional[str], *, orders, catalog, gateway) -> ReconciliationResult:
    """
    Point d'entrée complet du webhook: vérification -> décodage -> rapprochement.
    - SignatureInvalid est propagée (la vue répond 400, sans effet de bord).
    - MalformedMetadata est absorbée en 'dropped' (terminal, journalisée en erreur).
    - TransientInfraError est propagée (la vue répond 500 pour relivraison).
    """
    event = gateway.construct_event(payload, signature)
    try:
        decoded = decode_event(event)
        if isinstance(decoded, IgnoredEvent):
            logger.info("payments.webhook unhandled event type=%s id=%s", decoded.kind, decoded.event_id)
            return ReconciliationResult(STATUS_IGNORED)
        return reconcile_checkout(decoded, orders=orders, catalog=catalog, gateway=gateway)
    except MalformedMetadata as e:
        logger.error("payments.webhook malformed metadata event=%s: %s", event.get("id"), e.message)
        return ReconciliationResult(STATUS_DROPPED, detail=e.message)
    except ReconciliationError:
        raise
    except Exception as e:
        logger.exception("payments.webhook unexpected failure event=%s", event.get("id"))
        raise TransientInfraError(str(e)) from e
