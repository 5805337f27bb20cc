"""
Accès aux données 'orders'.
- Recherche d'idempotence par payment_id.
- Insertion protégée par la contrainte UNIQUE(payment_id): un doublon (23505)
  devient DuplicateOrder, le service traite alors la livraison concurrente.
"""
from typing import List, Optional
import logging

from postgrest.exceptions import APIError
from supabase import Client

from backend.orders.models import Order
from backend.payments.errors import DuplicateOrder, TransientInfraError

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, order_number, buyer_id, customer_id, email, items, total, status, "
    "shipping_address, payment_id, stripe_session_id, stock_applied, created_at"
)

UNIQUE_VIOLATION = "23505"


def _api_error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code:
        return str(code)
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("code")
    return None


# module backend.orders.repository
class OrdersRepository:
    def __init__(self, client: Client):
        self.client = client

    def find_by_payment_id(self, payment_id: str) -> Optional[Order]:
        try:
            res = (
                self.client
                .table("orders")
                .select(ORDER_COLUMNS)
                .eq("payment_id", payment_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("orders.repository.find_by_payment_id failed payment_id=%s", payment_id)
            raise TransientInfraError(f"Lecture commande impossible: {e}") from e
        rows = res.data or []
        return Order.from_row(rows[0]) if rows else None

    def create(self, order: Order) -> Order:
        """Insère la commande et retourne la version persistée (avec id)."""
        try:
            res = self.client.table("orders").insert(order.to_row()).execute()
        except APIError as e:
            if _api_error_code(e) == UNIQUE_VIOLATION:
                raise DuplicateOrder(order.payment_id) from e
            logger.exception("orders.repository.create failed payment_id=%s", order.payment_id)
            raise TransientInfraError(f"Création commande impossible: {e}") from e
        except Exception as e:
            logger.exception("orders.repository.create failed payment_id=%s", order.payment_id)
            raise TransientInfraError(f"Création commande impossible: {e}") from e
        rows = res.data or []
        if not rows:
            raise TransientInfraError("Création commande: aucune ligne retournée")
        return Order.from_row(rows[0])

    def list_for_buyer(self, buyer_id: str, limit: int = 50) -> List[Order]:
        try:
            res = (
                self.client
                .table("orders")
                .select(ORDER_COLUMNS)
                .eq("buyer_id", buyer_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.exception("orders.repository.list_for_buyer failed buyer_id=%s", buyer_id)
            raise TransientInfraError(f"Lecture commandes impossible: {e}") from e
        return [Order.from_row(r) for r in (res.data or [])]

    def get_by_id(self, order_id: str) -> Optional[Order]:
        try:
            res = (
                self.client
                .table("orders")
                .select(ORDER_COLUMNS)
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("orders.repository.get_by_id failed id=%s", order_id)
            raise TransientInfraError(f"Lecture commande impossible: {e}") from e
        rows = res.data or []
        return Order.from_row(rows[0]) if rows else None
