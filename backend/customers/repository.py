"""
Accès aux données 'customers' (lien utilisateur <-> client Stripe).
"""
from typing import Any, Dict, Optional
from datetime import datetime, timezone
import logging

from supabase import Client

from backend.payments.errors import TransientInfraError

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = "id, user_id, email, name, stripe_customer_id, created_at"

# module backend.customers.repository
class CustomersRepository:
    def __init__(self, client: Client):
        self.client = client

    def _first(self, column: str, value: str) -> Optional[Dict[str, Any]]:
        if not value:
            return None
        try:
            res = (
                self.client
                .table("customers")
                .select(CUSTOMER_COLUMNS)
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("customers.repository lookup failed %s=%s", column, value)
            raise TransientInfraError(f"Lecture client impossible: {e}") from e
        rows = res.data or []
        return rows[0] if rows else None

    def find_by_user_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._first("user_id", user_id)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._first("email", email)

    def update_link(self, record_id: str, *, user_id: str, name: str, stripe_customer_id: str) -> Dict[str, Any]:
        try:
            res = (
                self.client
                .table("customers")
                .update({"user_id": user_id, "name": name, "stripe_customer_id": stripe_customer_id})
                .eq("id", record_id)
                .execute()
            )
        except Exception as e:
            logger.exception("customers.repository.update_link failed id=%s", record_id)
            raise TransientInfraError(f"Mise à jour client impossible: {e}") from e
        rows = res.data or []
        return rows[0] if rows else {"id": record_id, "stripe_customer_id": stripe_customer_id}

    def create(self, *, user_id: str, email: str, name: str, stripe_customer_id: str) -> Dict[str, Any]:
        payload = {
            "user_id": user_id,
            "email": email,
            "name": name,
            "stripe_customer_id": stripe_customer_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            res = self.client.table("customers").insert(payload).execute()
        except Exception as e:
            logger.exception("customers.repository.create failed user_id=%s", user_id)
            raise TransientInfraError(f"Création client impossible: {e}") from e
        rows = res.data or []
        if not rows:
            raise TransientInfraError("Création client: aucune ligne retournée")
        return rows[0]
