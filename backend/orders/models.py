# module backend.orders.models
"""Modèle des commandes.
- Les montants sont stockés en unités mineures (price_at_purchase, total).
- price_at_purchase est un snapshot: il ne suit jamais les changements de prix catalogue.
- Statuts autorisés: paid, shipped, delivered, cancelled (la commande naît 'paid').
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import secrets
import time

from backend.utils.money import format_major

ORDER_STATUS_PAID = "paid"
ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_STATUS_PAID, ORDER_STATUS_SHIPPED, ORDER_STATUS_DELIVERED, ORDER_STATUS_CANCELLED)

ORDER_STATUS_LABELS = {
    ORDER_STATUS_PAID: "Payée",
    ORDER_STATUS_SHIPPED: "Expédiée",
    ORDER_STATUS_DELIVERED: "Livrée",
    ORDER_STATUS_CANCELLED: "Annulée",
}

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_SUFFIX_ALPHABET = "ABCDEFGHJKMNPQRSTVWXYZ23456789"
_ADDRESS_FIELDS = ("name", "line1", "line2", "city", "postcode", "country")


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_order_number() -> str:
    """
    Numéro lisible: ORD-<horodatage ms en base36>-<8 caractères aléatoires>.
    Suffixe tiré de secrets (29^8 ≈ 5e11 combinaisons par milliseconde).
    """
    stamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(8))
    return f"ORD-{stamp}-{suffix}"


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    price_at_purchase: int

    @property
    def amount(self) -> int:
        return self.price_at_purchase * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {"product_id": self.product_id, "quantity": self.quantity, "price_at_purchase": self.price_at_purchase}


@dataclass(frozen=True)
class ShippingAddress:
    name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    postcode: str = ""
    country: str = ""

    @classmethod
    def from_customer_details(cls, details: Optional[Dict[str, Any]]) -> Optional["ShippingAddress"]:
        """Adresse Stripe (customer_details.address) -> ShippingAddress, None si absente."""
        details = details or {}
        address = details.get("address")
        if not address:
            return None
        return cls(
            name=details.get("name") or "",
            line1=address.get("line1") or "",
            line2=address.get("line2") or "",
            city=address.get("city") or "",
            postcode=address.get("postal_code") or "",
            country=address.get("country") or "",
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ShippingAddress"]:
        """Relit l'adresse stockée en JSON; les clés inconnues sont ignorées."""
        if not data:
            return None
        return cls(**{key: str(data.get(key) or "") for key in _ADDRESS_FIELDS})

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "postcode": self.postcode,
            "country": self.country,
        }


@dataclass
class Order:
    order_number: str
    buyer_id: str
    email: str
    lines: List[OrderLine]
    payment_id: str
    stripe_session_id: str = ""
    customer_record_id: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None
    status: str = ORDER_STATUS_PAID
    stock_applied: bool = False
    id: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def total(self) -> int:
        # Toujours dérivé des lignes: aucune dérive possible entre total et lignes
        return sum(line.amount for line in self.lines)

    def to_row(self) -> Dict[str, Any]:
        """Ligne Supabase 'orders' (sans id: généré par la base)."""
        return {
            "order_number": self.order_number,
            "buyer_id": self.buyer_id,
            "customer_id": self.customer_record_id,
            "email": self.email,
            "items": [line.to_dict() for line in self.lines],
            "total": self.total,
            "status": self.status,
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "payment_id": self.payment_id,
            "stripe_session_id": self.stripe_session_id,
            "stock_applied": self.stock_applied,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        return cls(
            id=str(row.get("id")) if row.get("id") is not None else None,
            order_number=row.get("order_number") or "",
            buyer_id=row.get("buyer_id") or "",
            customer_record_id=row.get("customer_id"),
            email=row.get("email") or "",
            lines=[
                OrderLine(str(i.get("product_id")), int(i.get("quantity") or 0), int(i.get("price_at_purchase") or 0))
                for i in (row.get("items") or [])
            ],
            status=row.get("status") or ORDER_STATUS_PAID,
            shipping_address=ShippingAddress.from_dict(row.get("shipping_address")),
            payment_id=row.get("payment_id") or "",
            stripe_session_id=row.get("stripe_session_id") or "",
            stock_applied=bool(row.get("stock_applied")),
            created_at=row.get("created_at") or "",
        )

    def to_public(self) -> Dict[str, Any]:
        """Représentation API: montants en unités majeures (chaînes décimales)."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "status_label": ORDER_STATUS_LABELS.get(self.status, self.status),
            "email": self.email,
            "items": [
                {
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "price_at_purchase": format_major(line.price_at_purchase),
                    "amount": format_major(line.amount),
                }
                for line in self.lines
            ],
            "item_count": len(self.lines),
            "total": format_major(self.total),
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "created_at": self.created_at,
        }
