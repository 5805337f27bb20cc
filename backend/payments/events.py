"""
Décodage typé des événements Stripe vérifiés.
type -> payload typé; tout type non géré devient explicitement IgnoredEvent.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .errors import MalformedMetadata

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    payment_id: str
    metadata: Dict[str, str]
    amount_total: int
    customer_details: Dict[str, Any] = field(default_factory=dict)

    @property
    def customer_email(self) -> str:
        return (self.customer_details or {}).get("email") or ""


@dataclass(frozen=True)
class IgnoredEvent:
    event_id: str
    kind: str


PaymentEvent = Union[CheckoutCompleted, IgnoredEvent]


def _payment_id(session: Dict[str, Any]) -> Optional[str]:
    # payment_intent est un id, ou un objet si la session a été « expand »
    intent = session.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    return str(intent) if intent else None


# module backend.payments.events
def decode_event(event: Dict[str, Any]) -> PaymentEvent:
    """
    dict d'événement Stripe (déjà vérifié) -> CheckoutCompleted | IgnoredEvent.
    - checkout.session.completed sans payment_intent -> MalformedMetadata.
    """
    event = event or {}
    kind = str(event.get("type") or "")
    event_id = str(event.get("id") or "")
    if kind != CHECKOUT_COMPLETED:
        return IgnoredEvent(event_id=event_id, kind=kind or "unknown")

    session = ((event.get("data") or {}).get("object")) or {}
    session_id = str(session.get("id") or "")
    payment_id = _payment_id(session)
    if not session_id or not payment_id:
        raise MalformedMetadata(f"session/payment_intent manquant (event={event_id})")
    return CheckoutCompleted(
        event_id=event_id,
        session_id=session_id,
        payment_id=payment_id,
        metadata=dict(session.get("metadata") or {}),
        amount_total=int(session.get("amount_total") or 0),
        customer_details=dict(session.get("customer_details") or {}),
    )
