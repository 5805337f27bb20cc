"""Couche service 'customers': rattache l'acheteur à un client Stripe.
Résolution en trois niveaux, idempotente sous rejeu:
1) fiche Supabase (par user_id puis par email) portant déjà un stripe_customer_id
2) client Stripe existant pour l'email
3) création du client Stripe
puis upsert de la fiche Supabase. Une tentative précédente qui aurait créé le
client Stripe sans persister le lien est rattrapée par l'étape 2.
"""
from dataclasses import dataclass
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerLink:
    stripe_customer_id: str
    record_id: str


def display_name(buyer: Dict[str, Any]) -> str:
    metadata = buyer.get("metadata") or {}
    name = str(metadata.get("full_name") or buyer.get("name") or "").strip()
    return name or str(buyer.get("email") or "")


def resolve_payment_customer(buyer: Dict[str, Any], customers, gateway) -> CustomerLink:
    user_id = str(buyer.get("id") or "")
    email = str(buyer.get("email") or "")
    name = display_name(buyer)

    record = customers.find_by_user_id(user_id) or customers.find_by_email(email)
    if record and record.get("stripe_customer_id"):
        return CustomerLink(record["stripe_customer_id"], str(record["id"]))

    stripe_customer_id = gateway.find_customer_by_email(email)
    if stripe_customer_id:
        logger.info("customers.resolve reuse stripe customer=%s user_id=%s", stripe_customer_id, user_id)
    else:
        stripe_customer_id = gateway.create_customer(email=email, name=name, user_id=user_id)
        logger.info("customers.resolve created stripe customer=%s user_id=%s", stripe_customer_id, user_id)

    if record:
        customers.update_link(str(record["id"]), user_id=user_id, name=name, stripe_customer_id=stripe_customer_id)
        return CustomerLink(stripe_customer_id, str(record["id"]))

    created = customers.create(user_id=user_id, email=email, name=name, stripe_customer_id=stripe_customer_id)
    return CustomerLink(stripe_customer_id, str(created["id"]))
