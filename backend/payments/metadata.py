"""
Sérialisation/désérialisation des métadonnées Stripe de la session Checkout.

Stripe n'accepte que des paires clé/valeur texte: la composition du panier
voyage sous forme de deux chaînes alignées par position
(productIds="p1,p2", quantities="2,1"). C'est le seul canal qui relie la
création de session au webhook asynchrone.
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from .cart import ValidatedLineItem
from .errors import CartTooLarge, MalformedMetadata

USER_ID_KEY = "userId"
USER_EMAIL_KEY = "userEmail"
CUSTOMER_RECORD_KEY = "customerRecordId"
PRODUCT_IDS_KEY = "productIds"
QUANTITIES_KEY = "quantities"

# Limite Stripe par valeur de metadata
MAX_VALUE_LENGTH = 500


@dataclass(frozen=True)
class CheckoutMetadata:
    buyer_id: str
    buyer_email: str
    customer_record_id: Optional[str]
    product_ids: Tuple[str, ...]
    quantities: Tuple[int, ...]

    def pairs(self) -> List[Tuple[str, int]]:
        return list(zip(self.product_ids, self.quantities))


# module backend.payments.metadata
def build_metadata(
    buyer_id: str,
    buyer_email: str,
    customer_record_id: Optional[str],
    validated: List[ValidatedLineItem],
) -> CheckoutMetadata:
    return CheckoutMetadata(
        buyer_id=buyer_id,
        buyer_email=buyer_email,
        customer_record_id=customer_record_id,
        product_ids=tuple(line.product.id for line in validated),
        quantities=tuple(line.quantity for line in validated),
    )


def encode_metadata(meta: CheckoutMetadata) -> Dict[str, str]:
    """
    CheckoutMetadata -> dict[str, str] pour stripe.checkout.Session.create.
    Soulève CartTooLarge si la composition du panier dépasse la limite Stripe,
    ValueError si l'encodage perdrait de l'information (id contenant une virgule,
    longueurs différentes, autre valeur trop longue).
    """
    if len(meta.product_ids) != len(meta.quantities) or not meta.product_ids:
        raise ValueError("productIds et quantities doivent être non vides et de même longueur")
    if any("," in pid or not pid for pid in meta.product_ids):
        raise ValueError("identifiant produit non encodable")
    encoded = {
        USER_ID_KEY: meta.buyer_id,
        USER_EMAIL_KEY: meta.buyer_email,
        PRODUCT_IDS_KEY: ",".join(meta.product_ids),
        QUANTITIES_KEY: ",".join(str(int(q)) for q in meta.quantities),
    }
    if meta.customer_record_id:
        encoded[CUSTOMER_RECORD_KEY] = meta.customer_record_id
    too_long = [k for k, v in encoded.items() if len(v) > MAX_VALUE_LENGTH]
    if PRODUCT_IDS_KEY in too_long or QUANTITIES_KEY in too_long:
        raise CartTooLarge()
    if too_long:
        raise ValueError(f"metadata trop longue: {', '.join(too_long)}")
    return encoded


def decode_metadata(raw: Optional[Mapping[str, str]]) -> CheckoutMetadata:
    """
    dict Stripe -> CheckoutMetadata, en mode « fail-closed ».
    Soulève MalformedMetadata si un champ requis manque, si les listes ne sont
    pas alignées ou si une quantité n'est pas un entier strictement positif.
    """
    raw = raw or {}
    buyer_id = (raw.get(USER_ID_KEY) or "").strip()
    ids_str = (raw.get(PRODUCT_IDS_KEY) or "").strip()
    qty_str = (raw.get(QUANTITIES_KEY) or "").strip()
    missing = [k for k, v in ((USER_ID_KEY, buyer_id), (PRODUCT_IDS_KEY, ids_str), (QUANTITIES_KEY, qty_str)) if not v]
    if missing:
        raise MalformedMetadata(f"metadata manquante: {', '.join(missing)}")

    product_ids = tuple(p.strip() for p in ids_str.split(","))
    try:
        quantities = tuple(int(q) for q in qty_str.split(","))
    except ValueError:
        raise MalformedMetadata(f"quantities non numériques: {qty_str!r}")

    if len(product_ids) != len(quantities):
        raise MalformedMetadata(
            f"productIds ({len(product_ids)}) et quantities ({len(quantities)}) désalignés"
        )
    if any(not pid for pid in product_ids):
        raise MalformedMetadata("identifiant produit vide dans productIds")
    if any(q <= 0 for q in quantities):
        raise MalformedMetadata(f"quantité non positive: {qty_str!r}")

    return CheckoutMetadata(
        buyer_id=buyer_id,
        buyer_email=(raw.get(USER_EMAIL_KEY) or "").strip(),
        customer_record_id=(raw.get(CUSTOMER_RECORD_KEY) or "").strip() or None,
        product_ids=product_ids,
        quantities=quantities,
    )
