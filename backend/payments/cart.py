"""
Validation du panier (frontière de confiance).
Le prix et le nom envoyés par le client sont indicatifs: seul le snapshot
catalogue fait foi pour les montants à partir d'ici.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from backend.catalog.models import ProductSnapshot
from .errors import (
    CartValidationError,
    InsufficientStock,
    OutOfStock,
    ProductUnavailable,
    ValidationError,
)


@dataclass(frozen=True)
class CartItem:
    product_id: str
    name: str
    price: Optional[float]  # annoncé par le client, jamais utilisé pour l'argent
    quantity: int


@dataclass(frozen=True)
class ValidatedLineItem:
    product: ProductSnapshot
    quantity: int

    @property
    def amount_minor(self) -> int:
        return self.product.price_minor * self.quantity


# module backend.payments.cart
def parse_cart(items: List[Dict[str, Any]]) -> List[CartItem]:
    """
    Convertit le JSON brut [{productId, name, price, quantity}, ...] en CartItem.
    - Accepte 'productId' ou 'id' pour l'identifiant.
    - Agrège les lignes d'un même produit (quantités sommées, ordre conservé).
    - Soulève ValidationError si le panier est vide ou si une ligne est invalide.
    """
    if not items:
        raise ValidationError("Votre panier est vide", code="empty_cart")

    merged: Dict[str, CartItem] = {}
    for it in items:
        if not isinstance(it, dict):
            raise ValidationError("Ligne de panier invalide")
        product_id = str(it.get("productId") or it.get("id") or "").strip()
        if not product_id:
            raise ValidationError("Ligne de panier sans identifiant produit")
        raw_qty = it.get("quantity")
        if isinstance(raw_qty, bool) or not isinstance(raw_qty, (int, str)):
            raise ValidationError(f"Quantité invalide pour « {product_id} »")
        try:
            qty = int(raw_qty)
        except ValueError:
            raise ValidationError(f"Quantité invalide pour « {product_id} »")
        if qty <= 0:
            raise ValidationError(f"Quantité invalide pour « {product_id} »")

        claimed_price = it.get("price")
        try:
            claimed_price = float(claimed_price) if claimed_price is not None else None
        except (TypeError, ValueError):
            claimed_price = None

        previous = merged.get(product_id)
        if previous:
            merged[product_id] = CartItem(product_id, previous.name, previous.price, previous.quantity + qty)
        else:
            merged[product_id] = CartItem(product_id, str(it.get("name") or ""), claimed_price, qty)
    return list(merged.values())


def check_item(item: CartItem, snapshot: Optional[ProductSnapshot]) -> ValidatedLineItem:
    """Valide une ligne contre son snapshot; soulève l'erreur métier correspondante."""
    if snapshot is None:
        raise ProductUnavailable(item.product_id, item.name)
    if snapshot.stock <= 0:
        raise OutOfStock(snapshot.id, snapshot.name)
    if item.quantity > snapshot.stock:
        raise InsufficientStock(snapshot.id, snapshot.name, snapshot.stock, item.quantity)
    return ValidatedLineItem(product=snapshot, quantity=item.quantity)


def validate_cart(items: List[CartItem], catalog) -> List[ValidatedLineItem]:
    """
    Revalide le panier contre le catalogue en direct.
    - Une seule lecture groupée (catalog.fetch_snapshots) pour tous les ids.
    - Toutes les erreurs sont collectées puis levées ensemble (CartValidationError).
    - Retourne les lignes validées dans l'ordre du panier, au prix du snapshot.
    """
    snapshots = catalog.fetch_snapshots([i.product_id for i in items])
    validated: List[ValidatedLineItem] = []
    problems: List[ValidationError] = []
    for item in items:
        try:
            validated.append(check_item(item, snapshots.get(item.product_id)))
        except ValidationError as e:
            problems.append(e)
    if problems:
        raise CartValidationError(problems)
    return validated


def to_line_items(validated: List[ValidatedLineItem], currency: str) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe (price_data) depuis les lignes validées.
    unit_amount est déjà en unités mineures (arrondi half-up à la lecture du snapshot).
    """
    line_items: List[Dict[str, Any]] = []
    for line in validated:
        product = line.product
        line_items.append({
            "quantity": line.quantity,
            "price_data": {
                "currency": currency,
                "unit_amount": product.price_minor,
                "product_data": {
                    "name": product.name,
                    "images": [product.image_url] if product.image_url else [],
                    "metadata": {"productId": product.id},
                },
            },
        })
    return line_items
