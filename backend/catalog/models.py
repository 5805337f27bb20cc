# module backend.catalog.models
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
import logging

from backend.utils.money import to_minor_units

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 5


@dataclass(frozen=True)
class ProductSnapshot:
    """Prix/stock faisant autorité pour un produit, lus dans la table 'products'."""
    id: str
    name: str
    price_minor: int
    stock: int
    image_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProductSnapshot":
        """
        Construit un snapshot depuis une ligne Supabase.
        - price (numeric, unités majeures) -> unités mineures (half-up)
        - price absent/illisible -> ValueError (jamais de prix implicite)
        - stock absent/NULL -> 0
        """
        return cls(
            id=str(row.get("id")),
            name=row.get("name") or "Produit",
            price_minor=to_minor_units(row.get("price")),
            stock=int(row.get("stock") or 0),
            image_url=row.get("image_url") or None,
        )


def snapshots_from_rows(rows: Iterable[Dict[str, Any]]) -> Dict[str, ProductSnapshot]:
    """
    {id: ProductSnapshot} pour les lignes exploitables.
    Une ligne au prix invalide est écartée: le produit est alors vu comme indisponible.
    """
    snapshots: Dict[str, ProductSnapshot] = {}
    for row in rows:
        try:
            snapshot = ProductSnapshot.from_row(row)
        except ValueError as e:
            logger.error("catalog.snapshot invalid price product=%s: %s", row.get("id"), e)
            continue
        snapshots[snapshot.id] = snapshot
    return snapshots


def is_low_stock(snapshot: ProductSnapshot) -> bool:
    return 0 < snapshot.stock <= LOW_STOCK_THRESHOLD
