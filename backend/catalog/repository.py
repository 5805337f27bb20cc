"""
Accès aux données catalogue (table 'products').
- Lecture groupée des snapshots prix/stock (une seule requête in_()).
- Décrément de stock atomique via la fonction Postgres apply_order_stock.
"""
from typing import Dict, Iterable, List
import logging

from supabase import Client

from backend.catalog.models import ProductSnapshot, snapshots_from_rows
from backend.payments.errors import TransientInfraError

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, price, stock, image_url"

# module backend.catalog.repository
class CatalogRepository:
    def __init__(self, client: Client):
        self.client = client

    def fetch_snapshots(self, ids: Iterable[str]) -> Dict[str, ProductSnapshot]:
        """
        Retourne {id: ProductSnapshot} pour exactement les ids demandés.
        - Dédoublonne en conservant l'ordre; [] -> {} sans requête.
        - Les produits supprimés/dépubliés ou au prix invalide sont absents du dict.
        """
        unique_ids: List[str] = list(dict.fromkeys(str(i) for i in ids if i))
        if not unique_ids:
            return {}
        try:
            res = (
                self.client
                .table("products")
                .select(PRODUCT_COLUMNS)
                .in_("id", unique_ids)
                .execute()
            )
        except Exception as e:
            logger.exception("catalog.repository.fetch_snapshots failed ids=%s", unique_ids)
            raise TransientInfraError(f"Lecture catalogue impossible: {e}") from e
        rows = res.data or []
        return snapshots_from_rows(rows)

    def apply_order_stock(self, order_id: str) -> bool:
        """
        Décrémente le stock de tous les produits de la commande en une transaction.
        - True: décrément appliqué par cet appel.
        - False: déjà appliqué (stock_applied=true), aucune écriture.
        Toute erreur PostgREST remonte en TransientInfraError (rejouable).
        """
        try:
            res = self.client.rpc("apply_order_stock", {"p_order_id": order_id}).execute()
        except Exception as e:
            logger.exception("catalog.repository.apply_order_stock failed order_id=%s", order_id)
            raise TransientInfraError(f"Mise à jour du stock impossible: {e}") from e
        return bool(res.data)
