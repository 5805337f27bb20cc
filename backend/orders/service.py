from typing import Any, Dict, List, Optional


def get_user_orders(buyer_id: str, orders) -> List[Dict[str, Any]]:
    """
    Commandes de l'acheteur, plus récentes d'abord, au format API.
    - Délègue à orders.list_for_buyer pour la lecture.
    """
    return [o.to_public() for o in orders.list_for_buyer(buyer_id)]


def get_user_order(order_id: str, buyer_id: str, orders) -> Optional[Dict[str, Any]]:
    """Détail d'une commande; None si absente ou appartenant à un autre acheteur."""
    order = orders.get_by_id(order_id)
    if not order or order.buyer_id != buyer_id:
        return None
    return order.to_public()
