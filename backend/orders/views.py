# module backend.orders.views

"""Endpoints « Mes commandes ».
- GET /api/v1/orders: commandes de l'utilisateur connecté (plus récentes d'abord).
- GET /api/v1/orders/{order_id}: détail d'une commande appartenant à l'utilisateur.
Les statuts évoluent ensuite côté back-office (hors de ce service).
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any
import logging

from backend.dependencies import get_orders_repository
from backend.orders import service as orders_service
from backend.orders.repository import OrdersRepository
from backend.payments.errors import TransientInfraError
from backend.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
def list_my_orders(
    user: Dict[str, Any] = Depends(require_user),
    orders: OrdersRepository = Depends(get_orders_repository),
):
    try:
        return {"orders": orders_service.get_user_orders(user.get("id", ""), orders)}
    except TransientInfraError:
        raise HTTPException(status_code=503, detail="Commandes momentanément indisponibles")


@router.get("/{order_id}")
def get_my_order(
    order_id: str,
    user: Dict[str, Any] = Depends(require_user),
    orders: OrdersRepository = Depends(get_orders_repository),
):
    try:
        order = orders_service.get_user_order(order_id, user.get("id", ""), orders)
    except TransientInfraError:
        raise HTTPException(status_code=503, detail="Commandes momentanément indisponibles")
    if not order:
        raise HTTPException(status_code=404, detail="Commande introuvable")
    return order
