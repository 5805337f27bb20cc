"""
Collaborateurs externes construits une fois par processus.
- Repositories Supabase (client service-role) et passerelle Stripe.
- Exposés via Depends pour que les vues les passent explicitement aux services;
  les tests les remplacent par des doubles via app.dependency_overrides.
"""
from functools import lru_cache

from backend.catalog.repository import CatalogRepository
from backend.customers.repository import CustomersRepository
from backend.infra.supabase_client import get_service_supabase
from backend.orders.repository import OrdersRepository
from backend.payments.stripe_client import StripeGateway


@lru_cache(maxsize=1)
def get_catalog_repository() -> CatalogRepository:
    return CatalogRepository(get_service_supabase())


@lru_cache(maxsize=1)
def get_customers_repository() -> CustomersRepository:
    return CustomersRepository(get_service_supabase())


@lru_cache(maxsize=1)
def get_orders_repository() -> OrdersRepository:
    return OrdersRepository(get_service_supabase())


@lru_cache(maxsize=1)
def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()
