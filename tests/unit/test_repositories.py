import pytest
from unittest.mock import MagicMock
from postgrest.exceptions import APIError

from backend.catalog.repository import CatalogRepository
from backend.customers.repository import CustomersRepository
from backend.orders.models import Order, OrderLine
from backend.orders.repository import OrdersRepository
from backend.payments.errors import DuplicateOrder, TransientInfraError


def _client_returning(data):
    client = MagicMock()
    table = client.table.return_value
    # Chaîne fluide supabase: chaque filtre renvoie le même builder
    for name in ("select", "eq", "in_", "order", "limit", "insert", "update"):
        getattr(table, name).return_value = table
    table.execute.return_value = MagicMock(data=data)
    return client, table


def _order():
    return Order(
        order_number="ORD-TEST-1",
        buyer_id="u1",
        email="u1@example.com",
        lines=[OrderLine("p1", 2, 1250)],
        payment_id="pi_1",
    )


def test_fetch_snapshots_single_query():
    client, table = _client_returning([
        {"id": "p1", "name": "Mug", "price": "12.50", "stock": 5, "image_url": None},
    ])
    repo = CatalogRepository(client)

    snapshots = repo.fetch_snapshots(["p1", "p1", "ghost"])

    table.in_.assert_called_once_with("id", ["p1", "ghost"])
    assert list(snapshots) == ["p1"]
    assert snapshots["p1"].price_minor == 1250


def test_fetch_snapshots_skips_rows_without_price():
    client, _ = _client_returning([
        {"id": "p1", "name": "Mug", "price": None, "stock": 5},
        {"id": "p2", "name": "Poster", "price": "19.99", "stock": 2},
    ])

    snapshots = CatalogRepository(client).fetch_snapshots(["p1", "p2"])

    assert list(snapshots) == ["p2"]


def test_fetch_snapshots_empty_ids_skips_query():
    client, _ = _client_returning([])
    assert CatalogRepository(client).fetch_snapshots([]) == {}
    client.table.assert_not_called()


def test_fetch_snapshots_failure_is_transient():
    client, table = _client_returning([])
    table.execute.side_effect = ConnectionError("boom")
    with pytest.raises(TransientInfraError):
        CatalogRepository(client).fetch_snapshots(["p1"])


def test_apply_order_stock_calls_rpc():
    client = MagicMock()
    client.rpc.return_value.execute.return_value = MagicMock(data=True)

    assert CatalogRepository(client).apply_order_stock("order-1") is True
    client.rpc.assert_called_once_with("apply_order_stock", {"p_order_id": "order-1"})


def test_apply_order_stock_already_applied():
    client = MagicMock()
    client.rpc.return_value.execute.return_value = MagicMock(data=False)
    assert CatalogRepository(client).apply_order_stock("order-1") is False


def test_create_order_unique_violation_is_duplicate():
    client, table = _client_returning([])
    table.execute.side_effect = APIError({"code": "23505", "message": "duplicate key value violates unique constraint"})

    with pytest.raises(DuplicateOrder) as exc:
        OrdersRepository(client).create(_order())
    assert exc.value.payment_id == "pi_1"


def test_create_order_other_api_error_is_transient():
    client, table = _client_returning([])
    table.execute.side_effect = APIError({"code": "57014", "message": "canceling statement due to statement timeout"})

    with pytest.raises(TransientInfraError):
        OrdersRepository(client).create(_order())


def test_create_order_returns_persisted_row():
    order = _order()
    client, table = _client_returning([dict(order.to_row(), id="uuid-1")])

    created = OrdersRepository(client).create(order)

    inserted = table.insert.call_args[0][0]
    assert inserted["total"] == 2500
    assert inserted["items"] == [{"product_id": "p1", "quantity": 2, "price_at_purchase": 1250}]
    assert created.id == "uuid-1"
    assert created.lines == order.lines


def test_find_by_payment_id_absent():
    client, table = _client_returning([])
    assert OrdersRepository(client).find_by_payment_id("pi_1") is None
    table.eq.assert_called_with("payment_id", "pi_1")


def test_list_for_buyer_newest_first():
    client, table = _client_returning([])
    OrdersRepository(client).list_for_buyer("u1")
    table.order.assert_called_once_with("created_at", desc=True)
    table.limit.assert_called_once_with(50)


def test_customers_lookup_skips_empty_value():
    client, _ = _client_returning([])
    assert CustomersRepository(client).find_by_email("") is None
    client.table.assert_not_called()


def test_customers_create_requires_returned_row():
    client, _ = _client_returning([])
    with pytest.raises(TransientInfraError):
        CustomersRepository(client).create(user_id="u1", email="u1@example.com", name="Ada", stripe_customer_id="cus_1")
