import pytest

from backend.payments.errors import MalformedMetadata, SignatureInvalid, TransientInfraError
from backend.payments.metadata import decode_metadata
from backend.payments.reconciliation import (
    STATUS_DEDUPLICATED,
    STATUS_DROPPED,
    STATUS_IGNORED,
    STATUS_STOCK_ADJUSTED,
    build_order_lines,
    handle_webhook,
)
from backend.payments.service import create_checkout_session
from fakes import completed_event, event_bytes, sign_payload

BUYER = {"id": "u1", "email": "u1@example.com", "metadata": {"full_name": "Ada Lovelace"}}


def _paid_session(items, catalog, customers, gateway):
    result = create_checkout_session(
        BUYER, items,
        catalog=catalog, customers=customers, gateway=gateway,
        base_url="https://shop.example",
    )
    assert result.success, result.error
    return gateway.sessions[result.session_id]


def _deliver(event, orders, catalog, gateway):
    payload = event_bytes(event)
    return handle_webhook(payload, sign_payload(payload), orders=orders, catalog=catalog, gateway=gateway)


def _completed(session, payment_id="pi_1", **kwargs):
    return completed_event(
        session["id"], session["metadata"],
        payment_id=payment_id, amount_total=session["amount_total"], **kwargs,
    )


def test_paid_checkout_creates_order_and_decrements_stock(catalog, orders, customers, gateway):
    # Arrange: p1 stock 5, achat de 2
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    # Act
    result = _deliver(_completed(session), orders, catalog, gateway)
    # Assert
    assert result.status == STATUS_STOCK_ADJUSTED
    assert catalog.stock("p1") == 3

    [order] = orders.by_payment("pi_1")
    assert result.order_id == order.id
    assert order.order_number.startswith("ORD-")
    assert order.buyer_id == "u1"
    assert order.email == "u1@example.com"
    assert order.status == "paid"
    assert order.stock_applied is True
    assert [(l.product_id, l.quantity, l.price_at_purchase) for l in order.lines] == [("p1", 2, 1250)]
    assert order.total == 2500
    assert order.stripe_session_id == session["id"]
    assert order.customer_record_id == customers.records[0]["id"]
    assert order.shipping_address.city == "London"
    assert order.shipping_address.postcode == "SW1A 1AA"


def test_redelivery_is_deduplicated(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    first = _deliver(_completed(session), orders, catalog, gateway)

    second = _deliver(_completed(session, event_id="evt_test_2"), orders, catalog, gateway)

    assert second.status == STATUS_DEDUPLICATED
    assert second.order_id == first.order_id
    assert len(orders.by_payment("pi_1")) == 1
    assert catalog.stock("p1") == 3
    # Aucune lecture Stripe ni écriture pour un doublon
    assert gateway.line_item_calls == 1
    assert orders.create_calls == 1


def test_stock_failure_is_retried_on_redelivery(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    catalog.fail_apply = 1

    with pytest.raises(TransientInfraError):
        _deliver(_completed(session), orders, catalog, gateway)
    [order] = orders.by_payment("pi_1")
    assert order.stock_applied is False
    assert catalog.stock("p1") == 5

    retry = _deliver(_completed(session), orders, catalog, gateway)

    assert retry.status == STATUS_STOCK_ADJUSTED
    assert retry.order_id == order.id
    assert catalog.stock("p1") == 3
    assert len(orders.by_payment("pi_1")) == 1


def test_concurrent_delivery_hits_unique_payment_id(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    _deliver(_completed(session), orders, catalog, gateway)

    # La seconde livraison a lu avant l'écriture de la première
    orders.stale_lookups = 1
    result = _deliver(_completed(session, event_id="evt_test_2"), orders, catalog, gateway)

    assert result.status == STATUS_DEDUPLICATED
    assert orders.create_calls == 2
    assert len(orders.by_payment("pi_1")) == 1
    assert catalog.stock("p1") == 3


def test_concurrent_delivery_finishes_pending_stock(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    catalog.fail_apply = 1
    with pytest.raises(TransientInfraError):
        _deliver(_completed(session), orders, catalog, gateway)

    orders.stale_lookups = 1
    result = _deliver(_completed(session, event_id="evt_test_2"), orders, catalog, gateway)

    assert result.status == STATUS_STOCK_ADJUSTED
    assert catalog.stock("p1") == 3
    assert len(orders.by_payment("pi_1")) == 1


def test_price_at_purchase_survives_catalog_price_change(catalog, orders, customers, gateway):
    session = _paid_session(
        [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 2}],
        catalog, customers, gateway,
    )
    # Le prix change entre la session et le webhook
    catalog.products["p1"]["price"] = 99

    _deliver(_completed(session), orders, catalog, gateway)

    [order] = orders.by_payment("pi_1")
    assert [l.price_at_purchase for l in order.lines] == [1250, 1999]
    assert order.total == 1250 + 2 * 1999
    assert catalog.stock("p1") == 4
    assert catalog.stock("p2") == 8


def test_malformed_metadata_is_dropped_without_side_effects(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    event = _completed(session)
    event["data"]["object"]["metadata"] = {"userId": "u1", "productIds": "p1,p2", "quantities": "2"}

    result = _deliver(event, orders, catalog, gateway)

    assert result.status == STATUS_DROPPED
    assert orders.rows == {}
    assert catalog.stock("p1") == 5


def test_line_items_disagreeing_with_metadata_are_dropped(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    event = _completed(session)
    event["data"]["object"]["metadata"] = dict(session["metadata"], quantities="3")

    result = _deliver(event, orders, catalog, gateway)

    assert result.status == STATUS_DROPPED
    assert orders.rows == {}


def test_stripe_outage_while_listing_items_is_transient(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    gateway.fail_line_items = 1

    with pytest.raises(TransientInfraError):
        _deliver(_completed(session), orders, catalog, gateway)
    assert orders.rows == {}

    assert _deliver(_completed(session), orders, catalog, gateway).status == STATUS_STOCK_ADJUSTED


def test_order_creation_failure_is_transient(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    orders.fail_create = 1

    with pytest.raises(TransientInfraError):
        _deliver(_completed(session), orders, catalog, gateway)
    assert catalog.stock("p1") == 5


def test_unhandled_event_type_is_ignored(catalog, orders, gateway):
    event = completed_event("cs_x", {}, event_type="payment_intent.created")
    result = _deliver(event, orders, catalog, gateway)
    assert result.status == STATUS_IGNORED
    assert orders.rows == {}


def test_bad_signature_has_no_side_effects(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 2}], catalog, customers, gateway)
    payload = event_bytes(_completed(session))
    signature = sign_payload(payload)
    tampered = payload.replace(b'"quantities": "2"', b'"quantities": "1"')
    assert tampered != payload

    with pytest.raises(SignatureInvalid):
        handle_webhook(tampered, signature, orders=orders, catalog=catalog, gateway=gateway)
    assert orders.rows == {}
    assert catalog.stock("p1") == 5
    assert gateway.line_item_calls == 0


def test_metadata_email_falls_back_to_stripe_customer(catalog, orders, customers, gateway):
    session = _paid_session([{"productId": "p1", "quantity": 1}], catalog, customers, gateway)
    event = _completed(session)
    del event["data"]["object"]["metadata"]["userEmail"]

    _deliver(event, orders, catalog, gateway)

    [order] = orders.by_payment("pi_1")
    assert order.email == "stripe-buyer@example.com"


def test_build_order_lines_falls_back_to_line_amount():
    meta = decode_metadata({"userId": "u1", "productIds": "p1,p2", "quantities": "2,1"})
    paid = [
        {"quantity": 2, "amount_total": 2500, "price": None},
        {"quantity": 1, "amount_total": 1999, "price": {"unit_amount": 1999}},
    ]
    lines = build_order_lines(meta, paid)
    assert [(l.product_id, l.price_at_purchase) for l in lines] == [("p1", 1250), ("p2", 1999)]


def test_build_order_lines_rejects_count_mismatch():
    meta = decode_metadata({"userId": "u1", "productIds": "p1,p2", "quantities": "2,1"})
    with pytest.raises(MalformedMetadata):
        build_order_lines(meta, [{"quantity": 2, "price": {"unit_amount": 100}}])
