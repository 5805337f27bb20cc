import pytest

from backend.payments.cart import parse_cart, validate_cart
from backend.payments.errors import CartTooLarge, MalformedMetadata
from backend.payments.metadata import (
    CheckoutMetadata,
    build_metadata,
    decode_metadata,
    encode_metadata,
)


def _meta(**overrides):
    values = dict(
        buyer_id="u1",
        buyer_email="u1@example.com",
        customer_record_id="rec-1",
        product_ids=("p1", "p2", "p3"),
        quantities=(2, 1, 4),
    )
    values.update(overrides)
    return CheckoutMetadata(**values)


def test_encode_then_decode_keeps_pairs_in_order():
    encoded = encode_metadata(_meta())
    assert encoded == {
        "userId": "u1",
        "userEmail": "u1@example.com",
        "productIds": "p1,p2,p3",
        "quantities": "2,1,4",
        "customerRecordId": "rec-1",
    }
    decoded = decode_metadata(encoded)
    assert decoded.pairs() == [("p1", 2), ("p2", 1), ("p3", 4)]
    assert decoded == _meta()


def test_build_metadata_follows_validated_cart_order(catalog):
    validated = validate_cart(parse_cart([{"productId": "p2", "quantity": 1}, {"productId": "p1", "quantity": 3}]), catalog)
    meta = build_metadata("u1", "u1@example.com", None, validated)
    assert meta.product_ids == ("p2", "p1")
    assert meta.quantities == (1, 3)
    assert "customerRecordId" not in encode_metadata(meta)


@pytest.mark.parametrize("meta", [
    _meta(product_ids=("p,1",), quantities=(1,)),
    _meta(product_ids=("p1", "p2"), quantities=(1,)),
    _meta(product_ids=(), quantities=()),
    _meta(buyer_email="x" * 501),
])
def test_encode_refuses_lossy_metadata(meta):
    with pytest.raises(ValueError):
        encode_metadata(meta)


def test_decode_optional_fields():
    decoded = decode_metadata({"userId": "u1", "productIds": "p1", "quantities": "1"})
    assert decoded.buyer_email == ""
    assert decoded.customer_record_id is None


@pytest.mark.parametrize("raw", [
    None,
    {},
    {"productIds": "p1", "quantities": "1"},
    {"userId": "u1", "quantities": "1"},
    {"userId": "u1", "productIds": "p1"},
    {"userId": "u1", "productIds": "p1,p2", "quantities": "1"},
    {"userId": "u1", "productIds": "p1", "quantities": "un"},
    {"userId": "u1", "productIds": "p1,,p2", "quantities": "1,1,1"},
    {"userId": "u1", "productIds": "p1", "quantities": "0"},
    {"userId": "u1", "productIds": "p1", "quantities": "-2"},
])
def test_decode_is_fail_closed(raw):
    with pytest.raises(MalformedMetadata):
        decode_metadata(raw)


def test_encode_oversized_cart_is_a_checkout_error():
    ids = tuple(f"{i:036d}" for i in range(14))
    with pytest.raises(CartTooLarge) as exc:
        encode_metadata(_meta(product_ids=ids, quantities=(1,) * 14))
    assert exc.value.code == "cart_too_large"
