"""
Module 'payments' (feature-first): point d'entrée public.
Réunit validation panier, metadata Stripe, décodage des événements et erreurs.
Les cas d'usage (service, reconciliation) et les vues s'importent par leur module.
"""

from .errors import (
    ReconciliationError,
    ValidationError,
    ProductUnavailable,
    OutOfStock,
    InsufficientStock,
    CartValidationError,
    CartTooLarge,
    AuthenticationError,
    SignatureInvalid,
    MalformedMetadata,
    TransientInfraError,
    DuplicateOrder,
)
from .cart import CartItem, ValidatedLineItem, parse_cart, validate_cart, to_line_items
from .metadata import CheckoutMetadata, build_metadata, encode_metadata, decode_metadata
from .events import CheckoutCompleted, IgnoredEvent, decode_event

__all__ = [
    # errors
    "ReconciliationError",
    "ValidationError",
    "ProductUnavailable",
    "OutOfStock",
    "InsufficientStock",
    "CartValidationError",
    "CartTooLarge",
    "AuthenticationError",
    "SignatureInvalid",
    "MalformedMetadata",
    "TransientInfraError",
    "DuplicateOrder",
    # cart
    "CartItem",
    "ValidatedLineItem",
    "parse_cart",
    "validate_cart",
    "to_line_items",
    # metadata
    "CheckoutMetadata",
    "build_metadata",
    "encode_metadata",
    "decode_metadata",
    # events
    "CheckoutCompleted",
    "IgnoredEvent",
    "decode_event",
]
