"""
Taxonomie d'erreurs du parcours checkout -> webhook -> commande.

- Erreurs « checkout » (ValidationError, AuthenticationError): corrigeables par
  l'acheteur, renvoyées sous forme de messages lisibles.
- Erreurs « webhook » (SignatureInvalid, MalformedMetadata): terminales, jamais
  rejouées par Stripe.
- TransientInfraError: échec Supabase/Stripe pendant la matérialisation, le
  webhook répond 5xx pour déclencher une nouvelle livraison.
"""
from typing import List, Optional


class ReconciliationError(Exception):
    """Racine des erreurs métier de la boutique."""
    code = "error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ReconciliationError):
    code = "validation"


class ProductUnavailable(ValidationError):
    code = "product_unavailable"

    def __init__(self, product_id: str, name: str):
        label = name or product_id
        super().__init__(f"Le produit « {label} » n'est plus disponible")
        self.product_id = product_id


class OutOfStock(ValidationError):
    code = "out_of_stock"

    def __init__(self, product_id: str, name: str):
        super().__init__(f"« {name} » est en rupture de stock")
        self.product_id = product_id


class InsufficientStock(ValidationError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, name: str, available: int, requested: int):
        super().__init__(f"Seulement {available} « {name} » disponible(s)")
        self.product_id = product_id
        self.available = available
        self.requested = requested


class CartValidationError(ValidationError):
    """Agrège tous les problèmes d'un panier (pas de court-circuit)."""
    code = "cart_invalid"

    def __init__(self, problems: List[ValidationError]):
        super().__init__(". ".join(p.message for p in problems))
        self.problems = list(problems)


class CartTooLarge(ValidationError):
    """Panier non transportable dans les metadata Stripe (500 caractères par valeur)."""
    code = "cart_too_large"

    def __init__(self, message: str = (
        "Votre panier contient trop de produits différents pour un seul paiement. "
        "Veuillez le diviser en plusieurs commandes"
    )):
        super().__init__(message)


class AuthenticationError(ReconciliationError):
    code = "authentication"

    def __init__(self, message: str = "Veuillez vous connecter pour commander"):
        super().__init__(message)


class SignatureInvalid(ReconciliationError):
    code = "signature_invalid"


class MalformedMetadata(ReconciliationError):
    code = "malformed_metadata"


class TransientInfraError(ReconciliationError):
    code = "transient"


class DuplicateOrder(ReconciliationError):
    """Violation de l'unicité orders.payment_id (livraison concurrente)."""
    code = "duplicate_order"

    def __init__(self, payment_id: str):
        super().__init__(f"Commande déjà existante pour payment_id={payment_id}")
        self.payment_id = payment_id
