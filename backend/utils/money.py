"""
Conversions monétaires.
Tous les montants internes sont des entiers en unités mineures (centimes/pence);
la conversion vers les unités majeures n'a lieu qu'aux frontières (Supabase, JSON).
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")


def to_minor_units(amount: Any) -> int:
    """
    Unités majeures -> mineures, arrondi « half-up » sur amount * 100.
    Accepte str|int|float|Decimal; passe par str() pour éviter les artefacts
    binaires des floats (ex: 19.995 -> 2000).
    """
    if amount is None or amount == "":
        raise ValueError("montant manquant")
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"montant invalide: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"montant invalide: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(minor: int) -> Decimal:
    return (Decimal(int(minor)) / 100).quantize(_CENT)


def format_major(minor: int) -> str:
    """Représentation JSON d'un montant: chaîne décimale à 2 chiffres ('12.50')."""
    return f"{to_major_units(minor):.2f}"
