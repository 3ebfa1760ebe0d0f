# backend/inventory_api/core/money.py
"""
Para birimi yardımcıları.

Tutarlar DB'de tam sayı kuruş (cent) olarak saklanır; API giriş/çıkışında
2 haneli para birimi kullanılır.
"""
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional, Sequence

MONEY_PLACES = Decimal("0.01")  # 2 hane
CENTS = Decimal(100)


def to_decimal(val) -> Decimal:
    try:
        d = val if isinstance(val, Decimal) else Decimal(str(val))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Geçersiz tutar: {val!r}")
    if not d.is_finite():
        raise ValueError(f"Geçersiz tutar: {val!r}")
    return d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_cents(amount) -> int:
    """1.005 -> 101 (ROUND_HALF_UP). None -> 0."""
    if amount is None:
        return 0
    try:
        d = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        return int((d * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Geçersiz tutar: {amount!r}")


def from_cents(cents: Optional[int]) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(int(cents)) / CENTS).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def money_out(cents: Optional[int]) -> float:
    return float(from_cents(cents))


def round_cents(value) -> int:
    """Kesirli kuruş değerini (Decimal/float) tam kuruşa yuvarla."""
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    return int(d.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def allocate_cents(total: int, weights: Sequence[int]) -> List[int]:
    """
    total kuruşu ağırlıklarla orantılı böl; kalan son sıfır-olmayan ağırlığa.
    Parçaların toplamı her zaman total'e eşittir.
    """
    total = int(total or 0)
    if not weights:
        return []
    weight_sum = sum(max(0, int(w)) for w in weights)
    if weight_sum <= 0 or total == 0:
        return [0 for _ in weights]

    parts = [(total * max(0, int(w))) // weight_sum for w in weights]
    remainder = total - sum(parts)
    last = max(i for i, w in enumerate(weights) if int(w) > 0)
    parts[last] += remainder
    return parts


def money_property(column_attr: str):
    """Model üzerinde `<Alan>Cents` kolonunu Decimal olarak okuyan property."""
    def _get(self) -> Decimal:
        return from_cents(getattr(self, column_attr))
    return property(_get)
