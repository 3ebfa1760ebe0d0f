# backend/inventory_api/schemas/common.py
from decimal import Decimal
from typing import Annotated, List

from pydantic import BaseModel, Field, PlainSerializer

from ..core.money import to_decimal

# İstemci basit görsün diye JSON'da float döndürüyoruz
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def parse_money(v, *, positive: bool = False) -> Decimal:
    """Girdiyi 2 haneye ROUND_HALF_UP yuvarla; negatifse (ya da positive iken 0 ise) hata."""
    if v is None:
        return Decimal("0.00")
    d = to_decimal(v)
    if d < 0 or (positive and d == 0):
        raise ValueError("tutar pozitif olmalı" if positive else "tutar negatif olamaz")
    return d


class IdsIn(BaseModel):
    IDs: List[int] = Field(..., min_length=1)


class SearchIn(BaseModel):
    query: str = Field(..., min_length=1, max_length=100)
