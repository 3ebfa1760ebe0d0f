from decimal import Decimal

import pytest

from inventory_api.core.money import allocate_cents, from_cents, to_cents, to_decimal, round_cents
from inventory_api.schemas.common import parse_money


def test_to_cents_rounds_half_up():
    assert to_cents("1.005") == 101
    assert to_cents(Decimal("18900")) == 1890000
    assert to_cents(None) == 0


def test_from_cents_two_places():
    assert from_cents(12345) == Decimal("123.45")
    assert from_cents(None) == Decimal("0.00")


def test_to_decimal_rejects_garbage():
    with pytest.raises(ValueError):
        to_decimal("abc")
    with pytest.raises(ValueError):
        to_decimal("NaN")


def test_round_cents():
    assert round_cents(Decimal("10.5")) == 11
    assert round_cents(Decimal("10.49")) == 10


def test_allocate_cents_sums_to_total():
    parts = allocate_cents(100, [1, 1, 1])
    assert parts == [33, 33, 34]
    assert sum(parts) == 100


def test_allocate_cents_remainder_goes_to_last_weighted():
    assert allocate_cents(10, [1, 2, 0]) == [3, 7, 0]


def test_allocate_cents_zero_cases():
    assert allocate_cents(0, [1, 2]) == [0, 0]
    assert allocate_cents(50, [0, 0]) == [0, 0]
    assert allocate_cents(50, []) == []


def test_parse_money():
    assert parse_money("12.345") == Decimal("12.35")
    assert parse_money(None) == Decimal("0.00")
    with pytest.raises(ValueError):
        parse_money("-1")
    with pytest.raises(ValueError):
        parse_money(0, positive=True)
