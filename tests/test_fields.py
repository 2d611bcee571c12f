# tests/test_fields.py
from __future__ import annotations

import pytest

from reportkit.core.errors import ApiError
from reportkit.services.fields import apply_field_selection, select_fields

DECLARED = ("symbol", "name", "price", "volume_24h")


def test_no_request_means_no_projection():
    assert select_fields(None, DECLARED) is None
    assert select_fields([], DECLARED) is None


def test_declared_order_wins():
    assert select_fields(["price", "symbol"], DECLARED) == ["symbol", "price"]


def test_unknown_names_are_dropped():
    assert select_fields(["price", "nonsense"], DECLARED) == ["price"]


def test_only_unknown_names_is_400():
    with pytest.raises(ApiError) as exc:
        select_fields(["nonsense"], DECLARED)
    assert exc.value.status_code == 400
    assert exc.value.payload["allowedFields"] == list(DECLARED)


def test_apply_projection_null_fills():
    rows = [{"symbol": "BTC", "price": 1.0, "name": "Bitcoin"}, {"symbol": "ETH"}]
    assert apply_field_selection(rows, ["symbol", "price"]) == [
        {"symbol": "BTC", "price": 1.0},
        {"symbol": "ETH", "price": None},
    ]


def test_apply_without_projection_is_identity():
    rows = [{"a": 1}]
    assert apply_field_selection(rows, None) is rows
