import re

import pytest

from marketplace import identifiers
from marketplace.errors import ConflictError
from marketplace.identifiers import IdentifierGenerator


class ExhaustedOrders:
    def __init__(self):
        self.lookups = 0

    def exists(self, field, value, session=None):
        self.lookups += 1
        return True


def test_identifiers_have_prefix_and_width(store):
    generator = IdentifierGenerator(store.orders)

    assert re.match(r"^ORD-\d{5}$", generator.order_id())
    assert re.match(r"^TXN-\d{7}$", generator.transaction_id())


def test_collision_is_retried(store, monkeypatch):
    store.orders.insert({"order_id": "ORD-00000", "transaction_id": "TXN-0000000"})
    digits = iter(["00000", "00000", "12345"])
    monkeypatch.setattr(identifiers, "random_digits", lambda width: next(digits))

    assert IdentifierGenerator(store.orders).order_id() == "ORD-12345"


def test_widens_after_repeated_collisions(store, monkeypatch):
    store.orders.insert({"order_id": "ORD-11111", "transaction_id": "TXN-1"})
    monkeypatch.setattr(identifiers, "random_digits", lambda width: "1" * width)

    generator = IdentifierGenerator(store.orders, max_attempts=3)

    assert generator.order_id() == "ORD-111111"


def test_exhausted_space_raises_conflict():
    orders = ExhaustedOrders()
    generator = IdentifierGenerator(orders, max_attempts=2)

    with pytest.raises(ConflictError):
        generator.transaction_id()
    assert orders.lookups == 2 * (identifiers.MAX_WIDENINGS + 1)
