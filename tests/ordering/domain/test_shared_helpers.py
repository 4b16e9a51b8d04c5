"""Tests for shared helpers: money, references, product types and keyed locks."""

import re
import threading
import time

import pytest
from ordering.shared.locks import KeyedLocks, order_key, wallet_key
from ordering.shared.money import from_minor_units, round_money, to_minor_units
from ordering.shared.numbers import generate_license_key, generate_order_number
from ordering.shared.product_type import ProductType


class TestMoney:
    def test_round_money(self):
        assert round_money(10.456) == 10.46
        assert round_money(None) == 0.0

    def test_minor_units(self):
        assert to_minor_units(15000.0) == 1500000
        assert to_minor_units(19.99) == 1999
        assert from_minor_units(1500050) == 15000.5


class TestReferences:
    def test_order_number_format(self):
        assert re.match(r"^VS\d{12}$", generate_order_number())

    def test_license_key_format(self):
        assert re.match(r"^[A-Z0-9]{5}(-[A-Z0-9]{5}){4}$", generate_license_key())


class TestProductType:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("physical", ProductType.PHYSICAL),
            ("DIGITAL", ProductType.DIGITAL),
            (" Service ", ProductType.SERVICE),
            (ProductType.DIGITAL, ProductType.DIGITAL),
        ],
    )
    def test_resolve(self, raw, expected):
        assert ProductType.resolve(raw) is expected

    @pytest.mark.parametrize("raw", [None, "", "bundle"])
    def test_ambiguous_types_are_physical(self, raw):
        assert ProductType.resolve(raw, product_id="p-1") is ProductType.PHYSICAL

    def test_only_physical_ships(self):
        assert ProductType.PHYSICAL.is_physical
        assert not ProductType.DIGITAL.is_physical
        assert not ProductType.SERVICE.is_physical


class TestKeyedLocks:
    def test_wallet_key(self):
        assert wallet_key("cust-001") == "wallet:cust-001"

    def test_order_key(self):
        assert order_key("VS12345678") == "order:VS12345678"

    def test_same_key_serializes_writers(self):
        locks = KeyedLocks()
        active = []
        overlaps = []

        def writer():
            with locks.hold("wallet:cust-001"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=writer) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []

    def test_locks_are_reentrant(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            with locks.hold("a", "b"):
                pass

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        acquired = threading.Event()

        def other():
            with locks.hold("b"):
                acquired.set()

        with locks.hold("a"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=1)
            thread.join()

    def test_released_keys_are_evicted(self):
        locks = KeyedLocks()
        for n in range(50):
            with locks.hold(f"wallet:cust-{n}", f"order:VS{n}"):
                assert len(locks) >= 2

        assert len(locks) == 0

    def test_key_stays_while_a_holder_remains(self):
        locks = KeyedLocks()
        with locks.hold("wallet:cust-001"):
            with locks.hold("wallet:cust-001"):
                pass
            assert len(locks) == 1

        assert len(locks) == 0
