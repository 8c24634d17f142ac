"""Tests for keyed locks."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from coaching_ledger.services.locks import KeyedLocks


def test_registry_is_empty_after_hold() -> None:
    locks = KeyedLocks()

    with locks.hold("a"), locks.hold("b"):
        assert len(locks) == 2

    assert len(locks) == 0


def test_hold_releases_on_error() -> None:
    locks = KeyedLocks()

    with pytest.raises(ValueError), locks.hold("a"):
        raise ValueError("boom")

    assert len(locks) == 0
    with locks.hold("a"):
        pass


def test_many_distinct_keys_do_not_accumulate() -> None:
    locks = KeyedLocks()

    for index in range(1000):
        with locks.hold(f"missing-{index}"):
            pass

    assert len(locks) == 0


def test_hold_serializes_same_key() -> None:
    locks = KeyedLocks()
    active = 0
    peak = 0
    counter_lock = threading.Lock()

    def work(_: int) -> None:
        nonlocal active, peak
        with locks.hold("shared"):
            with counter_lock:
                active += 1
                peak = max(peak, active)
            threading.Event().wait(0.001)
            with counter_lock:
                active -= 1

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(32)))

    assert peak == 1
    assert len(locks) == 0
