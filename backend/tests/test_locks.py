"""Tests for xrpflr.services.locks."""

import threading

from xrpflr.services.locks import InFlightRegistry, KeyedLocks


def test_inflight_marker_is_exclusive() -> None:
    registry = InFlightRegistry()
    assert registry.try_acquire("p1") is True
    assert registry.try_acquire("p1") is False
    assert registry.try_acquire("p2") is True
    registry.release("p1")
    assert registry.is_held("p1") is False
    assert registry.try_acquire("p1") is True


def test_release_of_unheld_key_is_harmless() -> None:
    InFlightRegistry().release("never")


def test_hold_is_reentrant() -> None:
    locks = KeyedLocks()
    with locks.hold("rA"), locks.hold("rA"):
        pass


def test_hold_serializes_same_key() -> None:
    locks = KeyedLocks()
    entered = threading.Event()
    order: list[str] = []

    def _other() -> None:
        entered.set()
        with locks.hold("rA"):
            order.append("other")

    with locks.hold("rA"):
        thread = threading.Thread(target=_other)
        thread.start()
        entered.wait(timeout=5)
        order.append("main")
    thread.join(timeout=5)

    assert order == ["main", "other"]


def test_different_keys_do_not_block() -> None:
    locks = KeyedLocks()
    done = threading.Event()

    def _other() -> None:
        with locks.hold("rB"):
            done.set()

    with locks.hold("rA"):
        thread = threading.Thread(target=_other)
        thread.start()
        assert done.wait(timeout=5)
    thread.join(timeout=5)
