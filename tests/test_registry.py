from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from models import CrossingDecision
from services.errors import DuplicateError
from services.registry import TrackingRegistry


def test_track_creates_item_with_unknown_price():
    registry = TrackingRegistry()

    item = registry.track("a", "https://shop.example.com/p/1", "100")

    assert item.id == "a"
    assert item.target_price == Decimal("100")
    assert item.last_price == Decimal("0")
    assert item.selector is None
    assert "a" in registry
    assert len(registry) == 1


def test_track_duplicate_keeps_existing_item():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")
    registry.record_observation("a", Decimal("120"), ".price")

    with pytest.raises(DuplicateError) as excinfo:
        registry.track("a", "https://other.example.com/p/2", "5")

    assert excinfo.value.item_id == "a"
    existing = registry.get("a")
    assert existing is not None
    assert existing.url == "https://shop.example.com/p/1"
    assert existing.target_price == Decimal("100")
    assert existing.last_price == Decimal("120")
    assert existing.selector == ".price"


@pytest.mark.parametrize(
    ("item_id", "url", "target"),
    [
        ("", "https://shop.example.com", "10"),
        ("a", "ftp://shop.example.com", "10"),
        ("a", "https://shop.example.com", "0"),
        ("a", "https://shop.example.com", "-1"),
        ("a", "https://shop.example.com", "ten"),
        ("a", "https://shop.example.com", "NaN"),
    ],
)
def test_track_rejects_invalid_input(item_id, url, target):
    registry = TrackingRegistry()

    with pytest.raises(ValueError):
        registry.track(item_id, url, target)

    assert len(registry) == 0


def test_untrack_is_idempotent():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")

    assert registry.untrack("a") is True
    assert registry.untrack("a") is False
    assert registry.list() == []


def test_list_returns_snapshots():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")

    snapshot = registry.list()[0]
    snapshot.last_price = Decimal("1")
    snapshot.selector = "mutated"

    stored = registry.get("a")
    assert stored is not None
    assert stored.last_price == Decimal("0")
    assert stored.selector is None


def test_record_observation_decisions():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")

    assert registry.record_observation("a", Decimal("120"), ".price") is CrossingDecision.FIRST_OBSERVATION
    assert registry.record_observation("a", Decimal("110"), ".price") is CrossingDecision.NO_CROSSING
    assert registry.record_observation("a", Decimal("100"), ".price") is CrossingDecision.THRESHOLD_CROSSED
    assert "a" not in registry


def test_threshold_crossed_reported_exactly_once():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")

    decisions = [registry.record_observation("a", Decimal("90"), ".price") for _ in range(5)]

    assert decisions.count(CrossingDecision.THRESHOLD_CROSSED) == 1
    assert decisions[1:] == [None] * 4


def test_concurrent_crossings_fire_once():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")
    results: list[CrossingDecision | None] = []
    barrier = threading.Barrier(8)

    def observe() -> None:
        barrier.wait()
        results.append(registry.record_observation("a", Decimal("50"), ".price"))

    threads = [threading.Thread(target=observe) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(CrossingDecision.THRESHOLD_CROSSED) == 1


def test_record_observation_for_untracked_item_is_discarded():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")
    registry.untrack("a")

    assert registry.record_observation("a", Decimal("50"), ".price") is None
    assert "a" not in registry


def test_zero_price_is_not_a_crossing():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100")

    assert registry.record_observation("a", Decimal("0"), ".price") is CrossingDecision.FIRST_OBSERVATION
    item = registry.get("a")
    assert item is not None
    assert item.last_price == Decimal("0")
    assert item.selector is None

    registry.record_observation("a", Decimal("120"), ".price")
    assert registry.record_observation("a", Decimal("0.00"), ".price") is CrossingDecision.NO_CROSSING
    assert registry.get("a").last_price == Decimal("120")


def test_untrack_owned_by_removes_only_that_subscription():
    registry = TrackingRegistry()
    registry.track("a", "https://shop.example.com/p/1", "100", owner_chat_id=1)
    registry.track("b", "https://shop.example.com/p/2", "100", owner_chat_id=2)
    registry.track("c", "https://shop.example.com/p/3", "100", owner_chat_id=1)

    removed = registry.untrack_owned_by(1)

    assert sorted(removed) == ["a", "c"]
    assert [item.id for item in registry.list()] == ["b"]
