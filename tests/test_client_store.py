"""Tests for the client battery cache."""

from datetime import datetime, timezone

from client.battery.store import BatterySnapshot, BatteryStore

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)

RESPONSE = {
    "totalBalance": 100,
    "dailyAllowance": 200,
    "lastDailyReset": "2025-03-14",
    "todayUsage": 12,
    "usageHistory": [{"date": "2025-03-14", "totalBatteryUsed": 12, "totalMessages": 2, "models": []}],
}


def loaded_store():
    store = BatteryStore()
    store.set(BatterySnapshot.from_response(RESPONSE, NOW))
    return store


def test_snapshot_from_response():
    snapshot = BatterySnapshot.from_response(RESPONSE, NOW)

    assert snapshot.total_balance == 100
    assert snapshot.daily_allowance == 200
    assert snapshot.last_daily_reset == "2025-03-14"
    assert snapshot.today_usage == 12
    assert len(snapshot.usage_history) == 1
    assert snapshot.last_updated == NOW


def test_empty_until_loaded():
    assert BatteryStore().get() is None


def test_subscribers_see_every_change():
    store = BatteryStore()
    seen = []
    store.subscribe(seen.append)

    store.set(BatterySnapshot(total_balance=5))
    store.clear()

    assert [s.total_balance if s else None for s in seen] == [5, None]


def test_unsubscribe():
    store = BatteryStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    store.set(BatterySnapshot())

    assert seen == []


def test_failing_listener_does_not_block_others():
    store = BatteryStore()
    seen = []

    def broken(snapshot):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.set(BatterySnapshot(total_balance=1))

    assert len(seen) == 1


def test_apply_usage_uses_server_balance():
    store = loaded_store()

    snapshot = store.apply_usage(new_balance=70, battery_used=30, now=NOW)

    assert snapshot.total_balance == 70
    assert snapshot.today_usage == 42
    assert snapshot.daily_allowance == 200


def test_apply_free_usage_keeps_balance():
    store = loaded_store()

    snapshot = store.apply_usage(new_balance=None, battery_used=0)

    assert snapshot.total_balance == 100
    assert snapshot.today_usage == 12


def test_apply_usage_before_first_load_is_ignored():
    store = BatteryStore()
    assert store.apply_usage(new_balance=70, battery_used=30) is None
    assert store.get() is None
