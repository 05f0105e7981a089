"""
Tests for the event bus and connectivity state
"""
from unittest.mock import MagicMock

import pytest

from velo.core.connectivity import ConnectivityState
from velo.core.events import EventBus, PendingCountChanged, SyncDone


class TestEventBus:
    """Tests for EventBus"""

    def test_publish_reaches_subscribers_of_type(self):
        bus = EventBus()
        sync_listener = MagicMock()
        count_listener = MagicMock()
        bus.subscribe(SyncDone, sync_listener)
        bus.subscribe(PendingCountChanged, count_listener)

        bus.publish(PendingCountChanged(count=3))

        sync_listener.assert_not_called()
        count_listener.assert_called_once_with(PendingCountChanged(count=3))

    def test_subscribe_twice_registers_once(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(SyncDone, listener)
        bus.subscribe(SyncDone, listener)

        bus.publish(SyncDone())

        assert listener.call_count == 1

    def test_unsubscribe(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(SyncDone, listener)
        bus.unsubscribe(SyncDone, listener)

        bus.publish(SyncDone())

        listener.assert_not_called()

    def test_failing_listener_does_not_stop_others(self):
        """Test publish never raises and later listeners still run"""
        bus = EventBus()
        later = MagicMock()
        bus.subscribe(SyncDone, MagicMock(side_effect=RuntimeError("listener bug")))
        bus.subscribe(SyncDone, later)

        bus.publish(SyncDone())

        later.assert_called_once()

    def test_subscribe_rejects_non_event(self):
        with pytest.raises(ValueError):
            EventBus().subscribe(str, MagicMock())


class TestConnectivityState:
    """Tests for ConnectivityState"""

    def test_reconnect_listener_runs_on_transition(self):
        state = ConnectivityState(online=False)
        listener = MagicMock()
        state.on_reconnect(listener)

        state.set_online(True)
        state.set_online(True)

        assert state.is_online() is True
        listener.assert_called_once()

    def test_going_offline_does_not_notify(self):
        state = ConnectivityState(online=True)
        listener = MagicMock()
        state.on_reconnect(listener)

        state.set_online(False)

        assert state.is_online() is False
        listener.assert_not_called()

    def test_failing_listener_is_contained(self):
        state = ConnectivityState(online=False)
        later = MagicMock()
        state.on_reconnect(MagicMock(side_effect=RuntimeError("boom")))
        state.on_reconnect(later)

        state.set_online(True)

        later.assert_called_once()

    def test_remove_reconnect_listener(self):
        state = ConnectivityState(online=False)
        listener = MagicMock()
        state.on_reconnect(listener)
        state.remove_reconnect_listener(listener)

        state.set_online(True)

        listener.assert_not_called()
