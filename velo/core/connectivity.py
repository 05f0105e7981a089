"""Settable connectivity flag with reconnect notifications."""

from typing import Callable, List

from velo.utils.logging import get_logger

from .ports import ConnectivitySignal

logger = get_logger(__name__)


class ConnectivityState(ConnectivitySignal):
    """Online/offline flag owned by whatever watches the network.

    Listeners registered with ``on_reconnect`` run on every offline to
    online transition.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._reconnect_listeners: List[Callable[[], None]] = []

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online

        if was_online == online:
            return

        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        if online:
            for listener in list(self._reconnect_listeners):
                try:
                    listener()
                except Exception as e:
                    logger.error(f"Reconnect listener {listener!r} failed: {e}")

    def on_reconnect(self, callback: Callable[[], None]) -> None:
        if callback not in self._reconnect_listeners:
            self._reconnect_listeners.append(callback)

    def remove_reconnect_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._reconnect_listeners:
            self._reconnect_listeners.remove(callback)
