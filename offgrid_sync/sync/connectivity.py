"""Connectivity signal consumed by the sync engine."""

from typing import Callable

import structlog

log = structlog.stdlib.get_logger()

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Boolean online signal with online/offline transition events.

    The host environment calls ``set_online``; listeners are notified only
    when the value actually changes, in subscription order.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register a listener called with the new value on every transition.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        log.info("connectivity_changed", signal="online" if online else "offline")
        for listener in list(self._listeners):
            listener(online)
