from abc import ABC, abstractmethod
from typing import Callable

from src.platform.logging.loguru_io import Logger


ConnectivityCallback = Callable[[bool], None]


class IConnectivityProbe(ABC):
    @abstractmethod
    def is_offline(self) -> bool:
        pass


class ConnectivityMonitor(IConnectivityProbe):
    """
    Process-wide online/offline flag.

    The owning runtime flips it (e.g. from a health probe or a client's network
    events); the executor consults it before every attempt so an offline caller
    fails immediately instead of burning retries.
    """

    def __init__(self, *, offline: bool = False) -> None:
        self._offline = offline
        self._callbacks: set[ConnectivityCallback] = set()

    def is_offline(self) -> bool:
        return self._offline

    def mark_offline(self) -> None:
        if not self._offline:
            Logger.base.warning('📴 [CONNECTIVITY] Connection lost')
        self._set(True)

    def mark_online(self) -> None:
        if self._offline:
            Logger.base.info('📶 [CONNECTIVITY] Connection restored')
        self._set(False)

    def subscribe(self, callback: ConnectivityCallback) -> Callable[[], None]:
        """Register a listener; it is called immediately with the current state."""
        self._callbacks.add(callback)
        callback(self._offline)

        def unsubscribe() -> None:
            self._callbacks.discard(callback)

        return unsubscribe

    def _set(self, offline: bool) -> None:
        changed = offline != self._offline
        self._offline = offline
        if changed:
            for callback in list(self._callbacks):
                callback(offline)
