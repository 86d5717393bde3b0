# In-process map of user id -> live Socket.IO session ids
import logging
import threading

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks which live connections belong to which user.

    A user may hold several connections at once (one per tab or device).
    Presence is local to this process; nothing is persisted or shared.
    All access goes through the lock, and ``lookup`` hands back a frozen
    snapshot so callers can push without holding it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handles = {}
        self._owners = {}

    @staticmethod
    def _key(identity):
        return str(identity)

    def register(self, identity, handle):
        key = self._key(identity)
        with self._lock:
            self._handles.setdefault(key, set()).add(handle)
            self._owners[handle] = key
            count = len(self._handles[key])
        logger.debug(f'Registered connection {handle} for user {key} ({count} live)')

    def unregister(self, identity, handle):
        key = self._key(identity)
        with self._lock:
            handles = self._handles.get(key)
            if not handles or handle not in handles:
                return
            handles.discard(handle)
            self._owners.pop(handle, None)
            if not handles:
                del self._handles[key]
        logger.debug(f'Unregistered connection {handle} for user {key}')

    def lookup(self, identity) -> frozenset:
        with self._lock:
            return frozenset(self._handles.get(self._key(identity), ()))

    def identity_of(self, handle):
        with self._lock:
            return self._owners.get(handle)

    def online_identities(self):
        with self._lock:
            return sorted(self._handles)

    def __len__(self):
        with self._lock:
            return len(self._handles)
