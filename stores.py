"""
Credential-storage adapters.

An adapter maps a username to a JSON-compatible user record and exposes
``get``, ``put`` and ``delete``. Anything with those three methods can be
handed to :class:`webauthn_middleware.Webauthn` as its store.
"""

import copy
import threading


class MemoryAdapter:
    """Non-persistent store backed by a dict. Lost when the process exits."""

    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            value = self._records.get(key)
        # Hand out copies so callers cannot mutate stored records in place
        return copy.deepcopy(value)

    def put(self, key, value):
        with self._lock:
            self._records[key] = copy.deepcopy(value)

    def delete(self, key):
        with self._lock:
            return self._records.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._records.clear()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def __contains__(self, key):
        with self._lock:
            return key in self._records
