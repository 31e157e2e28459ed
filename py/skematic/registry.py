# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Named registries of functions (rules, types, filters, generators) and of
# models referenced by string. Registries are shared by all threads; every
# read and write takes the registry lock.


from typing import *
import threading

import structlog

from .base import S_MT


log = structlog.get_logger(__name__)


class Registry:
    """
    A mapping from string names to functions (or models).

    The built-in registries are process wide. A caller may pass its own
    Registry in the format/validate options to avoid touching them.
    """

    def __init__(self, name: str, entries: Optional[Dict[str, Any]] = None) -> None:
        self.name = name
        self._lock = threading.RLock()
        self._entries: Dict[str, Any] = dict(entries or {})

    def register(self, key: str, fn: Any) -> Any:
        "Add or replace the entry `key`. Returns `fn`, so usable as a decorator helper."
        if not isinstance(key, str) or S_MT == key:
            raise ValueError(f"Registry {self.name}: invalid name: {key!r}")

        with self._lock:
            self._entries[key] = fn

        log.debug('registry.register', registry=self.name, key=key)
        return fn

    def resolve(self, key: Any, alt: Any = None) -> Any:
        "Get the entry `key`, or `alt` if there is none."
        if not isinstance(key, str):
            return alt
        with self._lock:
            return self._entries.get(key, alt)

    def remove(self, key: str) -> Any:
        with self._lock:
            return self._entries.pop(key, None)

    def load(self, entries: Dict[str, Any], replace: bool = False) -> 'Registry':
        "Add many entries at once. With `replace`, drop all existing entries first."
        with self._lock:
            if replace:
                self._entries.clear()
            for key, fn in entries.items():
                self.register(key, fn)
        return self

    def available(self) -> List[str]:
        "Sorted names of all entries."
        with self._lock:
            return sorted(self._entries.keys())

    def copy(self, name: Optional[str] = None) -> 'Registry':
        with self._lock:
            return Registry(name or self.name, self._entries)

    def __contains__(self, key: Any) -> bool:
        if not isinstance(key, str):
            return False
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"Registry({self.name!r}, {self.available()!r})"
