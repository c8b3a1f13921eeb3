"""
Cross-navigation key/value store.

Holds the few values a flow must keep across a full-page OAuth redirect
(the browser's sessionStorage). Values are strings; absent keys read as None.
"""

from typing import Dict, Iterable, Optional


class SessionStore:
    """In-memory store with the sessionStorage contract."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def remove_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)

    def keys(self):
        return list(self._items.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
