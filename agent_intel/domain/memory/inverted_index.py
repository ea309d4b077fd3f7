from typing import Dict, List, Any, Optional, Set
from datetime import datetime
import asyncio
import itertools
import json
import re


_TOKEN_SPLIT = re.compile(r"\W+")


def tokenize(text: str) -> Set[str]:
    """Lower-case word tokens longer than two characters"""
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) > 2}


def serialize_value(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class InvertedIndex:
    """Capacity-bounded store with a token -> keys inverted index.

    Lookup is an OR over query tokens, unranked. When the store is full the
    oldest insertion is evicted and purged from every posting set before the
    new key is added.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be positive")

        self.capacity = capacity
        self.entries: Dict[str, Dict[str, Any]] = {}
        self.postings: Dict[str, Set[str]] = {}
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

    async def add(self, key: str, value: Any) -> Optional[str]:
        """Index a value under key; returns the key evicted to make room, if any"""

        async with self._lock:
            evicted = None

            if key in self.entries:
                self._purge(key)
            elif len(self.entries) >= self.capacity:
                evicted = min(
                    self.entries,
                    key=lambda k: (self.entries[k]["inserted_at"], self.entries[k]["sequence"])
                )
                self._purge(evicted)
                del self.entries[evicted]

            self.entries[key] = {
                "value": value,
                "inserted_at": datetime.utcnow(),
                "sequence": next(self._sequence)
            }

            for token in tokenize(serialize_value(value)):
                self.postings.setdefault(token, set()).add(key)

            return evicted

    async def remove(self, key: str) -> bool:
        """Drop a key from the store and every posting set"""

        async with self._lock:
            if key not in self.entries:
                return False

            self._purge(key)
            del self.entries[key]
            return True

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self.entries.get(key)
            return entry["value"] if entry else None

    async def search_keys(self, query: str) -> List[str]:
        """Keys whose value shares at least one token with query, oldest first"""

        async with self._lock:
            keys: Set[str] = set()
            for token in tokenize(query):
                keys.update(self.postings.get(token, ()))

            resolved = [k for k in keys if k in self.entries]
            return sorted(resolved, key=lambda k: self.entries[k]["sequence"])

    async def search(self, query: str) -> List[Any]:
        """Values whose serialized form shares a token with query"""

        keys = await self.search_keys(query)

        async with self._lock:
            return [self.entries[k]["value"] for k in keys if k in self.entries]

    async def clear(self) -> None:
        async with self._lock:
            self.entries.clear()
            self.postings.clear()

    def _purge(self, key: str) -> None:
        for token in list(self.postings):
            keys = self.postings[token]
            keys.discard(key)
            if not keys:
                del self.postings[token]

    @property
    def token_count(self) -> int:
        return len(self.postings)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries
