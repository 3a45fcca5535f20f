"""
DevHabit Backend — ETag Store
===============================

What:  Remembers a fingerprint of the last representation served or written
       for each resource path.
Why:   Optimistic concurrency. A client that read version A sends
       `If-Match: "A"` with its update; if someone else wrote B in between,
       ETagMiddleware rejects the stale write with 412.
How:   Fingerprint = SHA-512 over canonical JSON (sorted keys, compact
       separators) of the representation, wrapped in quotes as HTTP requires.

Lifetime:
    Process-wide, in memory, no persistence. The database row stays the
    source of truth; losing the store only means the next write is not
    checked until the resource is read again.
"""

import hashlib
import json
import threading
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder


def fingerprint_bytes(payload: bytes) -> str:
    return f'"{hashlib.sha512(payload).hexdigest()}"'


def fingerprint(representation: Any) -> str:
    canonical = json.dumps(
        jsonable_encoder(representation),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return fingerprint_bytes(canonical.encode("utf-8"))


class InMemoryETagStore:
    def __init__(self) -> None:
        self._etags: Dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(path: str) -> str:
        return path.rstrip("/") or "/"

    def get_etag(self, resource_path: str) -> Optional[str]:
        with self._lock:
            return self._etags.get(self._normalize(resource_path))

    def set_etag(self, resource_path: str, representation: Any) -> str:
        etag = fingerprint(representation)
        self.set_raw(resource_path, etag)
        return etag

    def set_raw(self, resource_path: str, etag: str) -> None:
        with self._lock:
            self._etags[self._normalize(resource_path)] = etag

    def remove_etag(self, resource_path: str) -> None:
        with self._lock:
            self._etags.pop(self._normalize(resource_path), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._etags)
