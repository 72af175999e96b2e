"""One-way name obfuscation for privacy-preserving reports."""

import hashlib
import threading
from typing import Dict

# 16 bytes of the SHA-256 digest, hex encoded
DIGEST_LENGTH = 32


class NameObfuscator:
    """Deterministic, memoized SHA-256 name hashing.

    The same input always maps to the same output for the lifetime of the
    instance, which keeps report keys stable and lets a resumed run
    recognise the cluster it wrote earlier.
    """

    def __init__(self):
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def obfuscate(self, name: str) -> str:
        """Return the obfuscated form of ``name``; the empty string stays empty."""
        if not name:
            return ""

        cached = self._cache.get(name)
        if cached is not None:
            self.hits += 1
            return cached

        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:DIGEST_LENGTH].lower()
        with self._lock:
            self.misses += 1
            return self._cache.setdefault(name, digest)

    def __len__(self) -> int:
        return len(self._cache)
