"""Memoization of selector evaluations keyed by selector identity and label set."""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class SelectorMatch:
    matched: bool
    # "key=value" of the In/NotIn expression that drove the match, or ""
    label: str = ""


def fingerprint(labels: Optional[Mapping[str, str]]) -> str:
    """Stable string form of a label set: sorted ``key=value;`` pairs."""
    if not labels:
        return ""
    return "".join(f"{key}={labels[key]};" for key in sorted(labels))


class SelectorMatchCache:
    """Append-only cache shared by every namespace worker.

    Entries are keyed on ``id(selector)``; the cache holds a reference to
    each selector so an identity can never be recycled while cached.
    """

    def __init__(self):
        self._data: Dict[Tuple[int, str], SelectorMatch] = {}
        self._selectors: Dict[int, Any] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, selector: Any, labels: Optional[Mapping[str, str]]) -> Optional[SelectorMatch]:
        result = self._data.get((id(selector), fingerprint(labels)))
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def set(self, selector: Any, labels: Optional[Mapping[str, str]], result: SelectorMatch) -> None:
        key = (id(selector), fingerprint(labels))
        with self._lock:
            self._selectors.setdefault(id(selector), selector)
            self._data[key] = result

    def __len__(self) -> int:
        return len(self._data)
