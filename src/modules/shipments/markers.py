"""Transient UI markers driven by the reconciler.

A ``MarkerBoard`` holds at most one marker per key.  Marking a key again
cancels the previous marker and starts a fresh window, so an older
deadline can never clear a newer marker.  Expiry is evaluated against an
injectable monotonic clock.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import count
from typing import Callable, Dict, Generic, List, Optional, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class Marker(Generic[V]):
    key: str
    value: V
    expires_at: float
    generation: int


class MarkerBoard(Generic[V]):
    """Keyed, self-expiring markers (highlights, toasts)."""

    def __init__(self, window: float, clock: Clock = time.monotonic) -> None:
        self._window = window
        self._clock = clock
        self._markers: Dict[str, Marker[V]] = {}
        self._generations = count(1)

    def mark(self, key: str, value: V) -> Marker[V]:
        marker = Marker(
            key=key,
            value=value,
            expires_at=self._clock() + self._window,
            generation=next(self._generations),
        )
        self._markers[key] = marker
        return marker

    def expire(self, marker: Marker[V]) -> bool:
        """Clear ``marker`` if it is still the live one for its key.

        Returns ``False`` when a newer marker superseded it.
        """
        live = self._markers.get(marker.key)
        if live is None or live.generation != marker.generation:
            return False
        del self._markers[marker.key]
        return True

    def cancel(self, key: str) -> None:
        self._markers.pop(key, None)

    def clear(self) -> None:
        self._markers.clear()

    def sweep(self) -> None:
        now = self._clock()
        for key in [k for k, m in self._markers.items() if m.expires_at <= now]:
            del self._markers[key]

    def get(self, key: str) -> Optional[Marker[V]]:
        self.sweep()
        return self._markers.get(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def active(self) -> List[Marker[V]]:
        self.sweep()
        return sorted(self._markers.values(), key=lambda m: m.generation)


@dataclass(frozen=True)
class Toast:
    tracking_number: str
    message: str
    kind: str


@dataclass
class SyncIndicator:
    """Connection/sync state shown next to the admin table."""

    live: bool = False
    last_synced_at: Optional[datetime] = None
    events_applied: int = 0
    subscribers: int = field(default=0)

    @property
    def state(self) -> str:
        return "live" if self.live else "offline"

    def connected(self) -> None:
        self.subscribers += 1
        self.live = True

    def disconnected(self) -> None:
        self.subscribers = max(0, self.subscribers - 1)
        self.live = self.subscribers > 0

    def synced(self, applied: int = 0) -> None:
        self.events_applied += applied
        self.last_synced_at = datetime.now(timezone.utc)
