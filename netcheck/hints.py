"""
Connection hint sources.

A hint source is a read-only view of what the platform believes about the
link (effective type, downlink Mbps, rtt ms).  Consumers register a
callback and must unregister it on teardown; nothing is tied to any UI
lifecycle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

HintCallback = Callable[["ConnectionHint"], None]


@dataclass(frozen=True)
class ConnectionHint:
    effective_type: Optional[str] = None
    downlink_mbps: float = 0.0
    rtt_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "effective_type": self.effective_type,
            "downlink_mbps": self.downlink_mbps,
            "rtt_ms": self.rtt_ms,
        }


NO_HINT = ConnectionHint()


class StaticHintSource:
    """
    In-process hint source.

    Holds one :class:`ConnectionHint` and notifies subscribers whenever
    :meth:`update` changes it.  Used by the CLI (hints come from flags) and
    by tests.
    """

    def __init__(self, hint: Optional[ConnectionHint] = None) -> None:
        self._hint = hint or NO_HINT
        self._subscribers: List[HintCallback] = []

    def current(self) -> ConnectionHint:
        return self._hint

    def subscribe(self, callback: HintCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: HintCallback) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def update(self, **changes) -> ConnectionHint:
        """Replace fields of the current hint and notify on change."""
        new = replace(self._hint, **changes)
        if new != self._hint:
            self._hint = new
            logger.debug("connection hint changed: %s", new)
            for callback in list(self._subscribers):
                callback(new)
        return self._hint
