# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Fan-in barrier over per-collection snapshot streams.

Each collection the dashboard depends on pushes full snapshots
independently and in no particular order. ``SnapshotFanIn`` waits until
every source has emitted at least once, then calls ``on_update`` with the
latest snapshot of every source, and calls it again on each later push from
any source.

Sibling snapshots may be momentarily out of step (timesheets updated before
assignments, for example); callbacks must accept stale-but-consistent
inputs. Only one callback runs at a time: pushes that arrive while it runs
are folded into a single follow-up call with the latest snapshots, so a
callback that writes to a watched collection does not re-enter itself.
There is no cancellation.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Snapshots = dict[str, list[Any]]


class SnapshotFanIn:
    """
    Join N named snapshot sources into a single recompute callback.

    Parameters
    ----------
    sources :
        Names of the sources (usually collection names).
    on_update :
        Called with ``{source: snapshot}`` once all sources have emitted,
        then after every subsequent push.
    transform :
        Optional ``(source, raw_snapshot) -> snapshot`` applied on push,
        typically the record normalizer of the collection.
    """

    def __init__(
        self,
        sources: Iterable[str],
        on_update: Callable[[Snapshots], None],
        transform: Optional[Callable[[str, list[Any]], list[Any]]] = None,
    ) -> None:
        self._sources = tuple(dict.fromkeys(sources))
        if not self._sources:
            raise ValueError("SnapshotFanIn needs at least one source.")
        self._on_update = on_update
        self._transform = transform
        self._snapshots: Snapshots = {}
        self._emitting = False
        self._dirty = False
        self._lock = threading.Lock()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def sources(self) -> tuple[str, ...]:
        return self._sources

    @property
    def ready(self) -> bool:
        with self._lock:
            return len(self._snapshots) == len(self._sources)

    @property
    def pending(self) -> list[str]:
        """Sources that have not emitted yet."""
        with self._lock:
            return self._pending_unlocked()

    def push(self, source: str, snapshot: Iterable[Any]) -> bool:
        """
        Record a new snapshot for ``source``.

        Returns True when the callback ran for this push. A push made while
        the callback is running (from the callback itself or from another
        thread) is folded into one more call made once the running one
        returns, and returns False.
        """
        if source not in self._sources:
            raise KeyError(f"Unknown snapshot source: {source!r}")
        items = list(snapshot)
        if self._transform is not None:
            items = self._transform(source, items)

        with self._lock:
            self._snapshots[source] = items
            if len(self._snapshots) < len(self._sources):
                logger.debug("Waiting for sources: %s", self._pending_unlocked())
                return False
            if self._emitting:
                logger.debug("Coalescing snapshot from %r", source)
                self._dirty = True
                return False
            self._emitting = True

        done = False
        try:
            while not done:
                with self._lock:
                    self._dirty = False
                    state = dict(self._snapshots)
                self._on_update(state)
                with self._lock:
                    done = not self._dirty
                    if done:
                        self._emitting = False
        finally:
            if not done:
                with self._lock:
                    self._emitting = False
        return True

    def _pending_unlocked(self) -> list[str]:
        return [s for s in self._sources if s not in self._snapshots]

    def attach(self, repository) -> None:
        """Subscribe every source to the collection of the same name."""
        for source in self._sources:
            self._unsubscribers.append(
                repository.subscribe(
                    source, lambda snapshot, s=source: self.push(s, snapshot)
                )
            )

    def close(self) -> None:
        """Unsubscribe from every collection attached with ``attach()``."""
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def snapshot(self) -> Mapping[str, list[Any]]:
        """Latest snapshots received so far (possibly incomplete)."""
        with self._lock:
            return dict(self._snapshots)
