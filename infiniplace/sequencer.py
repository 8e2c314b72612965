"""In-process ordering authority for tile seqs.

:class:`TileSequencer` is a single-writer-per-tile reference implementation
of the server's seq contract:

* every committed batch for a tile gets ``previous seq + 1`` under that
  tile's own lock, so each tile has one linearizable history while distinct
  tiles commit concurrently;
* the last ``history_limit`` deltas per tile are retained for replay;
* :meth:`TileSequencer.since` answers a ``SUB`` with ``sinceSeq``: either
  every later delta in ascending order with no gaps, or ``None`` when that
  history has been compacted and a fresh snapshot must be sent instead.

It covers one process. Running several processes requires sharding tiles so
each tile key is owned by exactly one sequencer.

:class:`ClientOpDeduplicator` drops ``PAINT`` retries that reuse a
``clientOpId`` inside a time window.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from pyrsistent import pvector
from pyrsistent.typing import PVector

from infiniplace.coords import TileCoord
from infiniplace.delta import PixelChange, TileDelta, make_delta
from infiniplace.types import TileKey, TileSeq

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1024
DEFAULT_DEDUP_WINDOW_MS = 60_000

Clock = Callable[[], float]


@dataclass(frozen=True)
class TileHistory:
    """Retained deltas of one tile.

    Attributes:
        seq: Latest committed seq (0 before the first commit).
        deltas: Most recent deltas, ascending, at most ``history_limit`` long.
    """

    seq: TileSeq = TileSeq(0)
    deltas: PVector[TileDelta] = pvector()

    @property
    def floor(self) -> TileSeq:
        """Oldest ``sinceSeq`` that can still be answered with deltas."""
        if len(self.deltas) == 0:
            return self.seq
        return TileSeq(self.deltas[0].seq - 1)


class TileSequencer:
    """Assigns per-tile seqs and serves replay requests."""

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self.history_limit = history_limit
        self._registry_lock = threading.Lock()
        self._locks: Dict[TileKey, threading.Lock] = {}
        self._histories: Dict[TileKey, TileHistory] = {}

    def _lock_for(self, key: TileKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def history(self, tile: TileCoord) -> TileHistory:
        with self._lock_for(tile.key):
            return self._histories.get(tile.key, TileHistory())

    def current_seq(self, tile: TileCoord) -> TileSeq:
        return self.history(tile).seq

    def commit(self, tile: TileCoord, changes: Iterable[PixelChange]) -> TileDelta:
        """Commit one batch and return it as a delta with the next seq.

        Raises:
            ValueError: If ``changes`` is empty.
        """
        changes = pvector(changes)
        if len(changes) == 0:
            raise ValueError("A delta batch needs at least one change")
        key = tile.key
        with self._lock_for(key):
            history = self._histories.get(key, TileHistory())
            delta = make_delta(tile, history.seq + 1, changes)
            deltas = history.deltas.append(delta)
            if len(deltas) > self.history_limit:
                deltas = deltas[len(deltas) - self.history_limit :]
            self._histories[key] = TileHistory(seq=delta.seq, deltas=deltas)
        logger.debug(f"Tile {key} committed seq {delta.seq} ({len(changes)} changes)")
        return delta

    def since(self, tile: TileCoord, since_seq: int) -> Optional[List[TileDelta]]:
        """Deltas with ``seq > since_seq`` in ascending order.

        Returns:
            The (possibly empty) list of deltas, or ``None`` if ``since_seq``
            predates the retained history or is ahead of the tile, in which
            case the caller must send a snapshot instead.
        """
        history = self.history(tile)
        if since_seq > history.seq:
            logger.warning(
                f"Tile {tile.key} asked for seq > {since_seq} but is at {history.seq}"
            )
            return None
        if since_seq < history.floor:
            logger.warning(
                f"Tile {tile.key} history compacted past {since_seq} (floor {history.floor})"
            )
            return None
        return [d for d in history.deltas if d.seq > since_seq]


class ClientOpDeduplicator:
    """Remembers ``clientOpId`` values for ``window_ms`` milliseconds.

    Arguments:
        window_ms: How long an id suppresses repeats.
        clock: Monotonic seconds; injectable for tests.
    """

    def __init__(
        self,
        window_ms: int = DEFAULT_DEDUP_WINDOW_MS,
        clock: Clock = time.monotonic,
    ):
        if window_ms < 0:
            raise ValueError(f"window_ms must be >= 0, got {window_ms}")
        self.window_ms = window_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._seen: "OrderedDict[str, float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_ms / 1000.0
        while self._seen:
            op_id, seen_at = next(iter(self._seen.items()))
            if seen_at > cutoff:
                break
            del self._seen[op_id]

    def check(self, client_op_id: Optional[str]) -> bool:
        """Record ``client_op_id``; False if it is a repeat inside the window.

        Paints without an id are never deduplicated.
        """
        if client_op_id is None:
            return True
        with self._lock:
            now = self._clock()
            self._expire(now)
            if client_op_id in self._seen:
                logger.debug(f"Dropping duplicate clientOpId {client_op_id!r}")
                return False
            self._seen[client_op_id] = now
            return True
