"""Client-side per-tile delta synchronization.

:class:`TileSyncTracker` owns the local view of every subscribed tile: the
last applied seq ``S``, the pixel grid at ``S`` and a buffer of deltas that
arrived early. For each incoming delta it either

* applies it (``seq == S + 1``) and drains any buffered successors,
* discards it (``seq <= S``, a redelivery), or
* buffers it and asks the caller to resubscribe with ``sinceSeq = S``.

If the server can no longer fill the gap (history compacted) the caller
reports it through :meth:`TileSyncTracker.snapshot_unavailable` and installs a
fresh snapshot with :meth:`TileSyncTracker.reset_from_snapshot`.

The tracker never touches the network; results tell the caller what to send.
It is not thread-safe; drive it from the connection's receive loop.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Union

from pyrsistent import pmap, pvector
from pyrsistent.typing import PMap

from infiniplace.coords import TileCoord
from infiniplace.delta import TileDelta, TileSnapshotMeta, classify_delta
from infiniplace.messages import SubPayload, UnsubPayload
from infiniplace.palette import DEFAULT_REGISTRY, PaletteRegistry
from infiniplace.tile import TileGrid
from infiniplace.types import DeltaAction, TileKey, TileSeq

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileSyncState:
    """Local state of one tile.

    Attributes:
        seq: Last applied seq.
        grid: Pixels as of ``seq``.
        pending: Deltas with ``seq > seq + 1`` waiting for the gap to close,
            keyed by seq.
    """

    seq: TileSeq
    grid: TileGrid
    pending: PMap[int, TileDelta] = pmap()


@dataclass(frozen=True)
class Applied:
    seq: TileSeq
    applied: int


@dataclass(frozen=True)
class Discarded:
    seq: TileSeq


@dataclass(frozen=True)
class NeedResync:
    """Batches are missing; send ``request`` as a ``SUB``."""

    request: SubPayload
    missing_from: TileSeq
    missing_to: TileSeq


@dataclass(frozen=True)
class NeedSnapshot:
    """No usable baseline; wait for (or request) a fresh ``INIT_TILE``."""

    tile: TileCoord


SyncResult = Union[Applied, Discarded, NeedResync, NeedSnapshot]


class TileSyncTracker:
    """Tracks snapshot + delta state for many tiles, keyed by ``tile_key``."""

    def __init__(self, registry: PaletteRegistry = DEFAULT_REGISTRY):
        self.registry = registry
        self._tiles: PMap[TileKey, TileSyncState] = pmap()

    @property
    def tiles(self) -> PMap[TileKey, TileSyncState]:
        return self._tiles

    def state(self, tile: TileCoord) -> Optional[TileSyncState]:
        return self._tiles.get(tile.key)

    def last_seq(self, tile: TileCoord) -> Optional[TileSeq]:
        state = self.state(tile)
        return None if state is None else state.seq

    def grid(self, tile: TileCoord) -> Optional[TileGrid]:
        state = self.state(tile)
        return None if state is None else state.grid

    def reset_from_snapshot(
        self, meta: TileSnapshotMeta, grid: Optional[TileGrid] = None
    ) -> TileSyncState:
        """Install a snapshot baseline (``INIT_TILE``) and set ``S = meta.seq``.

        Buffered deltas newer than the snapshot are kept and applied if they
        now connect. ``grid`` defaults to a blank tile, which is correct for
        a tile captured before any paint.
        """
        previous = self._tiles.get(meta.key)
        pending: PMap[int, TileDelta] = pmap()
        if previous is not None:
            pending = pmap({s: d for s, d in previous.pending.items() if s > meta.seq})
        state = TileSyncState(
            seq=meta.seq,
            grid=grid if grid is not None else TileGrid.blank(self.registry),
            pending=pending,
        )
        state, drained = self._drain(state)
        self._tiles = self._tiles.set(meta.key, state)
        logger.debug(
            f"Tile {meta.key} reset to snapshot seq {meta.seq}, now at {state.seq} "
            f"({drained} buffered applied)"
        )
        return state

    def receive(self, delta: TileDelta) -> SyncResult:
        """Handle a ``DELTA`` frame."""
        state = self._tiles.get(delta.key)
        if state is None:
            logger.debug(f"Delta seq {delta.seq} for tile {delta.key} without baseline")
            return NeedSnapshot(delta.tile)

        action = classify_delta(state.seq, delta.seq)
        if action == DeltaAction.DUPLICATE:
            logger.debug(
                f"Tile {delta.key} discarding seq {delta.seq} (last applied {state.seq})"
            )
            return Discarded(state.seq)

        if action == DeltaAction.GAP:
            state = replace(state, pending=state.pending.set(delta.seq, delta))
            self._tiles = self._tiles.set(delta.key, state)
            logger.warning(
                f"Tile {delta.key} gap: have seq {state.seq}, got {delta.seq}; resyncing"
            )
            return NeedResync(
                request=SubPayload(tiles=pvector([delta.tile]), since_seq=state.seq),
                missing_from=TileSeq(state.seq + 1),
                missing_to=TileSeq(delta.seq - 1),
            )

        state = replace(
            state,
            seq=delta.seq,
            grid=state.grid.apply_delta(delta, self.registry),
        )
        state, drained = self._drain(state)
        self._tiles = self._tiles.set(delta.key, state)
        return Applied(seq=state.seq, applied=1 + drained)

    def snapshot_unavailable(self, tile: TileCoord) -> NeedSnapshot:
        """Server cannot replay from ``S``: drop buffered deltas, await a snapshot."""
        state = self._tiles.get(tile.key)
        if state is not None and state.pending:
            self._tiles = self._tiles.set(tile.key, replace(state, pending=pmap()))
        logger.warning(f"Tile {tile.key} history compacted; falling back to snapshot")
        return NeedSnapshot(tile)

    def forget(self, tile: TileCoord) -> UnsubPayload:
        """Drop a tile's state and return the matching ``UNSUB`` payload."""
        self._tiles = self._tiles.discard(tile.key)
        return UnsubPayload(tiles=pvector([tile]))

    def resume_request(self, tiles: list[TileCoord]) -> list[SubPayload]:
        """``SUB`` payloads to send after a reconnect.

        Tiles with a known seq resume with ``sinceSeq``; ``since_seq`` is a
        single value per payload, so each known tile gets its own request and
        unknown tiles are grouped into one plain subscription.
        """
        requests: list[SubPayload] = []
        fresh: list[TileCoord] = []
        for tile in tiles:
            seq = self.last_seq(tile)
            if seq is None:
                fresh.append(tile)
            else:
                requests.append(SubPayload(tiles=pvector([tile]), since_seq=seq))
        if fresh:
            requests.append(SubPayload(tiles=pvector(fresh)))
        return requests

    def _drain(self, state: TileSyncState) -> tuple[TileSyncState, int]:
        drained = 0
        pending = pmap({s: d for s, d in state.pending.items() if s > state.seq})
        grid, seq = state.grid, state.seq
        while (nxt := pending.get(seq + 1)) is not None:
            grid = grid.apply_delta(nxt, self.registry)
            seq = nxt.seq
            pending = pending.discard(nxt.seq)
            drained += 1
        return TileSyncState(seq=seq, grid=grid, pending=pending), drained
