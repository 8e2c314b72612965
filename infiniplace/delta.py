"""Delta protocol value types and ordering rules.

Each tile owns a sequence counter. Every accepted *batch* of pixel changes to
that tile gets exactly one new seq, ``previous + 1``. A client that last
applied seq ``S`` treats an incoming delta as:

* ``seq == S + 1``: apply it;
* ``seq <= S``: a redelivery, drop it without effect;
* ``seq > S + 1``: batches are missing, do not apply; resubscribe with
  ``sinceSeq = S`` or fall back to a fresh snapshot.

There is no ordering across tiles.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from pyrsistent import pmap, pvector
from pyrsistent.typing import PMap, PVector

from infiniplace.coords import TileCoord, tile_key
from infiniplace.types import (
    ColorIndex,
    DeltaAction,
    OffsetX,
    OffsetY,
    TileKey,
    TileSeq,
    TileX,
    TileY,
)


@dataclass(frozen=True)
class PixelChange:
    """One pixel write inside a delta batch."""

    ox: OffsetX
    oy: OffsetY
    color: ColorIndex
    palette_id: str


@dataclass(frozen=True)
class TileDelta:
    """A seq-numbered batch of pixel changes for one tile.

    Changes are applied in list order, so a later change to the same pixel
    in the same batch wins.
    """

    tx: TileX
    ty: TileY
    seq: TileSeq
    changes: PVector[PixelChange] = pvector()

    @property
    def tile(self) -> TileCoord:
        return TileCoord(self.tx, self.ty)

    @property
    def key(self) -> TileKey:
        return tile_key(self.tx, self.ty)


def make_delta(
    tile: TileCoord, seq: int, changes: Iterable[PixelChange]
) -> TileDelta:
    return TileDelta(tx=tile.tx, ty=tile.ty, seq=TileSeq(seq), changes=pvector(changes))


@dataclass(frozen=True)
class TileSnapshotMeta:
    """Baseline for a tile, captured at ``seq``.

    A client must install this before applying any delta with a greater
    seq. The image itself is fetched over HTTP from ``snapshot_url``.

    Attributes:
        tx, ty: Tile coordinate.
        seq: Tile seq at capture time.
        snapshot_url: Where to GET the rendered tile image.
        palette_version: Palette version the image was rendered with.
        palette_id: Palette the tile should be rendered with, if known.
        etag: HTTP ETag for ``If-None-Match``.
        last_modified: HTTP date for ``If-Modified-Since``.
    """

    tx: TileX
    ty: TileY
    seq: TileSeq
    snapshot_url: str
    palette_version: int
    palette_id: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def tile(self) -> TileCoord:
        return TileCoord(self.tx, self.ty)

    @property
    def key(self) -> TileKey:
        return tile_key(self.tx, self.ty)

    def conditional_headers(self) -> PMap[str, str]:
        """HTTP headers for a conditional snapshot GET."""
        headers: dict[str, str] = {}
        if self.etag is not None:
            headers["If-None-Match"] = self.etag
        if self.last_modified is not None:
            headers["If-Modified-Since"] = self.last_modified
        return pmap(headers)


def classify_delta(last_applied: int, seq: int) -> DeltaAction:
    """Decide what to do with a delta carrying ``seq`` after ``last_applied``."""
    if seq <= last_applied:
        return DeltaAction.DUPLICATE
    if seq == last_applied + 1:
        return DeltaAction.APPLY
    return DeltaAction.GAP


def missing_seqs(last_applied: int, seq: int) -> range:
    """Seqs that must arrive before ``seq`` can be applied."""
    return range(last_applied + 1, max(seq, last_applied + 1))
