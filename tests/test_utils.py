from typing import Iterable, Optional, Tuple

from pyrsistent import pvector

from infiniplace.coords import TileCoord
from infiniplace.delta import PixelChange, TileDelta, TileSnapshotMeta
from infiniplace.messages import PaintPayload
from infiniplace.types import (
    ColorIndex,
    OffsetX,
    OffsetY,
    PixelX,
    PixelY,
    TileSeq,
    TileX,
    TileY,
)

ORIGIN = TileCoord(TileX(0), TileY(0))


def make_tile(tx: int, ty: int) -> TileCoord:
    return TileCoord(TileX(tx), TileY(ty))


def make_change(
    ox: int, oy: int, color: int, palette_id: str = "classic"
) -> PixelChange:
    return PixelChange(
        ox=OffsetX(ox), oy=OffsetY(oy), color=ColorIndex(color), palette_id=palette_id
    )


def make_delta(
    seq: int,
    changes: Iterable[Tuple[int, int, int]],
    tile: TileCoord = ORIGIN,
    palette_id: str = "classic",
) -> TileDelta:
    """Delta for ``tile`` from ``(ox, oy, color)`` triples."""
    return TileDelta(
        tx=tile.tx,
        ty=tile.ty,
        seq=TileSeq(seq),
        changes=pvector(make_change(ox, oy, c, palette_id) for ox, oy, c in changes),
    )


def make_snapshot(
    seq: int, tile: TileCoord = ORIGIN, etag: Optional[str] = None
) -> TileSnapshotMeta:
    return TileSnapshotMeta(
        tx=tile.tx,
        ty=tile.ty,
        seq=TileSeq(seq),
        snapshot_url=f"/tiles/{tile.tx}/{tile.ty}.png?seq={seq}",
        palette_version=3,
        palette_id="classic",
        etag=etag,
    )


def make_paint(
    x: int,
    y: int,
    color: int = 7,
    palette_id: Optional[str] = None,
    client_op_id: Optional[str] = None,
) -> PaintPayload:
    return PaintPayload(
        x=PixelX(x),
        y=PixelY(y),
        color=ColorIndex(color),
        palette_id=palette_id,
        client_op_id=client_op_id,
    )


# Three overlapping batches for one tile; later seqs overwrite (0, 0).
SEQ_5 = make_delta(5, [(0, 0, 7), (1, 0, 7)])
SEQ_6 = make_delta(6, [(0, 0, 12), (2, 2, 3)])
SEQ_7 = make_delta(7, [(0, 0, 15), (1, 0, 10)])
