"""Persisted row shapes shared with the storage engine.

The storage engine itself is external; these rows fix the columns it must
store so that snapshot + delta replay stays compatible:

* :class:`PaintEvent`: append-only audit log, one row per paint;
* :class:`TileDeltaRow`: one row per committed delta batch;
* :class:`TileSnapshotRow`: registry of rendered tile snapshots.

Timestamps are ISO-8601 UTC strings. ``to_row`` produces camelCase dicts
ready for JSON / document stores.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pyrsistent import pvector
from pyrsistent.typing import PVector

from infiniplace.delta import PixelChange, TileDelta, TileSnapshotMeta
from infiniplace.messages import PaintPayload
from infiniplace.palette import DEFAULT_REGISTRY, PaletteRegistry
from infiniplace.types import ColorIndex, PixelX, PixelY, TileSeq, TileX, TileY


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_row_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class UserRef:
    """Minimal user reference for attribution."""

    id: str
    handle: Optional[str] = None
    flags: Optional[int] = None


@dataclass(frozen=True)
class PaintEvent:
    id: str
    user_id: Optional[str]
    x: PixelX
    y: PixelY
    color: ColorIndex
    palette_id: str
    created_at: str

    @classmethod
    def from_paint(
        cls,
        paint: PaintPayload,
        user: Optional[UserRef] = None,
        registry: PaletteRegistry = DEFAULT_REGISTRY,
        id: Optional[str] = None,
        created_at: Optional[str] = None,
    ) -> "PaintEvent":
        return cls(
            id=id or new_row_id(),
            user_id=user.id if user is not None else None,
            x=paint.x,
            y=paint.y,
            color=paint.color,
            palette_id=registry.resolve(paint.palette_id).id,
            created_at=created_at or utc_now(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "x": self.x,
            "y": self.y,
            "color": self.color,
            "paletteId": self.palette_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class TileDeltaRow:
    id: str
    tx: TileX
    ty: TileY
    seq: TileSeq
    changes: PVector[PixelChange]
    created_at: str

    @classmethod
    def from_delta(
        cls,
        delta: TileDelta,
        id: Optional[str] = None,
        created_at: Optional[str] = None,
    ) -> "TileDeltaRow":
        return cls(
            id=id or new_row_id(),
            tx=delta.tx,
            ty=delta.ty,
            seq=delta.seq,
            changes=delta.changes,
            created_at=created_at or utc_now(),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TileDeltaRow":
        return cls(
            id=row["id"],
            tx=TileX(row["tx"]),
            ty=TileY(row["ty"]),
            seq=TileSeq(row["seq"]),
            changes=pvector(
                PixelChange(
                    ox=c["ox"], oy=c["oy"], color=c["color"], palette_id=c["paletteId"]
                )
                for c in row["changes"]
            ),
            created_at=row["createdAt"],
        )

    def to_delta(self) -> TileDelta:
        return TileDelta(tx=self.tx, ty=self.ty, seq=self.seq, changes=self.changes)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tx": self.tx,
            "ty": self.ty,
            "seq": self.seq,
            "changes": [
                {"ox": c.ox, "oy": c.oy, "color": c.color, "paletteId": c.palette_id}
                for c in self.changes
            ],
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class TileSnapshotRow:
    """A rendered snapshot.

    Attributes:
        version: Snapshot generation counter for this tile.
        image_url: Where the image is served from.
        seq: Tile seq the image reflects.
        palette_version: Palette version used to render.
    """

    tx: TileX
    ty: TileY
    version: int
    image_url: str
    seq: TileSeq
    palette_version: int
    created_at: str

    def to_meta(
        self,
        palette_id: Optional[str] = None,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> TileSnapshotMeta:
        """``INIT_TILE`` payload for this snapshot.

        Without an explicit ``etag`` one is derived from tile, version and seq,
        which changes whenever the image does.
        """
        return TileSnapshotMeta(
            tx=self.tx,
            ty=self.ty,
            seq=self.seq,
            snapshot_url=self.image_url,
            palette_version=self.palette_version,
            palette_id=palette_id,
            etag=etag or f'"{self.tx}:{self.ty}:{self.version}:{self.seq}"',
            last_modified=last_modified,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "tx": self.tx,
            "ty": self.ty,
            "version": self.version,
            "imageUrl": self.image_url,
            "seq": self.seq,
            "paletteVersion": self.palette_version,
            "createdAt": self.created_at,
        }
