"""Coordinate conversions between world pixels, tiles and intra-tile offsets.

All functions are pure. Tile coordinates use floor division and offsets use
Euclidean modulo so that negative world coordinates land in the tile to their
upper-left with a non-negative offset, e.g. pixel ``(-1, -1)`` is offset
``(63, 63)`` of tile ``(-1, -1)``.

Round-trip law::

    origin = to_pixel_coord(*to_tile_coord(x, y))
    offset = to_tile_offset(x, y)
    (origin.x + offset.ox, origin.y + offset.oy) == (x, y)
"""

from dataclasses import dataclass
from typing import Iterator, List

from infiniplace.types import (
    TILE_SIZE,
    OffsetX,
    OffsetY,
    PixelX,
    PixelY,
    TileKey,
    TileX,
    TileY,
)


@dataclass(frozen=True)
class PixelCoord:
    """Global (world) pixel coordinate. Unbounded in every direction.

    Attributes:
        x: Column, grows to the right.
        y: Row, grows downwards.
    """

    x: PixelX
    y: PixelY


@dataclass(frozen=True)
class TileCoord:
    """Position of a tile in the tile grid."""

    tx: TileX
    ty: TileY

    def __iter__(self) -> Iterator[int]:
        yield self.tx
        yield self.ty

    @property
    def key(self) -> TileKey:
        return tile_key(self.tx, self.ty)


@dataclass(frozen=True)
class TileOffset:
    """Pixel position relative to its tile's top-left corner.

    Attributes:
        ox: Column inside the tile, ``0 <= ox < TILE_SIZE``.
        oy: Row inside the tile, ``0 <= oy < TILE_SIZE``.
    """

    ox: OffsetX
    oy: OffsetY


def _check_int(*values: object) -> None:
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Coordinates must be integers, got {value!r}")


def _euclid_mod(value: int) -> int:
    return ((value % TILE_SIZE) + TILE_SIZE) % TILE_SIZE


def to_tile_coord(x: int, y: int) -> TileCoord:
    """Return the tile containing world pixel ``(x, y)``."""
    _check_int(x, y)
    return TileCoord(TileX(x // TILE_SIZE), TileY(y // TILE_SIZE))


def to_tile_offset(x: int, y: int) -> TileOffset:
    """Return the offset of world pixel ``(x, y)`` inside its tile."""
    _check_int(x, y)
    return TileOffset(OffsetX(_euclid_mod(x)), OffsetY(_euclid_mod(y)))


def to_pixel_coord(tx: int, ty: int) -> PixelCoord:
    """Return the world coordinate of a tile's top-left pixel."""
    _check_int(tx, ty)
    return PixelCoord(PixelX(tx * TILE_SIZE), PixelY(ty * TILE_SIZE))


def to_centered_pixel_coord(tx: int, ty: int) -> PixelCoord:
    """Return the world coordinate of a tile's center (viewport centering only)."""
    origin = to_pixel_coord(tx, ty)
    half = TILE_SIZE // 2
    return PixelCoord(PixelX(origin.x + half), PixelY(origin.y + half))


def to_global_pixel(tile: TileCoord, offset: TileOffset) -> PixelCoord:
    """Inverse of splitting a world pixel into tile + offset."""
    origin = to_pixel_coord(tile.tx, tile.ty)
    return PixelCoord(PixelX(origin.x + offset.ox), PixelY(origin.y + offset.oy))


def tile_key(tx: int, ty: int) -> TileKey:
    """Canonical ``"tx:ty"`` key for tile-indexed maps and caches."""
    return f"{tx}:{ty}"


def parse_tile_key(key: TileKey) -> TileCoord:
    """Parse a key produced by :func:`tile_key`.

    Raises:
        ValueError: If ``key`` is not exactly two base-10 integers joined by ``:``.
    """
    parts = key.split(":")
    if len(parts) != 2:
        raise ValueError(f"Malformed tile key: {key!r}")
    try:
        tx, ty = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Malformed tile key: {key!r}") from None
    # Reject non-canonical spellings ("+1", " 2", "01") so keys stay injective.
    if tile_key(tx, ty) != key:
        raise ValueError(f"Non-canonical tile key: {key!r}")
    return TileCoord(TileX(tx), TileY(ty))


def tiles_in_viewport(
    x: int, y: int, width: int, height: int, margin: int = 0
) -> List[TileCoord]:
    """Return every tile overlapping a pixel rectangle, in row-major order.

    Arguments:
        x, y: World coordinate of the viewport's top-left pixel.
        width, height: Viewport size in pixels. Must be positive.
        margin: Extra whole tiles to include on each side (prefetch buffer).
    """
    _check_int(x, y, width, height, margin)
    if width <= 0 or height <= 0:
        raise ValueError(f"Viewport must be non-empty, got {width}x{height}")
    if margin < 0:
        raise ValueError(f"Margin must be non-negative, got {margin}")
    top_left = to_tile_coord(x, y)
    bottom_right = to_tile_coord(x + width - 1, y + height - 1)
    return [
        TileCoord(TileX(tx), TileY(ty))
        for ty in range(top_left.ty - margin, bottom_right.ty + margin + 1)
        for tx in range(top_left.tx - margin, bottom_right.tx + margin + 1)
    ]
