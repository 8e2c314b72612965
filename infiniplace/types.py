"""Common type aliases, branded numeric spaces and protocol constants.

Every numeric space of the canvas (world pixels, tile grid, intra-tile
offsets, palette indices, per-tile sequence numbers) is a distinct
``NewType`` over ``int``. They cost nothing at runtime but a type checker
refuses to pass a ``TileX`` where a ``PixelX`` is expected, so crossing
spaces always goes through an explicit conversion in
:mod:`infiniplace.coords`.
"""

from enum import StrEnum, auto
from typing import Final, NewType


TILE_SIZE: Final = 64
"""Pixels per tile edge. Changing it invalidates every stored tile address."""

PROTOCOL_VERSION: Final = 1
"""Wire protocol version; bumped only on breaking wire changes."""

MAX_COLOR_INDEX: Final = 255
"""Largest color index a tile plane can store."""


PixelX = NewType("PixelX", int)
PixelY = NewType("PixelY", int)

TileX = NewType("TileX", int)
TileY = NewType("TileY", int)

OffsetX = NewType("OffsetX", int)
OffsetY = NewType("OffsetY", int)

ColorIndex = NewType("ColorIndex", int)
TileSeq = NewType("TileSeq", int)

PaletteOrdinal = int
TileKey = str

RGBA = tuple[int, int, int, int]
"""Local rendering color. Never sent over the wire."""


class DeltaAction(StrEnum):
    """What a client must do with an incoming delta given its last seq."""

    APPLY = auto()
    DUPLICATE = auto()
    GAP = auto()
