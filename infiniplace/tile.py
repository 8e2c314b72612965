"""Local pixel state of a single tile.

:class:`TileGrid` is an immutable value: two read-only ``uint8`` planes of
shape ``(TILE_SIZE, TILE_SIZE)`` indexed ``[oy, ox]``, one holding color
indices and one holding palette ordinals. Applying a delta returns a new grid.

Full state at seq ``N`` is ``compose(snapshot at M, deltas with M < seq <= N)``
with the deltas taken in ascending seq order. Deltas alone are never enough:
a grid always starts from a snapshot (or :meth:`TileGrid.blank` for a tile
that has never been painted, i.e. a snapshot at seq 0).
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import numpy.typing as npt

from infiniplace.delta import PixelChange, TileDelta
from infiniplace.errors import SequenceGapError
from infiniplace.palette import DEFAULT_REGISTRY, PaletteRegistry
from infiniplace.types import MAX_COLOR_INDEX, TILE_SIZE, ColorIndex, TileSeq

UInt8Array = npt.NDArray[np.uint8]


def _frozen(array: UInt8Array) -> UInt8Array:
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class TileGrid:
    """Immutable color + palette planes for one tile.

    Attributes:
        colors: Color index per pixel.
        palettes: Palette ordinal per pixel.
    """

    colors: UInt8Array
    palettes: UInt8Array

    def __post_init__(self) -> None:
        for plane in (self.colors, self.palettes):
            if plane.shape != (TILE_SIZE, TILE_SIZE):
                raise ValueError(
                    f"Tile planes must be {TILE_SIZE}x{TILE_SIZE}, got {plane.shape}"
                )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TileGrid):
            return NotImplemented
        return bool(
            np.array_equal(self.colors, other.colors)
            and np.array_equal(self.palettes, other.palettes)
        )

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def blank(cls, registry: PaletteRegistry = DEFAULT_REGISTRY) -> "TileGrid":
        """Grid of untouched pixels: baseline color of the default palette."""
        return cls.filled(registry.baseline_color_index(), registry.default_ordinal)

    @classmethod
    def filled(cls, color: int, ordinal: int) -> "TileGrid":
        colors = np.full((TILE_SIZE, TILE_SIZE), color, dtype=np.uint8)
        palettes = np.full((TILE_SIZE, TILE_SIZE), ordinal, dtype=np.uint8)
        return cls(_frozen(colors), _frozen(palettes))

    def pixel(self, ox: int, oy: int) -> Tuple[ColorIndex, int]:
        """``(color index, palette ordinal)`` at an intra-tile offset."""
        return ColorIndex(int(self.colors[oy, ox])), int(self.palettes[oy, ox])

    def apply_changes(
        self,
        changes: Iterable[PixelChange],
        registry: PaletteRegistry = DEFAULT_REGISTRY,
    ) -> "TileGrid":
        """Return a copy with ``changes`` written in order."""
        colors = self.colors.copy()
        palettes = self.palettes.copy()
        for change in changes:
            if not (0 <= change.ox < TILE_SIZE and 0 <= change.oy < TILE_SIZE):
                raise ValueError(
                    f"Offset ({change.ox}, {change.oy}) outside tile of size {TILE_SIZE}"
                )
            if not 0 <= change.color <= MAX_COLOR_INDEX:
                raise ValueError(f"Color index {change.color} does not fit a tile plane")
            colors[change.oy, change.ox] = change.color
            palettes[change.oy, change.ox] = registry.palette_id_to_ordinal(
                change.palette_id
            )
        return TileGrid(_frozen(colors), _frozen(palettes))

    def apply_delta(
        self, delta: TileDelta, registry: PaletteRegistry = DEFAULT_REGISTRY
    ) -> "TileGrid":
        """Apply one delta. Ordering is the caller's responsibility."""
        return self.apply_changes(delta.changes, registry)


def compose(
    snapshot: TileGrid,
    snapshot_seq: int,
    deltas: Iterable[TileDelta],
    registry: PaletteRegistry = DEFAULT_REGISTRY,
    until_seq: Optional[int] = None,
) -> Tuple[TileGrid, TileSeq]:
    """Rebuild tile state from a snapshot plus the deltas that follow it.

    Deltas may be passed in any order and may include redeliveries; they are
    sorted by seq, those at or below ``snapshot_seq`` (or above ``until_seq``)
    are dropped, and the remainder must be contiguous.

    Returns:
        Tuple of the resulting grid and the seq it reflects.

    Raises:
        SequenceGapError: If a seq between ``snapshot_seq`` and the last delta
            is missing.
    """
    grid = snapshot
    seq = snapshot_seq
    for delta in sorted(deltas, key=lambda d: d.seq):
        if delta.seq <= seq:
            continue
        if until_seq is not None and delta.seq > until_seq:
            break
        if delta.seq != seq + 1:
            raise SequenceGapError(expected=seq + 1, got=delta.seq)
        grid = grid.apply_delta(delta, registry)
        seq = delta.seq
    return grid, TileSeq(seq)
