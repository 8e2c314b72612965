"""Local rendering of tile grids.

Converts between :class:`TileGrid` index planes and RGBA pixels. This is
client-side only: RGBA never goes over the wire. Rendering is a vectorized
table lookup per palette ordinal; decoding a fetched snapshot image maps
every pixel back to the first matching color index of one palette.
"""

from functools import lru_cache
from typing import Optional

import numpy as np
import numpy.typing as npt
from PIL import Image

from infiniplace.palette import DEFAULT_REGISTRY, Palette, PaletteRegistry, parse_hex_color
from infiniplace.tile import TileGrid
from infiniplace.types import TILE_SIZE

UInt8Array = npt.NDArray[np.uint8]


@lru_cache(maxsize=64)
def palette_lut(palette: Palette) -> UInt8Array:
    """``(len(palette), 4)`` uint8 RGBA table for ``palette``."""
    lut = np.array([parse_hex_color(c) for c in palette.colors], dtype=np.uint8)
    lut.flags.writeable = False
    return lut


def grid_to_rgba(grid: TileGrid, registry: PaletteRegistry = DEFAULT_REGISTRY) -> UInt8Array:
    """Render to an ``(TILE_SIZE, TILE_SIZE, 4)`` uint8 array.

    Indices out of range for their palette render fully transparent.
    """
    out = np.zeros((TILE_SIZE, TILE_SIZE, 4), dtype=np.uint8)
    for ordinal in np.unique(grid.palettes):
        palette = registry.resolve(registry.ordinal_to_palette_id(int(ordinal)))
        lut = palette_lut(palette)
        mask = grid.palettes == ordinal
        idx = grid.colors[mask]
        valid = idx < len(lut)
        rgba = np.zeros((idx.shape[0], 4), dtype=np.uint8)
        rgba[valid] = lut[idx[valid]]
        out[mask] = rgba
    return out


def grid_to_image(
    grid: TileGrid, registry: PaletteRegistry = DEFAULT_REGISTRY, scale: int = 1
) -> Image.Image:
    """Render to a Pillow RGBA image, optionally upscaled (nearest neighbour)."""
    image = Image.fromarray(grid_to_rgba(grid, registry))
    if scale != 1:
        image = image.resize((TILE_SIZE * scale, TILE_SIZE * scale), Image.Resampling.NEAREST)
    return image


def grid_from_image(
    image: Image.Image,
    palette: Optional[Palette] = None,
    registry: PaletteRegistry = DEFAULT_REGISTRY,
) -> TileGrid:
    """Decode a snapshot image into a :class:`TileGrid`.

    Every pixel must match a color of ``palette`` exactly (first match wins).

    Raises:
        ValueError: If the image is not ``TILE_SIZE`` square or holds a color
            outside the palette.
    """
    palette = palette if palette is not None else registry.default_palette
    if image.size != (TILE_SIZE, TILE_SIZE):
        raise ValueError(f"Snapshot must be {TILE_SIZE}x{TILE_SIZE}, got {image.size}")
    pixels = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    lut = palette_lut(palette)

    # (H, W, 1, 4) == (N, 4) -> (H, W, N)
    matches = np.all(pixels[:, :, None, :] == lut[None, None, :, :], axis=-1)
    found = matches.any(axis=-1)
    if not found.all():
        oy, ox = np.argwhere(~found)[0]
        raise ValueError(
            f"Pixel ({ox}, {oy}) color {tuple(int(v) for v in pixels[oy, ox])} is not in palette {palette.id!r}"
        )
    colors = matches.argmax(axis=-1).astype(np.uint8)
    ordinals = np.full(
        (TILE_SIZE, TILE_SIZE), registry.palette_id_to_ordinal(palette.id), dtype=np.uint8
    )
    colors.flags.writeable = False
    ordinals.flags.writeable = False
    return TileGrid(colors, ordinals)
