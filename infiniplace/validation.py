"""Server-side paint request validation.

:func:`validate_paint` runs the checks a ``PAINT`` must pass, in order, and
stops at the first failure:

1. the rate limiter hook (throttling is reported as :class:`RateLimited`,
   not as an error);
2. the color must be a valid index of the requested palette (an omitted or
   unknown palette id resolves to the default palette);
3. the pixel must lie outside every protected region.

Limiter *enforcement* lives outside this package; it is plugged in as a
callable returning a :class:`RateLimitHint` when the client must back off.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from infiniplace.coords import TileCoord, to_tile_coord, to_tile_offset
from infiniplace.delta import PixelChange
from infiniplace.errors import (
    ACCEPTED,
    ErrorCode,
    ErrorFrame,
    PaintValidation,
    RateLimitHint,
    RateLimited,
    Rejected,
)
from infiniplace.messages import PaintPayload
from infiniplace.palette import DEFAULT_REGISTRY, PaletteRegistry, is_valid_color_index
from infiniplace.types import ColorIndex, PixelX, PixelY

RateLimiter = Callable[[PaintPayload], Optional[RateLimitHint]]


@dataclass(frozen=True)
class ProtectedRegion:
    """Inclusive world-pixel rectangle where painting is forbidden.

    Corners may be given in any order.
    """

    x1: PixelX
    y1: PixelY
    x2: PixelX
    y2: PixelY
    reason: Optional[str] = None

    def contains(self, x: int, y: int) -> bool:
        return (
            min(self.x1, self.x2) <= x <= max(self.x1, self.x2)
            and min(self.y1, self.y2) <= y <= max(self.y1, self.y2)
        )


def validate_paint(
    paint: PaintPayload,
    registry: PaletteRegistry = DEFAULT_REGISTRY,
    protected: Iterable[ProtectedRegion] = (),
    rate_limiter: Optional[RateLimiter] = None,
) -> PaintValidation:
    if rate_limiter is not None and (hint := rate_limiter(paint)) is not None:
        return RateLimited(hint)

    palette = registry.resolve(paint.palette_id)
    if not is_valid_color_index(paint.color, palette):
        return Rejected(
            ErrorFrame.of(
                ErrorCode.VALIDATION,
                f"Color {paint.color!r} is not a valid index of palette {palette.id!r}",
                field="color",
                reason="index out of range",
            )
        )

    for region in protected:
        if region.contains(paint.x, paint.y):
            meta = {"reason": region.reason} if region.reason is not None else {}
            return Rejected(
                ErrorFrame.of(ErrorCode.FORBIDDEN, "Pixel is in a protected region", **meta)
            )

    return ACCEPTED


def paint_to_change(
    paint: PaintPayload, registry: PaletteRegistry = DEFAULT_REGISTRY
) -> Tuple[TileCoord, PixelChange]:
    """Split an accepted paint into its tile and in-tile change."""
    tile = to_tile_coord(paint.x, paint.y)
    offset = to_tile_offset(paint.x, paint.y)
    palette = registry.resolve(paint.palette_id)
    return tile, PixelChange(
        ox=offset.ox,
        oy=offset.oy,
        color=ColorIndex(paint.color),
        palette_id=palette.id,
    )
