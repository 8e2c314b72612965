"""infiniplace
=================================

Wire contract for a real-time collaborative pixel canvas: tile addressing,
palette-indexed colors, the per-tile sequence-numbered delta protocol and the
version handshake.

The symbols re-exported here are the stable import surface, e.g.::

    from infiniplace import TILE_SIZE, to_tile_coord, to_tile_offset, tile_key

Everything is an immutable value or a pure function, except the two stateful
helpers :class:`TileSyncTracker` (client side) and :class:`TileSequencer`
(reference ordering authority).
"""

from .types import TILE_SIZE, PROTOCOL_VERSION, MAX_COLOR_INDEX, DeltaAction
from .coords import (
    PixelCoord,
    TileCoord,
    TileOffset,
    parse_tile_key,
    tile_key,
    tiles_in_viewport,
    to_centered_pixel_coord,
    to_global_pixel,
    to_pixel_coord,
    to_tile_coord,
    to_tile_offset,
)
from .palette import (
    CLASSIC_PALETTE,
    DEFAULT_BASELINE_COLOR_INDEX,
    DEFAULT_BASELINE_PALETTE_ID,
    DEFAULT_BASELINE_PALETTE_ORDINAL,
    DEFAULT_PALETTE,
    DEFAULT_REGISTRY,
    EARTH_PALETTE,
    PALETTE_SET,
    SHADES_PALETTE,
    Palette,
    PaletteRegistry,
    PaletteSet,
    find_color_index,
    get_palette_by_id,
    is_valid_color_index,
    ordinal_to_palette_id,
    palette_id_to_ordinal,
)
from .errors import (
    Accepted,
    ErrorCode,
    ErrorFrame,
    PaintValidation,
    ProtocolError,
    RateLimited,
    RateLimitHint,
    Rejected,
    SequenceGapError,
)
from .delta import PixelChange, TileDelta, TileSnapshotMeta, classify_delta
from .tile import TileGrid, compose
from .messages import (
    WS,
    ClientEvent,
    PaintPayload,
    PingPayload,
    PongPayload,
    PopPayload,
    ServerEvent,
    SubPayload,
    TilePresence,
    UnsubPayload,
    UserCountPayload,
    decode_message,
    encode_message,
    from_wire,
    to_wire,
)
from .handshake import HandshakeInfo, is_compatible, local_handshake
from .validation import ProtectedRegion, paint_to_change, validate_paint
from .sync import TileSyncTracker
from .sequencer import ClientOpDeduplicator, TileSequencer
from .records import PaintEvent, TileDeltaRow, TileSnapshotRow, UserRef

__all__ = [
    # Constants
    "TILE_SIZE",
    "PROTOCOL_VERSION",
    "MAX_COLOR_INDEX",
    # Coordinates
    "PixelCoord",
    "TileCoord",
    "TileOffset",
    "parse_tile_key",
    "tile_key",
    "tiles_in_viewport",
    "to_centered_pixel_coord",
    "to_global_pixel",
    "to_pixel_coord",
    "to_tile_coord",
    "to_tile_offset",
    # Palettes
    "CLASSIC_PALETTE",
    "DEFAULT_BASELINE_COLOR_INDEX",
    "DEFAULT_BASELINE_PALETTE_ID",
    "DEFAULT_BASELINE_PALETTE_ORDINAL",
    "DEFAULT_PALETTE",
    "DEFAULT_REGISTRY",
    "EARTH_PALETTE",
    "PALETTE_SET",
    "SHADES_PALETTE",
    "Palette",
    "PaletteRegistry",
    "PaletteSet",
    "find_color_index",
    "get_palette_by_id",
    "is_valid_color_index",
    "ordinal_to_palette_id",
    "palette_id_to_ordinal",
    # Errors / validation outcome
    "Accepted",
    "ErrorCode",
    "ErrorFrame",
    "PaintValidation",
    "ProtocolError",
    "RateLimited",
    "RateLimitHint",
    "Rejected",
    "SequenceGapError",
    # Deltas
    "DeltaAction",
    "PixelChange",
    "TileDelta",
    "TileSnapshotMeta",
    "TileGrid",
    "classify_delta",
    "compose",
    # Messages
    "WS",
    "ClientEvent",
    "ServerEvent",
    "PaintPayload",
    "PingPayload",
    "PongPayload",
    "PopPayload",
    "SubPayload",
    "TilePresence",
    "UnsubPayload",
    "UserCountPayload",
    "decode_message",
    "encode_message",
    "from_wire",
    "to_wire",
    # Handshake
    "HandshakeInfo",
    "is_compatible",
    "local_handshake",
    # Server side
    "ProtectedRegion",
    "paint_to_change",
    "validate_paint",
    "ClientOpDeduplicator",
    "TileSequencer",
    # Client side
    "TileSyncTracker",
    # Records
    "PaintEvent",
    "TileDeltaRow",
    "TileSnapshotRow",
    "UserRef",
]
