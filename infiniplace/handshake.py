"""Connection compatibility gate.

Protocol v1 has no negotiation: a peer is compatible iff it speaks exactly
:data:`PROTOCOL_VERSION` and uses exactly :data:`TILE_SIZE`. Anything else is
rejected outright. The palette version is exchanged for information only.
"""

from dataclasses import dataclass
from typing import Optional

from infiniplace.errors import ErrorCode, ErrorFrame
from infiniplace.messages import SubPayload
from infiniplace.palette import DEFAULT_PALETTE
from infiniplace.types import PROTOCOL_VERSION, TILE_SIZE


@dataclass(frozen=True)
class HandshakeInfo:
    protocol_version: int
    palette_version: int
    tile_size: int


def local_handshake(palette_version: int = DEFAULT_PALETTE.version) -> HandshakeInfo:
    """What this side announces."""
    return HandshakeInfo(
        protocol_version=PROTOCOL_VERSION,
        palette_version=palette_version,
        tile_size=TILE_SIZE,
    )


def is_compatible(server: HandshakeInfo) -> bool:
    return server.protocol_version == PROTOCOL_VERSION and server.tile_size == TILE_SIZE


def check_subscription_protocol(sub: SubPayload) -> Optional[ErrorFrame]:
    """``BAD_REQUEST`` frame if a ``SUB`` declares a different protocol version."""
    if sub.protocol is None or sub.protocol == PROTOCOL_VERSION:
        return None
    return ErrorFrame.of(
        ErrorCode.BAD_REQUEST,
        f"Unsupported protocol version {sub.protocol}",
        expected=PROTOCOL_VERSION,
        got=sub.protocol,
    )
