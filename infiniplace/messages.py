"""WebSocket event catalog and payload codec.

Event names are plain strings so they work with any multiplexing transport.
Payloads are frozen dataclasses with snake_case fields; on the wire they are
JSON objects with camelCase keys, and optional fields are omitted rather than
sent as ``null``.

Client -> server: ``SUB``, ``UNSUB``, ``PAINT``, ``PING``.
Server -> client: ``INIT_TILE``, ``DELTA``, ``ERROR``, ``RATE_LIMIT``, ``POP``,
``USER_COUNT``, ``PONG``.

The transport envelope used by :func:`encode_message` is
``{"type": <event>, "payload": {...}}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from pyrsistent import pmap, pvector
from pyrsistent.typing import PVector

from infiniplace.coords import TileCoord
from infiniplace.delta import PixelChange, TileDelta, TileSnapshotMeta
from infiniplace.errors import ErrorCode, ErrorFrame, ProtocolError, RateLimitHint
from infiniplace.types import (
    MAX_COLOR_INDEX,
    TILE_SIZE,
    ColorIndex,
    OffsetX,
    OffsetY,
    PixelX,
    PixelY,
    TileSeq,
    TileX,
    TileY,
)


class ClientEvent(StrEnum):
    SUB = "SUB"
    UNSUB = "UNSUB"
    PAINT = "PAINT"
    PING = "PING"


class ServerEvent(StrEnum):
    INIT_TILE = "INIT_TILE"
    DELTA = "DELTA"
    ERROR = "ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    POP = "POP"
    USER_COUNT = "USER_COUNT"
    PONG = "PONG"


Event = Union[ClientEvent, ServerEvent]

WS: Mapping[str, Event] = pmap(
    {e.value: e for e in (*ClientEvent, *ServerEvent)}
)


@dataclass(frozen=True)
class SubPayload:
    """Subscribe to tiles, optionally resuming after ``since_seq``."""

    tiles: PVector[TileCoord]
    since_seq: Optional[TileSeq] = None
    protocol: Optional[int] = None


@dataclass(frozen=True)
class UnsubPayload:
    tiles: PVector[TileCoord]


@dataclass(frozen=True)
class PaintPayload:
    """Paint one world pixel.

    Attributes:
        x, y: World pixel coordinate.
        color: Index into the palette named by ``palette_id``.
        palette_id: Palette to use; the default palette when omitted.
        client_op_id: Idempotency key; repeats inside the dedup window are dropped.
    """

    x: PixelX
    y: PixelY
    color: ColorIndex
    palette_id: Optional[str] = None
    client_op_id: Optional[str] = None


@dataclass(frozen=True)
class PingPayload:
    ts: int


@dataclass(frozen=True)
class PongPayload:
    ts: int
    server_ts: int


@dataclass(frozen=True)
class TilePresence:
    """Number of clients subscribed to a tile (``POP``)."""

    tx: TileX
    ty: TileY
    count: int


PopPayload = TilePresence


@dataclass(frozen=True)
class UserCountPayload:
    count: int


Payload = Union[
    SubPayload,
    UnsubPayload,
    PaintPayload,
    PingPayload,
    TileSnapshotMeta,
    TileDelta,
    ErrorFrame,
    RateLimitHint,
    TilePresence,
    UserCountPayload,
    PongPayload,
]


def pong_for(ping: PingPayload, server_ts: int) -> PongPayload:
    return PongPayload(ts=ping.ts, server_ts=server_ts)


# --- Encoding ---


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _tile_to_wire(tile: TileCoord) -> Dict[str, Any]:
    return {"tx": tile.tx, "ty": tile.ty}


def _change_to_wire(change: PixelChange) -> Dict[str, Any]:
    return {
        "ox": change.ox,
        "oy": change.oy,
        "color": change.color,
        "paletteId": change.palette_id,
    }


def to_wire(payload: Payload) -> Dict[str, Any]:
    """Encode a payload as a JSON-ready dict with camelCase keys."""
    if isinstance(payload, SubPayload):
        return _compact(
            {
                "tiles": [_tile_to_wire(t) for t in payload.tiles],
                "sinceSeq": payload.since_seq,
                "protocol": payload.protocol,
            }
        )
    if isinstance(payload, UnsubPayload):
        return {"tiles": [_tile_to_wire(t) for t in payload.tiles]}
    if isinstance(payload, PaintPayload):
        return _compact(
            {
                "x": payload.x,
                "y": payload.y,
                "color": payload.color,
                "paletteId": payload.palette_id,
                "clientOpId": payload.client_op_id,
            }
        )
    if isinstance(payload, PingPayload):
        return {"ts": payload.ts}
    if isinstance(payload, PongPayload):
        return {"ts": payload.ts, "serverTs": payload.server_ts}
    if isinstance(payload, TileSnapshotMeta):
        return _compact(
            {
                "tx": payload.tx,
                "ty": payload.ty,
                "seq": payload.seq,
                "snapshotUrl": payload.snapshot_url,
                "paletteVersion": payload.palette_version,
                "paletteId": payload.palette_id,
                "etag": payload.etag,
                "lastModified": payload.last_modified,
            }
        )
    if isinstance(payload, TileDelta):
        return {
            "tx": payload.tx,
            "ty": payload.ty,
            "seq": payload.seq,
            "changes": [_change_to_wire(c) for c in payload.changes],
        }
    if isinstance(payload, ErrorFrame):
        return _compact(
            {
                "code": payload.code.value,
                "message": payload.message,
                "meta": dict(payload.meta) if payload.meta is not None else None,
            }
        )
    if isinstance(payload, RateLimitHint):
        return _compact(
            {
                "retryAfterMs": payload.retry_after_ms,
                "tokensRemaining": payload.tokens_remaining,
                "bucketSize": payload.bucket_size,
                "refillPerSec": payload.refill_per_sec,
            }
        )
    if isinstance(payload, TilePresence):
        return {"tx": payload.tx, "ty": payload.ty, "count": payload.count}
    if isinstance(payload, UserCountPayload):
        return {"count": payload.count}
    raise TypeError(f"Not a protocol payload: {payload!r}")


# --- Decoding ---


def _require(data: Mapping[str, Any], key: str) -> Any:
    if key not in data:
        raise ProtocolError.bad_request(f"Missing field {key!r}", field=key)
    return data[key]


def _int(data: Mapping[str, Any], key: str, optional: bool = False) -> Any:
    if optional and data.get(key) is None:
        return None
    value = _require(data, key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError.bad_request(f"Field {key!r} must be an integer", field=key)
    return value


def _number(data: Mapping[str, Any], key: str, optional: bool = False) -> Any:
    if optional and data.get(key) is None:
        return None
    value = _require(data, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError.bad_request(f"Field {key!r} must be a number", field=key)
    return value


def _str(data: Mapping[str, Any], key: str, optional: bool = False) -> Any:
    if optional and data.get(key) is None:
        return None
    value = _require(data, key)
    if not isinstance(value, str):
        raise ProtocolError.bad_request(f"Field {key!r} must be a string", field=key)
    return value


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = _require(data, key)
    if not isinstance(value, list):
        raise ProtocolError.bad_request(f"Field {key!r} must be a list", field=key)
    return value


def _object(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ProtocolError.bad_request(f"{what} must be an object")
    return value


def _bounded(data: Mapping[str, Any], key: str, maximum: int) -> int:
    value = _int(data, key)
    if not 0 <= value <= maximum:
        raise ProtocolError.bad_request(
            f"Field {key!r} must be between 0 and {maximum}, got {value}", field=key
        )
    return value


def _tiles(data: Mapping[str, Any]) -> PVector[TileCoord]:
    tiles = []
    for item in _list(data, "tiles"):
        item = _object(item, "Tile")
        tiles.append(TileCoord(TileX(_int(item, "tx")), TileY(_int(item, "ty"))))
    return pvector(tiles)


def _change(data: Any) -> PixelChange:
    data = _object(data, "Pixel change")
    ox = _bounded(data, "ox", TILE_SIZE - 1)
    oy = _bounded(data, "oy", TILE_SIZE - 1)
    color = _bounded(data, "color", MAX_COLOR_INDEX)
    return PixelChange(
        ox=OffsetX(ox),
        oy=OffsetY(oy),
        color=ColorIndex(color),
        palette_id=_str(data, "paletteId"),
    )


def _decode_sub(data: Mapping[str, Any]) -> SubPayload:
    since_seq = _int(data, "sinceSeq", optional=True)
    return SubPayload(
        tiles=_tiles(data),
        since_seq=TileSeq(since_seq) if since_seq is not None else None,
        protocol=_int(data, "protocol", optional=True),
    )


def _decode_unsub(data: Mapping[str, Any]) -> UnsubPayload:
    return UnsubPayload(tiles=_tiles(data))


def _decode_paint(data: Mapping[str, Any]) -> PaintPayload:
    return PaintPayload(
        x=PixelX(_int(data, "x")),
        y=PixelY(_int(data, "y")),
        color=ColorIndex(_int(data, "color")),
        palette_id=_str(data, "paletteId", optional=True),
        client_op_id=_str(data, "clientOpId", optional=True),
    )


def _decode_ping(data: Mapping[str, Any]) -> PingPayload:
    return PingPayload(ts=_number(data, "ts"))


def _decode_pong(data: Mapping[str, Any]) -> PongPayload:
    return PongPayload(ts=_number(data, "ts"), server_ts=_number(data, "serverTs"))


def _decode_init_tile(data: Mapping[str, Any]) -> TileSnapshotMeta:
    return TileSnapshotMeta(
        tx=TileX(_int(data, "tx")),
        ty=TileY(_int(data, "ty")),
        seq=TileSeq(_int(data, "seq")),
        snapshot_url=_str(data, "snapshotUrl"),
        palette_version=_int(data, "paletteVersion"),
        palette_id=_str(data, "paletteId", optional=True),
        etag=_str(data, "etag", optional=True),
        last_modified=_str(data, "lastModified", optional=True),
    )


def _decode_delta(data: Mapping[str, Any]) -> TileDelta:
    return TileDelta(
        tx=TileX(_int(data, "tx")),
        ty=TileY(_int(data, "ty")),
        seq=TileSeq(_int(data, "seq")),
        changes=pvector(_change(c) for c in _list(data, "changes")),
    )


def _decode_error(data: Mapping[str, Any]) -> ErrorFrame:
    code = _str(data, "code")
    try:
        error_code = ErrorCode(code)
    except ValueError:
        raise ProtocolError.bad_request(f"Unknown error code {code!r}", field="code") from None
    meta = data.get("meta")
    return ErrorFrame(
        code=error_code,
        message=_str(data, "message"),
        meta=pmap(_object(meta, "Error meta")) if meta is not None else None,
    )


def _decode_rate_limit(data: Mapping[str, Any]) -> RateLimitHint:
    retry_after_ms = _int(data, "retryAfterMs")
    if retry_after_ms < 0:
        raise ProtocolError.bad_request("retryAfterMs must be >= 0", field="retryAfterMs")
    return RateLimitHint(
        retry_after_ms=retry_after_ms,
        tokens_remaining=_int(data, "tokensRemaining", optional=True),
        bucket_size=_int(data, "bucketSize", optional=True),
        refill_per_sec=_number(data, "refillPerSec", optional=True),
    )


def _decode_pop(data: Mapping[str, Any]) -> TilePresence:
    return TilePresence(
        tx=TileX(_int(data, "tx")), ty=TileY(_int(data, "ty")), count=_int(data, "count")
    )


def _decode_user_count(data: Mapping[str, Any]) -> UserCountPayload:
    return UserCountPayload(count=_int(data, "count"))


_DECODERS: Mapping[Event, Callable[[Mapping[str, Any]], Payload]] = pmap(
    {
        ClientEvent.SUB: _decode_sub,
        ClientEvent.UNSUB: _decode_unsub,
        ClientEvent.PAINT: _decode_paint,
        ClientEvent.PING: _decode_ping,
        ServerEvent.INIT_TILE: _decode_init_tile,
        ServerEvent.DELTA: _decode_delta,
        ServerEvent.ERROR: _decode_error,
        ServerEvent.RATE_LIMIT: _decode_rate_limit,
        ServerEvent.POP: _decode_pop,
        ServerEvent.USER_COUNT: _decode_user_count,
        ServerEvent.PONG: _decode_pong,
    }
)


def parse_event(name: str) -> Event:
    """Resolve an event name; unknown names are a ``BAD_REQUEST``."""
    event = WS.get(name)
    if event is None:
        raise ProtocolError.bad_request(f"Unknown event {name!r}", field="type")
    return event


def from_wire(event: Union[str, Event], data: Any) -> Payload:
    """Decode the payload of ``event``.

    Raises:
        ProtocolError: If the event is unknown or the payload is malformed.
    """
    resolved = parse_event(str(event))
    return _DECODERS[resolved](_object(data, "Payload"))


def encode_message(event: Event, payload: Payload) -> str:
    return json.dumps(
        {"type": event.value, "payload": to_wire(payload)}, separators=(",", ":")
    )


def decode_message(text: Union[str, bytes]) -> Tuple[Event, Payload]:
    """Parse a JSON envelope into ``(event, payload)``.

    Raises:
        ProtocolError: On invalid JSON, a bad envelope or a malformed payload.
    """
    try:
        envelope = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError.bad_request(f"Invalid JSON: {e}") from e
    envelope = _object(envelope, "Message")
    event = parse_event(_str(envelope, "type"))
    return event, from_wire(event, envelope.get("payload"))
