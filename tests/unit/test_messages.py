import json
from typing import Any

import pytest
from pyrsistent import pvector

from infiniplace.coords import TileCoord
from infiniplace.errors import ErrorCode, ErrorFrame, ProtocolError, RateLimitHint
from infiniplace.messages import (
    WS,
    ClientEvent,
    PingPayload,
    PongPayload,
    ServerEvent,
    SubPayload,
    TilePresence,
    UnsubPayload,
    UserCountPayload,
    decode_message,
    encode_message,
    from_wire,
    pong_for,
    to_wire,
)
from tests.test_utils import SEQ_6, make_paint, make_snapshot


def test_event_catalog() -> None:
    assert [e.value for e in ClientEvent] == ["SUB", "UNSUB", "PAINT", "PING"]
    assert [e.value for e in ServerEvent] == [
        "INIT_TILE",
        "DELTA",
        "ERROR",
        "RATE_LIMIT",
        "POP",
        "USER_COUNT",
        "PONG",
    ]
    assert all(name == event.value for name, event in WS.items())
    assert len(WS) == 11


def test_sub_uses_camel_case_and_omits_none() -> None:
    sub = SubPayload(tiles=pvector([TileCoord(1, -2)]), since_seq=9)
    assert to_wire(sub) == {"tiles": [{"tx": 1, "ty": -2}], "sinceSeq": 9}
    assert to_wire(SubPayload(tiles=pvector())) == {"tiles": []}


def test_paint_wire_shape() -> None:
    paint = make_paint(-3, 4, color=2, palette_id="earth", client_op_id="op-1")
    assert to_wire(paint) == {
        "x": -3,
        "y": 4,
        "color": 2,
        "paletteId": "earth",
        "clientOpId": "op-1",
    }
    assert to_wire(make_paint(0, 0, color=1)) == {"x": 0, "y": 0, "color": 1}


def test_delta_wire_shape() -> None:
    assert to_wire(SEQ_6) == {
        "tx": 0,
        "ty": 0,
        "seq": 6,
        "changes": [
            {"ox": 0, "oy": 0, "color": 12, "paletteId": "classic"},
            {"ox": 2, "oy": 2, "color": 3, "paletteId": "classic"},
        ],
    }


def test_init_tile_wire_shape() -> None:
    data = to_wire(make_snapshot(4, etag="e1"))
    assert data == {
        "tx": 0,
        "ty": 0,
        "seq": 4,
        "snapshotUrl": "/tiles/0/0.png?seq=4",
        "paletteVersion": 3,
        "paletteId": "classic",
        "etag": "e1",
    }


def test_error_and_rate_limit_wire_shape() -> None:
    frame = ErrorFrame.of(ErrorCode.VALIDATION, "bad color", field="color")
    assert to_wire(frame) == {
        "code": "VALIDATION",
        "message": "bad color",
        "meta": {"field": "color"},
    }
    assert to_wire(RateLimitHint(retry_after_ms=100, refill_per_sec=2.5)) == {
        "retryAfterMs": 100,
        "refillPerSec": 2.5,
    }


@pytest.mark.parametrize(
    "event, payload",
    [
        (ClientEvent.SUB, SubPayload(tiles=pvector([TileCoord(0, 0)]), protocol=1)),
        (ClientEvent.UNSUB, UnsubPayload(tiles=pvector([TileCoord(5, 5)]))),
        (ClientEvent.PAINT, make_paint(100, -100, color=3, client_op_id="abc")),
        (ClientEvent.PING, PingPayload(ts=1234)),
        (ServerEvent.INIT_TILE, make_snapshot(2)),
        (ServerEvent.DELTA, SEQ_6),
        (ServerEvent.ERROR, ErrorFrame.of(ErrorCode.FORBIDDEN, "no", reason="logo")),
        (ServerEvent.RATE_LIMIT, RateLimitHint(retry_after_ms=10, bucket_size=5)),
        (ServerEvent.POP, TilePresence(tx=1, ty=2, count=3)),
        (ServerEvent.USER_COUNT, UserCountPayload(count=42)),
        (ServerEvent.PONG, PongPayload(ts=1, server_ts=2)),
    ],
)
def test_every_event_survives_the_envelope(event: Any, payload: Any) -> None:
    text = encode_message(event, payload)
    assert json.loads(text)["type"] == event.value
    assert decode_message(text) == (event, payload)


def test_pong_echoes_ping_ts() -> None:
    assert pong_for(PingPayload(ts=77), server_ts=99) == PongPayload(ts=77, server_ts=99)


def delta_with_change(**overrides: Any) -> dict[str, Any]:
    change = {"ox": 0, "oy": 0, "color": 1, "paletteId": "classic", **overrides}
    return {"tx": 0, "ty": 0, "seq": 1, "changes": [change]}


@pytest.mark.parametrize(
    "event, data, field",
    [
        ("PAINT", {"x": 1, "y": 2}, "color"),
        ("PAINT", {"x": 1.5, "y": 2, "color": 1}, "x"),
        ("PAINT", {"x": True, "y": 2, "color": 1}, "x"),
        ("PAINT", {"x": 1, "y": 2, "color": 1, "paletteId": 3}, "paletteId"),
        ("SUB", {"tiles": [{"tx": 1}]}, "ty"),
        ("SUB", {"tiles": "0:0"}, "tiles"),
        ("DELTA", {"tx": 0, "ty": 0, "seq": "1", "changes": []}, "seq"),
        ("DELTA", delta_with_change(ox=64), "ox"),
        ("DELTA", delta_with_change(oy=-1), "oy"),
        ("DELTA", delta_with_change(color=256), "color"),
        ("RATE_LIMIT", {"retryAfterMs": -5}, "retryAfterMs"),
        ("ERROR", {"code": "TEAPOT", "message": "short and stout"}, "code"),
    ],
)
def test_malformed_payloads_raise_bad_request(
    event: str, data: dict[str, Any], field: str
) -> None:
    with pytest.raises(ProtocolError) as info:
        from_wire(event, data)
    assert info.value.frame.code == ErrorCode.BAD_REQUEST
    assert info.value.frame.meta is not None
    assert info.value.frame.meta["field"] == field


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        '{"payload": {}}',
        '{"type": "HELLO", "payload": {}}',
        '{"type": "PING"}',
    ],
)
def test_bad_envelopes_raise(text: str) -> None:
    with pytest.raises(ProtocolError) as info:
        decode_message(text)
    assert info.value.frame.code == ErrorCode.BAD_REQUEST


def test_protocol_error_is_value_error() -> None:
    assert issubclass(ProtocolError, ValueError)


def test_to_wire_rejects_foreign_objects() -> None:
    with pytest.raises(TypeError):
        to_wire(object())  # type: ignore[arg-type]
