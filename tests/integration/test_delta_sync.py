import logging

import pytest

from infiniplace.messages import PaintPayload
from infiniplace.sequencer import TileSequencer
from infiniplace.sync import (
    Applied,
    Discarded,
    NeedResync,
    NeedSnapshot,
    TileSyncTracker,
)
from infiniplace.tile import TileGrid
from infiniplace.validation import paint_to_change, validate_paint
from infiniplace.errors import Accepted
from tests.test_utils import (
    ORIGIN,
    SEQ_5,
    SEQ_6,
    SEQ_7,
    make_delta,
    make_paint,
    make_snapshot,
    make_tile,
)


def expected_after_5_6_7() -> TileGrid:
    grid = TileGrid.blank()
    for delta in (SEQ_5, SEQ_6, SEQ_7):
        grid = grid.apply_delta(delta)
    return grid


def test_in_order_deltas_apply() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(4))
    assert tracker.receive(SEQ_5) == Applied(seq=5, applied=1)
    assert tracker.receive(SEQ_6) == Applied(seq=6, applied=1)
    assert tracker.receive(SEQ_7) == Applied(seq=7, applied=1)
    assert tracker.grid(ORIGIN) == expected_after_5_6_7()


def test_network_reordering_converges() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(4))

    result = tracker.receive(SEQ_7)
    assert isinstance(result, NeedResync)
    assert tracker.last_seq(ORIGIN) == 4

    assert tracker.receive(SEQ_5) == Applied(seq=5, applied=1)
    assert tracker.receive(SEQ_6) == Applied(seq=7, applied=2)
    assert tracker.grid(ORIGIN) == expected_after_5_6_7()


def test_redelivery_is_discarded_without_effect() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(4))
    tracker.receive(SEQ_5)
    tracker.receive(SEQ_6)
    before = tracker.grid(ORIGIN)

    assert tracker.receive(SEQ_5) == Discarded(seq=6)
    assert tracker.receive(SEQ_6) == Discarded(seq=6)
    assert tracker.grid(ORIGIN) == before


def test_gap_triggers_resync_request(caplog: pytest.LogCaptureFixture) -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(3))
    with caplog.at_level(logging.WARNING, logger="infiniplace.sync"):
        result = tracker.receive(make_delta(6, [(9, 9, 1)]))

    assert isinstance(result, NeedResync)
    assert result.request.since_seq == 3
    assert list(result.request.tiles) == [ORIGIN]
    assert (result.missing_from, result.missing_to) == (4, 5)
    # Not applied.
    assert tracker.last_seq(ORIGIN) == 3
    assert tracker.grid(ORIGIN) == TileGrid.blank()
    assert "gap" in caplog.text


def test_resync_fills_gap_and_drains_buffer() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(3))
    late = make_delta(6, [(9, 9, 1)])
    tracker.receive(late)

    tracker.receive(make_delta(4, [(1, 1, 2)]))
    result = tracker.receive(make_delta(5, [(9, 9, 3)]))
    assert result == Applied(seq=6, applied=2)
    assert tracker.grid(ORIGIN).pixel(9, 9) == (1, 0)
    assert len(tracker.state(ORIGIN).pending) == 0


def test_delta_without_baseline_needs_snapshot() -> None:
    tracker = TileSyncTracker()
    assert tracker.receive(SEQ_5) == NeedSnapshot(ORIGIN)
    assert tracker.state(ORIGIN) is None


def test_compacted_history_falls_back_to_snapshot() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(3))
    tracker.receive(make_delta(9, [(0, 0, 1)]))
    tracker.receive(make_delta(12, [(0, 0, 2)]))

    assert tracker.snapshot_unavailable(ORIGIN) == NeedSnapshot(ORIGIN)
    assert len(tracker.state(ORIGIN).pending) == 0

    snapshot_grid = TileGrid.blank().apply_delta(make_delta(10, [(0, 0, 5)]))
    state = tracker.reset_from_snapshot(make_snapshot(10), snapshot_grid)
    assert state.seq == 10
    assert tracker.receive(make_delta(11, [(1, 1, 1)])) == Applied(seq=11, applied=1)
    assert tracker.grid(ORIGIN).pixel(0, 0) == (5, 0)


def test_snapshot_reset_keeps_newer_buffered_deltas() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(1))
    tracker.receive(make_delta(4, [(0, 0, 9)]))
    tracker.receive(make_delta(6, [(0, 0, 8)]))

    state = tracker.reset_from_snapshot(make_snapshot(3))
    assert state.seq == 4
    assert list(state.pending.keys()) == [6]
    assert state.grid.pixel(0, 0) == (9, 0)


def test_tiles_are_independent() -> None:
    tracker = TileSyncTracker()
    other = make_tile(-1, 2)
    tracker.reset_from_snapshot(make_snapshot(0))
    tracker.reset_from_snapshot(make_snapshot(100, tile=other))

    assert tracker.receive(make_delta(1, [(0, 0, 3)])) == Applied(seq=1, applied=1)
    assert tracker.receive(make_delta(101, [(0, 0, 4)], tile=other)) == Applied(
        seq=101, applied=1
    )
    assert tracker.grid(ORIGIN).pixel(0, 0) == (3, 0)
    assert tracker.grid(other).pixel(0, 0) == (4, 0)
    assert set(tracker.tiles.keys()) == {"0:0", "-1:2"}


def test_forget_returns_unsub_and_drops_state() -> None:
    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(2))
    unsub = tracker.forget(ORIGIN)
    assert list(unsub.tiles) == [ORIGIN]
    # In-flight delta after UNSUB is harmless.
    assert tracker.receive(make_delta(3, [(0, 0, 1)])) == NeedSnapshot(ORIGIN)


def test_resume_request_after_reconnect() -> None:
    tracker = TileSyncTracker()
    known = make_tile(1, 1)
    tracker.reset_from_snapshot(make_snapshot(8, tile=known))
    fresh_a, fresh_b = make_tile(5, 5), make_tile(6, 5)

    requests = tracker.resume_request([known, fresh_a, fresh_b])
    assert len(requests) == 2
    assert requests[0].since_seq == 8 and list(requests[0].tiles) == [known]
    assert requests[1].since_seq is None and list(requests[1].tiles) == [fresh_a, fresh_b]


def test_server_to_client_end_to_end() -> None:
    """Paints validated and sequenced server-side converge on a lagging client."""
    sequencer = TileSequencer(history_limit=8)
    paints: list[PaintPayload] = [
        make_paint(0, 0, color=7),
        make_paint(-1, -1, color=3),
        make_paint(0, 0, color=12),
        make_paint(63, 63, color=1, palette_id="earth"),
    ]
    deltas = []
    for paint in paints:
        assert isinstance(validate_paint(paint), Accepted)
        tile, change = paint_to_change(paint)
        deltas.append(sequencer.commit(tile, [change]))

    tracker = TileSyncTracker()
    tracker.reset_from_snapshot(make_snapshot(0))
    tracker.reset_from_snapshot(make_snapshot(0, tile=make_tile(-1, -1)))
    for delta in reversed(deltas):
        tracker.receive(delta)

    assert tracker.last_seq(ORIGIN) == 3
    assert tracker.grid(ORIGIN).pixel(0, 0) == (12, 0)
    assert tracker.grid(ORIGIN).pixel(63, 63) == (1, 1)
    assert tracker.grid(make_tile(-1, -1)).pixel(63, 63) == (3, 0)
