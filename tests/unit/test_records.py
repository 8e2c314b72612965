from infiniplace.records import (
    PaintEvent,
    TileDeltaRow,
    TileSnapshotRow,
    UserRef,
)
from tests.test_utils import SEQ_7, make_paint


def test_paint_event_from_paint() -> None:
    event = PaintEvent.from_paint(
        make_paint(-5, 9, color=2),
        user=UserRef(id="u1", handle="pixel"),
        id="evt-1",
        created_at="2026-01-01T00:00:00+00:00",
    )
    assert event.to_row() == {
        "id": "evt-1",
        "userId": "u1",
        "x": -5,
        "y": 9,
        "color": 2,
        "paletteId": "classic",
        "createdAt": "2026-01-01T00:00:00+00:00",
    }


def test_anonymous_paint_event_gets_id_and_timestamp() -> None:
    event = PaintEvent.from_paint(make_paint(0, 0, palette_id="earth"))
    assert event.user_id is None
    assert event.palette_id == "earth"
    assert event.id
    assert event.created_at.endswith("+00:00")


def test_paint_event_records_resolved_palette() -> None:
    event = PaintEvent.from_paint(make_paint(0, 0, palette_id="missing"))
    assert event.palette_id == "classic"


def test_delta_row_round_trip() -> None:
    row = TileDeltaRow.from_delta(SEQ_7, id="d7", created_at="t")
    data = row.to_row()
    assert data["seq"] == 7
    assert data["changes"][0] == {"ox": 0, "oy": 0, "color": 15, "paletteId": "classic"}
    restored = TileDeltaRow.from_row(data)
    assert restored == row
    assert restored.to_delta() == SEQ_7


def test_snapshot_row_to_meta() -> None:
    row = TileSnapshotRow(
        tx=2,
        ty=-1,
        version=4,
        image_url="https://cdn/tiles/2/-1.png",
        seq=30,
        palette_version=3,
        created_at="t",
    )
    meta = row.to_meta(palette_id="classic", last_modified="Wed, 21 Oct 2026 07:28:00 GMT")
    assert (meta.tx, meta.ty, meta.seq) == (2, -1, 30)
    assert meta.snapshot_url == "https://cdn/tiles/2/-1.png"
    assert meta.etag == '"2:-1:4:30"'
    assert dict(meta.conditional_headers()) == {
        "If-None-Match": '"2:-1:4:30"',
        "If-Modified-Since": "Wed, 21 Oct 2026 07:28:00 GMT",
    }
    assert row.to_row()["imageUrl"] == "https://cdn/tiles/2/-1.png"
