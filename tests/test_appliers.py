import json
import os

import pytest

from core.appliers import (
    album_plan,
    apply_album_operations,
    apply_playlist_image_operations,
    apply_track_number_operations,
    apply_tracklist_operations,
    like_prefix,
    metadata_set_clause,
    playlist_image_plan,
)
from core.models import (
    OperationKind,
    PlaylistImageOperation,
    PlaylistTracksOperation,
    ProcessConfig,
    TrackNumberOperation,
)
from core.state import ProgressContext
from db.catalog import open_catalog
from db.schema import ALBUM_TYPE, PLAYLIST_TYPE
from conftest import touch


@pytest.fixture
def db(catalog):
    connection = open_catalog(catalog.path)
    yield connection
    connection.close()


def test_like_prefix_escapes_wildcards():
    directory = os.path.join(os.sep, "music", "50% off_x")
    assert like_prefix(directory) == os.path.join(os.sep, "music", "50^% off^_x", "%")


def test_set_clause_follows_options():
    both = metadata_set_clause(ProcessConfig())
    assert "Artists = :artist" in both and "Images" in both
    assert "Images" not in metadata_set_clause(ProcessConfig(update_images=False))
    assert "Artists" not in metadata_set_clause(ProcessConfig(update_artists=False))

    nothing = ProcessConfig(update_images=False, update_artists=False)
    assert playlist_image_plan(nothing) is None
    assert album_plan(nothing) is None


def test_playlist_image_update(the_wall_catalog, the_wall, db, music_root):
    catalog = the_wall_catalog
    neighbour = touch(music_root / "Pink Floyd - The Wall 2" / "01 - Other.mp3")
    catalog.add_track(neighbour)
    op = PlaylistImageOperation(the_wall["playlist"], "desc", "Pink Floyd", "The Wall")
    ctx = ProgressContext()

    result = apply_playlist_image_operations(db, ProcessConfig(), [op], ctx)

    assert result.applied == 1 and not result.errors
    assert result.changes == 3
    for path in the_wall["tracks"] + [the_wall["playlist"]]:
        row = catalog.row(path)
        assert (row["Artists"], row["AlbumArtists"], row["Album"], row["Images"]) == (
            "Pink Floyd", "Pink Floyd", "The Wall", "desc"
        )
    assert catalog.row(neighbour)["Artists"] is None
    assert catalog.row(os.path.realpath(the_wall["folder"]), ALBUM_TYPE)["Artists"] is None
    assert ctx.done == 1


def test_empty_descriptor_leaves_images_alone(catalog, the_wall, db):
    catalog.add_playlist(the_wall["playlist"])
    first, second = the_wall["tracks"]
    catalog.add_track(first)
    catalog.add_track(second, Images="existing")
    op = PlaylistImageOperation(the_wall["playlist"], "", "Pink Floyd", "The Wall")

    apply_playlist_image_operations(db, ProcessConfig(), [op], ProgressContext())

    assert catalog.row(first)["Images"] is None
    assert catalog.row(second)["Images"] == "existing"
    assert catalog.row(first)["Artists"] == "Pink Floyd"


def test_artists_option_off(the_wall_catalog, the_wall, db):
    op = PlaylistImageOperation(the_wall["playlist"], "desc", "Pink Floyd", "The Wall")

    apply_playlist_image_operations(db, ProcessConfig(update_artists=False), [op], ProgressContext())

    row = the_wall_catalog.row(the_wall["tracks"][0])
    assert row["Images"] == "desc"
    assert row["Artists"] is None and row["Album"] is None


def test_nothing_enabled_skips_phase(the_wall_catalog, the_wall, db):
    op = PlaylistImageOperation(the_wall["playlist"], "desc", "Pink Floyd", "The Wall")
    config = ProcessConfig(update_artists=False, update_images=False)

    result = apply_playlist_image_operations(db, config, [op], ProgressContext())

    assert result.applied == 0 and result.skipped == 1
    assert the_wall_catalog.row(the_wall["tracks"][0])["Images"] is None


def test_missing_target_is_skipped(the_wall_catalog, the_wall, db, music_root):
    gone = PlaylistImageOperation(str(music_root / "Gone - Away" / "playlist.xml"), "d", "Gone", "Away")
    ctx = ProgressContext()

    result = apply_playlist_image_operations(db, ProcessConfig(), [gone], ctx)

    assert result.skipped == 1 and result.applied == 0
    assert ctx.done == 1


def test_album_update(the_wall_catalog, the_wall, db):
    folder = os.path.realpath(the_wall["folder"])
    op = PlaylistImageOperation(folder, "desc", "Pink Floyd", "The Wall", kind=OperationKind.ALBUM)

    result = apply_album_operations(db, ProcessConfig(), [op], ProgressContext())

    assert result.changes == 1
    row = the_wall_catalog.row(folder, ALBUM_TYPE)
    assert (row["Artists"], row["Album"], row["Images"]) == ("Pink Floyd", "The Wall", "desc")
    assert the_wall_catalog.row(the_wall["tracks"][0])["Artists"] is None


def test_track_number_update(the_wall_catalog, the_wall, db):
    first, second = the_wall["tracks"]
    operations = [TrackNumberOperation(first, 1), TrackNumberOperation(second, 2)]

    result = apply_track_number_operations(db, ProcessConfig(), operations, ProgressContext())

    assert result.applied == 2
    assert the_wall_catalog.row(first)["IndexNumber"] == 1
    assert the_wall_catalog.row(second)["IndexNumber"] == 2


def test_tracklist_update(the_wall_catalog, the_wall, db):
    op = PlaylistTracksOperation(the_wall["playlist"], list(the_wall["tracks"]), list(the_wall["track_ids"]))

    apply_tracklist_operations(db, ProcessConfig(), [op], ProgressContext())

    data = json.loads(the_wall_catalog.row(the_wall["playlist"], PLAYLIST_TYPE)["data"])
    assert [child["ItemId"] for child in data["LinkedChildren"]] == the_wall["track_ids"]
    assert [child["Path"] for child in data["LinkedChildren"]] == [
        "1-01 - In The Flesh.mp3",
        "1-02 - The Thin Ice.mp3",
    ]


def test_apply_stops_when_cancelled(the_wall_catalog, the_wall, db):
    first, second = the_wall["tracks"]
    ctx = ProgressContext()
    ctx.subscribe(lambda event: ctx.cancel())

    result = apply_track_number_operations(
        db, ProcessConfig(), [TrackNumberOperation(first, 1), TrackNumberOperation(second, 2)], ctx
    )

    assert result.applied == 1
    assert the_wall_catalog.row(second)["IndexNumber"] is None
