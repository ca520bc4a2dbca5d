from __future__ import annotations

import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add the src directory (and the launcher next to it) to sys.path
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from db.schema import (
    ALBUM_TYPE,
    AUDIO_MEDIA_TYPE,
    EMPTY_PLAYLIST_BLOB,
    PLAYLIST_TYPE,
    TRACK_TYPE,
)

# The columns of Jellyfin's TypedBaseItems that the backfill reads or writes.
CATALOG_SCHEMA_SQL = """
CREATE TABLE TypedBaseItems (
    guid GUID PRIMARY KEY NOT NULL,
    type TEXT NOT NULL,
    data BLOB NULL,
    ParentId GUID NULL,
    Path TEXT NULL,
    IndexNumber INT NULL,
    Name TEXT NULL,
    MediaType TEXT NULL,
    PresentationUniqueKey TEXT NULL,
    Images TEXT NULL,
    Album TEXT NULL,
    Artists TEXT NULL,
    AlbumArtists TEXT NULL
);
"""


class Catalog:
    """Small helper around a throwaway catalog file."""

    def __init__(self, path: Path):
        self.path = str(path)
        self.db = sqlite3.connect(self.path)
        self.db.row_factory = sqlite3.Row
        self.db.executescript(CATALOG_SCHEMA_SQL)
        self.db.commit()
        self._next_guid = 0

    def add(self, item_type: str, path: str, **columns) -> str:
        self._next_guid += 1
        key = columns.pop("PresentationUniqueKey", f"{self._next_guid:032x}")
        values = {"guid": f"guid-{self._next_guid}", "type": item_type, "Path": path,
                  "PresentationUniqueKey": key, **columns}
        names = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        self.db.execute(f"INSERT INTO TypedBaseItems ({names}) VALUES ({marks})", tuple(values.values()))
        self.db.commit()
        return key

    def add_playlist(self, path: str, **columns) -> str:
        columns.setdefault("data", EMPTY_PLAYLIST_BLOB)
        return self.add(PLAYLIST_TYPE, path, **columns)

    def add_album(self, path: str, **columns) -> str:
        return self.add(ALBUM_TYPE, path, **columns)

    def add_track(self, path: str, **columns) -> str:
        columns.setdefault("MediaType", AUDIO_MEDIA_TYPE)
        return self.add(TRACK_TYPE, path, **columns)

    def row(self, path: str, item_type: str | None = None) -> sqlite3.Row:
        if item_type is None:
            return self.db.execute("SELECT * FROM TypedBaseItems WHERE Path = ?", (path,)).fetchone()
        return self.db.execute(
            "SELECT * FROM TypedBaseItems WHERE Path = ? AND type = ?", (path, item_type)
        ).fetchone()

    def close(self):
        self.db.close()


@pytest.fixture
def catalog(tmp_path):
    cat = Catalog(tmp_path / "library.db")
    yield cat
    cat.close()


def make_image(path: Path, size=(64, 48), mode="RGB", color=(200, 30, 40)):
    from PIL import Image

    if mode == "L":
        color = 128
    elif mode == "RGBA":
        color = (*color, 255)
    Image.new(mode, size, color).save(path)
    return path


def touch(path: Path, content: bytes = b"ID3") -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return str(path)


@pytest.fixture
def music_root(tmp_path):
    root = (tmp_path / "music").resolve()
    root.mkdir()
    return root


@pytest.fixture
def the_wall(music_root):
    """Album folder "Pink Floyd - The Wall" with two tracks, a cover and a playlist file."""
    folder = music_root / "Pink Floyd - The Wall"
    folder.mkdir()
    tracks = [
        touch(folder / "1-01 - In The Flesh.mp3"),
        touch(folder / "1-02 - The Thin Ice.mp3"),
    ]
    cover = make_image(folder / "Frontal.jpg", size=(60, 60))
    playlist = touch(folder / "playlist.xml", b"<Item/>")
    return {"folder": str(folder), "tracks": tracks, "cover": str(cover), "playlist": playlist}


@pytest.fixture
def the_wall_catalog(catalog, the_wall):
    catalog.add_playlist(the_wall["playlist"])
    catalog.add_album(os.path.realpath(the_wall["folder"]))
    ids = [catalog.add_track(track) for track in the_wall["tracks"]]
    the_wall["track_ids"] = ids
    return catalog
