# core/generators.py
"""
Generation phase: read the catalog rows that lack metadata and work out the
missing values from the files on disk. Nothing here writes to the catalog.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from core.models import (
    OperationKind,
    PlaylistImageOperation,
    PlaylistTracksOperation,
    ProcessConfig,
    TrackNumberOperation,
)
from core.state import ProgressContext
from db.catalog import StatementHandle, count_rows, iter_rows
from db.schema import (
    ALBUM_TYPE,
    EMPTY_PLAYLIST_BLOB,
    ITEM_ID_COLUMN,
    MISSING_METADATA_SQL,
    PLAYLIST_TYPE,
    TABLE_NAME,
    TRACK_TYPE,
)
from library.cover import encode_cover
from library.naming import artist_album_for, artist_album_for_directory, parse_track_number
from library.scan_library import list_audio_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    where_sql: str
    params: Sequence[Any]
    description: str


SELECTIONS: dict[OperationKind, Selection] = {
    OperationKind.PLAYLIST_IMAGE: Selection(
        f"type = ? AND {MISSING_METADATA_SQL}",
        (PLAYLIST_TYPE,),
        "playlists to update image, artists and album metadata",
    ),
    OperationKind.ALBUM: Selection(
        f"type = ? AND {MISSING_METADATA_SQL}",
        (ALBUM_TYPE,),
        "albums to update image, artists and album metadata",
    ),
    OperationKind.TRACK_NUMBER: Selection(
        "type = ? AND IndexNumber IS NULL",
        (TRACK_TYPE,),
        "tracks to update track number",
    ),
    OperationKind.PLAYLIST_TRACKLIST: Selection(
        "type = ? AND data = ?",
        (PLAYLIST_TYPE, EMPTY_PLAYLIST_BLOB),
        "playlists to update audio tracks list",
    ),
}


def count_pending(db: sqlite3.Connection, kind: OperationKind) -> int:
    selection = SELECTIONS[kind]
    return count_rows(db, selection.where_sql, selection.params)


def _pending_rows(db: sqlite3.Connection, kind: OperationKind):
    selection = SELECTIONS[kind]
    return iter_rows(db, selection.where_sql, selection.params)


# -------------------------------
# PLAYLIST IMAGE / ARTIST / ALBUM
# -------------------------------
def generate_playlist_image_operations(
    db: sqlite3.Connection, config: ProcessConfig, ctx: ProgressContext
) -> list[PlaylistImageOperation]:
    operations: list[PlaylistImageOperation] = []

    for row in _pending_rows(db, OperationKind.PLAYLIST_IMAGE):
        if ctx.cancelled:
            break

        if not os.path.exists(row.path):
            ctx.notify(f"Playlist path '{row.path}' doesn't exist!", "warn")
            continue

        ctx.notify(f"Generate metadata information of playlist '{os.path.basename(row.path)}'.")

        directory = os.path.dirname(row.path)
        descriptor = encode_cover(directory, config.image_name, ctx) if config.update_images else ""
        artist, album = artist_album_for(row.path)

        operations.append(PlaylistImageOperation(row.path, descriptor, artist, album))
        ctx.advance()

    return operations


# -------------------------------
# ALBUMS
# -------------------------------
def _reusable_playlist_operation(
    candidates: list[PlaylistImageOperation], album_path: str, ctx: ProgressContext
) -> Optional[PlaylistImageOperation]:
    if not candidates:
        return None

    distinct = {(op.artist, op.album, op.image_descriptor) for op in candidates}
    if len(distinct) == 1:
        return candidates[0]

    ctx.notify(
        f"{len(candidates)} playlists share album folder '{album_path}' with different metadata; "
        "computing the album metadata from its own folder.",
        "warn",
    )
    return None


def generate_album_operations(
    db: sqlite3.Connection,
    config: ProcessConfig,
    ctx: ProgressContext,
    playlist_operations: Sequence[PlaylistImageOperation] = (),
) -> list[PlaylistImageOperation]:
    """
    Album rows point at the album folder itself. When a playlist operation was
    already generated for the same folder its artist, album and cover are
    reused instead of being computed again.
    """
    by_directory: dict[str, list[PlaylistImageOperation]] = defaultdict(list)
    for op in playlist_operations:
        by_directory[os.path.normpath(op.directory)].append(op)

    operations: list[PlaylistImageOperation] = []

    for row in _pending_rows(db, OperationKind.ALBUM):
        if ctx.cancelled:
            break

        if not os.path.isdir(row.path):
            ctx.notify(f"Album path '{row.path}' doesn't exist!", "warn")
            continue

        ctx.notify(f"Generate metadata information of album '{os.path.basename(row.path)}'.")

        reused = _reusable_playlist_operation(by_directory.get(os.path.normpath(row.path), []), row.path, ctx)
        if reused is not None:
            artist, album, descriptor = reused.artist, reused.album, reused.image_descriptor
        else:
            artist, album = artist_album_for_directory(row.path)
            descriptor = encode_cover(row.path, config.image_name, ctx) if config.update_images else ""

        operations.append(
            PlaylistImageOperation(row.path, descriptor, artist, album, kind=OperationKind.ALBUM)
        )

    return operations


# -------------------------------
# TRACK NUMBERS
# -------------------------------
def generate_track_number_operations(
    db: sqlite3.Connection, config: ProcessConfig, ctx: ProgressContext
) -> list[TrackNumberOperation]:
    operations: list[TrackNumberOperation] = []

    for row in _pending_rows(db, OperationKind.TRACK_NUMBER):
        if ctx.cancelled:
            break

        if not os.path.exists(row.path):
            ctx.notify(f"Track path '{row.path}' doesn't exist!", "warn")
            continue

        track_number = parse_track_number(row.path, config.audio_extension)
        if track_number is None:
            ctx.notify(f"Track path '{row.path}' split error!", "warn")
            continue

        operations.append(TrackNumberOperation(row.path, track_number))
        ctx.advance()

    return operations


# -------------------------------
# PLAYLIST TRACK LISTS
# -------------------------------
def generate_playlist_tracks_operations(
    db: sqlite3.Connection, config: ProcessConfig, ctx: ProgressContext
) -> list[PlaylistTracksOperation]:
    operations: list[PlaylistTracksOperation] = []

    for row in _pending_rows(db, OperationKind.PLAYLIST_TRACKLIST):
        if ctx.cancelled:
            return operations

        directory = os.path.dirname(row.path)
        if not os.path.isdir(directory):
            ctx.notify(f"Playlist folder '{directory}' doesn't exist!", "warn")
            continue

        tracks = list_audio_files(directory, config.audio_extension)
        operations.append(PlaylistTracksOperation(row.path, tracks))

    resolve_track_ids(db, operations, ctx)
    return operations


def resolve_track_ids(
    db: sqlite3.Connection, operations: Sequence[PlaylistTracksOperation], ctx: ProgressContext
) -> None:
    """Fill `track_ids` from the catalog; a track missing there raises CatalogLookupError."""
    if not operations:
        return

    sql = f"SELECT {ITEM_ID_COLUMN} FROM {TABLE_NAME} WHERE type = :type AND Path = :path"
    with StatementHandle(db, sql, "track id lookup") as statement:
        for op in operations:
            if ctx.cancelled:
                return

            ctx.notify(f"Generate track information of playlist '{os.path.basename(op.path)}'.")

            op.track_ids.clear()
            for track in op.ordered_tracks:
                row = statement.fetch_one({"type": TRACK_TYPE, "path": track})
                op.track_ids.append(str(row[0]))

            ctx.advance()
