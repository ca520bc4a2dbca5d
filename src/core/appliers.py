# core/appliers.py
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from core.models import (
    OperationKind,
    PlaylistImageOperation,
    PlaylistTracksOperation,
    ProcessConfig,
    TrackNumberOperation,
)
from core.state import ProgressContext
from core.tracklist_payload import build_tracklist_payload
from db.catalog import CatalogError, StatementHandle
from db.schema import ALBUM_TYPE, AUDIO_MEDIA_TYPE, PLAYLIST_TYPE, TABLE_NAME, TRACK_TYPE

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "^"


@dataclass(frozen=True)
class UpdatePlan:
    kind: OperationKind
    sql: str
    bindings: Callable[[Any], dict]
    describe: Callable[[Any], str]


@dataclass
class ApplyResult:
    kind: OperationKind
    applied: int = 0
    skipped: int = 0
    changes: int = 0
    errors: list[CatalogError] = field(default_factory=list)


def like_prefix(directory: str) -> str:
    """LIKE pattern matching every path below `directory`."""
    prefix = os.path.join(directory, "")
    for char in (LIKE_ESCAPE, "%", "_"):
        prefix = prefix.replace(char, LIKE_ESCAPE + char)
    return prefix + "%"


def metadata_set_clause(config: ProcessConfig) -> str:
    parts = []
    if config.update_artists:
        parts.append("Artists = :artist, AlbumArtists = :artist, Album = :album")
    if config.update_images:
        # An empty descriptor means no cover was found: keep what the row has.
        parts.append("Images = COALESCE(NULLIF(:image, ''), Images)")
    return ", ".join(parts)


def _metadata_bindings(op: PlaylistImageOperation) -> dict:
    return {"artist": op.artist, "album": op.album, "image": op.image_descriptor}


# -------------------------------
# PLANS
# -------------------------------
def playlist_image_plan(config: ProcessConfig) -> Optional[UpdatePlan]:
    set_clause = metadata_set_clause(config)
    if not set_clause:
        return None

    # Every audio row below the playlist folder, plus the playlist row itself.
    sql = (
        f"UPDATE {TABLE_NAME} SET {set_clause} "
        f"WHERE (Path LIKE :prefix ESCAPE '{LIKE_ESCAPE}' AND MediaType = :media_type) "
        "OR (Path = :path AND type = :type)"
    )

    def bindings(op: PlaylistImageOperation) -> dict:
        values = _metadata_bindings(op)
        values.update(
            prefix=like_prefix(op.directory),
            media_type=AUDIO_MEDIA_TYPE,
            path=op.path,
            type=PLAYLIST_TYPE,
        )
        return values

    return UpdatePlan(
        OperationKind.PLAYLIST_IMAGE,
        sql,
        bindings,
        lambda op: f"Apply update for '{os.path.basename(op.directory)}' playlist metadata.",
    )


def album_plan(config: ProcessConfig) -> Optional[UpdatePlan]:
    set_clause = metadata_set_clause(config)
    if not set_clause:
        return None

    sql = (
        f"UPDATE {TABLE_NAME} SET {set_clause} "
        "WHERE Path = :path AND MediaType IS NULL AND type = :type"
    )

    def bindings(op: PlaylistImageOperation) -> dict:
        values = _metadata_bindings(op)
        values.update(path=os.path.realpath(op.path), type=ALBUM_TYPE)
        return values

    return UpdatePlan(
        OperationKind.ALBUM,
        sql,
        bindings,
        lambda op: f"Apply update for '{os.path.basename(op.path)}' album metadata.",
    )


def track_number_plan(config: ProcessConfig) -> Optional[UpdatePlan]:
    sql = f"UPDATE {TABLE_NAME} SET IndexNumber = :index WHERE Path = :path AND type = :type"
    return UpdatePlan(
        OperationKind.TRACK_NUMBER,
        sql,
        lambda op: {"index": op.track_number, "path": op.path, "type": TRACK_TYPE},
        lambda op: (
            f"Apply update for '{os.path.splitext(os.path.basename(op.path))[0]}' track, "
            f"track number is {op.track_number}."
        ),
    )


def tracklist_plan(config: ProcessConfig) -> Optional[UpdatePlan]:
    sql = f"UPDATE {TABLE_NAME} SET data = :data WHERE Path = :path AND type = :type"
    return UpdatePlan(
        OperationKind.PLAYLIST_TRACKLIST,
        sql,
        lambda op: {
            "data": build_tracklist_payload(op.ordered_tracks, op.track_ids),
            "path": op.path,
            "type": PLAYLIST_TYPE,
        },
        lambda op: f"Apply update for '{os.path.basename(os.path.dirname(op.path))}' playlist tracks list.",
    )


PLANS = {
    OperationKind.PLAYLIST_IMAGE: playlist_image_plan,
    OperationKind.ALBUM: album_plan,
    OperationKind.TRACK_NUMBER: track_number_plan,
    OperationKind.PLAYLIST_TRACKLIST: tracklist_plan,
}


# -------------------------------
# APPLY
# -------------------------------
def apply_operations(
    db: sqlite3.Connection,
    plan: UpdatePlan,
    operations: Sequence[Any],
    ctx: ProgressContext,
) -> ApplyResult:
    """
    Run `plan` once per operation with a single prepared statement. Targets that
    vanished since generation are skipped; failed rows are recorded and the
    phase goes on. The statement is released on every exit path.
    """
    result = ApplyResult(plan.kind)
    if not operations:
        return result

    with StatementHandle(db, plan.sql, f"{plan.kind.value} update") as statement:
        try:
            for op in operations:
                if ctx.cancelled:
                    break

                if not os.path.exists(op.target):
                    ctx.notify(f"Path '{op.target}' doesn't exist anymore, skipping.", "warn")
                    result.skipped += 1
                    ctx.advance()
                    continue

                ctx.notify(plan.describe(op))
                if statement.execute(plan.bindings(op)):
                    result.applied += 1
                ctx.advance()
        finally:
            result.changes = statement.changes
            result.errors.extend(statement.errors)

    return result


def apply_kind(
    db: sqlite3.Connection,
    kind: OperationKind,
    config: ProcessConfig,
    operations: Sequence[Any],
    ctx: ProgressContext,
) -> ApplyResult:
    plan = PLANS[kind](config)
    if plan is None:
        logger.info("Nothing to update for %s with the current options", kind.value)
        return ApplyResult(kind, skipped=len(operations))
    return apply_operations(db, plan, operations, ctx)


def apply_playlist_image_operations(db, config: ProcessConfig, operations: Sequence[PlaylistImageOperation], ctx: ProgressContext) -> ApplyResult:
    return apply_kind(db, OperationKind.PLAYLIST_IMAGE, config, operations, ctx)


def apply_album_operations(db, config: ProcessConfig, operations: Sequence[PlaylistImageOperation], ctx: ProgressContext) -> ApplyResult:
    return apply_kind(db, OperationKind.ALBUM, config, operations, ctx)


def apply_track_number_operations(db, config: ProcessConfig, operations: Sequence[TrackNumberOperation], ctx: ProgressContext) -> ApplyResult:
    return apply_kind(db, OperationKind.TRACK_NUMBER, config, operations, ctx)


def apply_tracklist_operations(db, config: ProcessConfig, operations: Sequence[PlaylistTracksOperation], ctx: ProgressContext) -> ApplyResult:
    return apply_kind(db, OperationKind.PLAYLIST_TRACKLIST, config, operations, ctx)
