# core/tracklist_payload.py
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Optional, Sequence

from db.schema import EMPTY_PLAYLIST_TEXT

LINK_TYPE = "Manual"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def linked_children(tracks: Sequence[str], track_ids: Sequence[str]) -> list[dict]:
    if len(tracks) != len(track_ids):
        raise ValueError(f"{len(tracks)} tracks but {len(track_ids)} track ids")
    return [
        {"Path": os.path.basename(track), "Type": LINK_TYPE, "ItemId": item_id}
        for track, item_id in zip(tracks, track_ids)
    ]


def build_tracklist_payload(
    tracks: Sequence[str],
    track_ids: Sequence[str],
    now: Optional[datetime] = None,
) -> bytes:
    """Playlist `data` blob listing `tracks` in order, stamped with `now` (UTC)."""
    payload = json.loads(EMPTY_PLAYLIST_TEXT)
    payload["LinkedChildren"] = linked_children(tracks, track_ids)

    saved = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    payload["DateLastSaved"] = saved.strftime(DATE_FORMAT)

    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
