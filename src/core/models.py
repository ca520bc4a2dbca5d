# core/models.py
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field


class OperationKind(enum.Enum):
    PLAYLIST_IMAGE = "playlist_image"
    ALBUM = "album"
    TRACK_NUMBER = "track_number"
    PLAYLIST_TRACKLIST = "playlist_tracklist"


# Albums reuse playlist results, so generation runs playlists first; the
# appliers always run in this order.
PHASE_ORDER = (
    OperationKind.PLAYLIST_IMAGE,
    OperationKind.ALBUM,
    OperationKind.TRACK_NUMBER,
    OperationKind.PLAYLIST_TRACKLIST,
)


@dataclass(frozen=True)
class ProcessConfig:
    update_images: bool = True
    update_artists: bool = True
    process_albums: bool = True
    process_track_numbers: bool = True
    process_tracklists: bool = True
    image_name: str = "Frontal"
    audio_extension: str = ".mp3"

    def enabled(self, kind: OperationKind) -> bool:
        metadata = self.update_images or self.update_artists
        if kind is OperationKind.PLAYLIST_IMAGE:
            return metadata
        if kind is OperationKind.ALBUM:
            return metadata and self.process_albums
        if kind is OperationKind.TRACK_NUMBER:
            return self.process_track_numbers
        return self.process_tracklists


@dataclass(frozen=True)
class PlaylistImageOperation:
    """Artist/album/cover data for one playlist (or album) row."""
    path: str
    image_descriptor: str
    artist: str
    album: str
    kind: OperationKind = OperationKind.PLAYLIST_IMAGE

    @property
    def directory(self) -> str:
        if self.kind is OperationKind.ALBUM:
            return self.path
        return os.path.dirname(self.path)

    @property
    def target(self) -> str:
        return self.directory


@dataclass(frozen=True)
class TrackNumberOperation:
    path: str
    track_number: int
    kind: OperationKind = OperationKind.TRACK_NUMBER

    @property
    def target(self) -> str:
        return self.path


@dataclass
class PlaylistTracksOperation:
    path: str
    ordered_tracks: list[str]
    track_ids: list[str] = field(default_factory=list)
    kind: OperationKind = OperationKind.PLAYLIST_TRACKLIST

    @property
    def target(self) -> str:
        return self.path

    @property
    def resolved(self) -> bool:
        return len(self.track_ids) == len(self.ordered_tracks)
