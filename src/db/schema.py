from __future__ import annotations

# Jellyfin keeps every library entity in one table, discriminated by `type`.
TABLE_NAME = "TypedBaseItems"

PLAYLIST_TYPE = "MediaBrowser.Controller.Playlists.Playlist"
ALBUM_TYPE = "MediaBrowser.Controller.Entities.Audio.MusicAlbum"
TRACK_TYPE = "MediaBrowser.Controller.Entities.Audio.Audio"

AUDIO_MEDIA_TYPE = "Audio"

# Column holding the id that playlists reference in LinkedChildren[].ItemId.
ITEM_ID_COLUMN = "PresentationUniqueKey"

CATALOG_COLUMNS = (
    "type",
    "Path",
    "Images",
    "Album",
    "Artists",
    "AlbumArtists",
    "MediaType",
    "IndexNumber",
    "data",
    ITEM_ID_COLUMN,
)

# Payload Jellyfin writes for a playlist that never had tracks linked.
EMPTY_PLAYLIST_TEXT = (
    '{"OwnerUserId":"00000000000000000000000000000000","Shares":[],'
    '"PlaylistMediaType":"Audio","IsRoot":false,"LinkedChildren":[],'
    '"IsHD":false,"IsShortcut":false,"Width":0,"Height":0,"ExtraIds":[],'
    '"DateLastSaved":"0001-01-01T00:00:00.0000000Z","RemoteTrailers":[],'
    '"SupportsExternalTransfer":false}'
)
EMPTY_PLAYLIST_BLOB = EMPTY_PLAYLIST_TEXT.encode("utf-8")

MISSING_METADATA_SQL = "(Images IS NULL OR Album IS NULL OR Artists IS NULL)"
