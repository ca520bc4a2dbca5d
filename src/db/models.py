from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import sqlite3

from db.schema import ITEM_ID_COLUMN


@dataclass
class CatalogRow:
    path: str
    type: str
    images: Optional[str]
    album: Optional[str]
    artists: Optional[str]
    album_artists: Optional[str]
    media_type: Optional[str]
    index_number: Optional[int]
    data: Optional[bytes]
    item_id: Optional[str]

    @staticmethod
    def from_row(row: sqlite3.Row) -> "CatalogRow":
        # sqlite3.Row doesn't support .get; queries may select a subset of columns.
        keys = set(row.keys())
        def opt(k: str):
            return row[k] if k in keys else None

        item_id = opt(ITEM_ID_COLUMN)
        return CatalogRow(
            path=row["Path"],
            type=row["type"],
            images=opt("Images"),
            album=opt("Album"),
            artists=opt("Artists"),
            album_artists=opt("AlbumArtists"),
            media_type=opt("MediaType"),
            index_number=opt("IndexNumber"),
            data=opt("data"),
            item_id=str(item_id) if item_id is not None else None,
        )
