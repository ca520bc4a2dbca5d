from __future__ import annotations

import logging
import os
import re
import shutil
import sqlite3
from datetime import datetime
from typing import Any, Iterator, Mapping, Optional, Sequence

from db.models import CatalogRow
from db.schema import CATALOG_COLUMNS, TABLE_NAME

logger = logging.getLogger(__name__)

_NAMED_PARAM_RE = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


class CatalogError(Exception):
    """A store operation failed. `code` is the sqlite error name when known."""

    def __init__(self, message: str, code: str | None = None, context: str | None = None):
        super().__init__(message)
        self.code = code
        self.context = context

    @classmethod
    def from_exception(cls, exc: sqlite3.Error, context: str) -> "CatalogError":
        code = getattr(exc, "sqlite_errorname", None) or type(exc).__name__
        return cls(f"SQLite error ({code}) in {context}: {exc}", code=code, context=context)


class CatalogLookupError(CatalogError, LookupError):
    pass


# -------------------------------
# CONNECTION
# -------------------------------
def open_catalog(db_path: str) -> sqlite3.Connection:
    if not os.path.isfile(db_path):
        raise CatalogError(f"Catalog file not found: {db_path}", code="SQLITE_CANTOPEN", context="open")
    logger.info("Catalog file path: %s", db_path)

    db = sqlite3.connect(db_path)
    db.row_factory = sqlite3.Row
    return db


def backup_catalog(db_path: str) -> str:
    """Copy the catalog file next to itself before it gets modified."""
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = f"{db_path}.{stamp}.bak"
    shutil.copy2(db_path, backup_path)
    logger.info("Catalog backup written to %s", backup_path)
    return backup_path


def describe_columns(db: sqlite3.Connection) -> list[tuple[str, str]]:
    cur = db.execute(f"PRAGMA table_info({TABLE_NAME})")
    return [(name, col_type) for _cid, name, col_type, _notnull, _default, _pk in cur.fetchall()]


# -------------------------------
# READS
# -------------------------------
def count_rows(db: sqlite3.Connection, where_sql: str, params: Sequence[Any] = ()) -> int:
    sql = f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE {where_sql}"
    try:
        row = db.execute(sql, params).fetchone()
    except sqlite3.Error as e:
        raise CatalogError.from_exception(e, f"count where {where_sql}") from e
    return int(row[0])


def iter_rows(db: sqlite3.Connection, where_sql: str, params: Sequence[Any] = ()) -> Iterator[CatalogRow]:
    """Yield matching rows one at a time."""
    columns = ", ".join(CATALOG_COLUMNS)
    sql = f"SELECT {columns} FROM {TABLE_NAME} WHERE {where_sql}"
    try:
        cursor = db.execute(sql, params)
        for row in cursor:
            yield CatalogRow.from_row(row)
    except sqlite3.Error as e:
        raise CatalogError.from_exception(e, f"query where {where_sql}") from e


# -------------------------------
# PREPARED STATEMENTS
# -------------------------------
class StatementHandle:
    """
    One statement compiled once for a whole phase and re-run per row.

    `prepare()` compiles the SQL through EXPLAIN so unknown tables/columns fail
    before any row is touched. `execute()` binds, steps and commits; failures
    are recorded in `errors` instead of raised. sqlite3 keeps the compiled
    statement in the connection cache, so re-running the same SQL text only
    rebinds it.
    """

    def __init__(self, db: sqlite3.Connection, sql: str, context: str):
        self.db = db
        self.sql = sql
        self.context = context
        self.param_names = tuple(dict.fromkeys(_NAMED_PARAM_RE.findall(sql)))
        self.errors: list[CatalogError] = []
        self.executions = 0
        self.changes = 0
        self._cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> "StatementHandle":
        return self.prepare()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._cursor is not None

    def prepare(self) -> "StatementHandle":
        empty = {name: None for name in self.param_names}
        try:
            self.db.execute(f"EXPLAIN {self.sql}", empty).fetchall()
        except sqlite3.Error as e:
            raise CatalogError.from_exception(e, f"prepare {self.context}") from e
        self._cursor = self.db.cursor()
        logger.debug("Prepared %s: %s", self.context, self.sql)
        return self

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def _check_open(self) -> sqlite3.Cursor:
        if self._cursor is None:
            raise CatalogError(f"Statement for {self.context} is not prepared", context=self.context)
        return self._cursor

    def execute(self, bindings: Mapping[str, Any]) -> bool:
        cursor = self._check_open()
        try:
            cursor.execute(self.sql, dict(bindings))
            self.db.commit()
        except sqlite3.Error as e:
            error = CatalogError.from_exception(e, self.context)
            self.errors.append(error)
            logger.error("%s", error)
            return False

        self.executions += 1
        if cursor.rowcount > 0:
            self.changes += cursor.rowcount
        return True

    def fetch_one(self, bindings: Mapping[str, Any]) -> sqlite3.Row:
        """Run a lookup that must match exactly one row."""
        cursor = self._check_open()
        try:
            rows = cursor.execute(self.sql, dict(bindings)).fetchmany(2)
        except sqlite3.Error as e:
            raise CatalogError.from_exception(e, self.context) from e

        if len(rows) != 1:
            raise CatalogLookupError(
                f"Expected exactly one row for {self.context} with {dict(bindings)}, found {len(rows)}",
                code="SQLITE_NOTFOUND",
                context=self.context,
            )
        self.executions += 1
        return rows[0]
