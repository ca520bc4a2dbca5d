# core/pipeline.py
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from core.appliers import (
    ApplyResult,
    apply_album_operations,
    apply_playlist_image_operations,
    apply_track_number_operations,
    apply_tracklist_operations,
)
from core.generators import (
    SELECTIONS,
    count_pending,
    generate_album_operations,
    generate_playlist_image_operations,
    generate_playlist_tracks_operations,
    generate_track_number_operations,
)
from core.models import OperationKind, PHASE_ORDER, ProcessConfig
from core.state import ProgressContext, RunState, StateChange
from db.catalog import CatalogError

logger = logging.getLogger(__name__)

ABORTED_MESSAGE = "Aborted operation."

# Generation and application each count once; album generation reuses the
# playlist results, so albums only count their apply step.
OPERATION_WEIGHTS = {
    OperationKind.PLAYLIST_IMAGE: 2,
    OperationKind.PLAYLIST_TRACKLIST: 2,
    OperationKind.TRACK_NUMBER: 2,
    OperationKind.ALBUM: 1,
}


class RunAborted(Exception):
    pass


@dataclass
class RunResult:
    state: RunState
    error: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    results: dict[OperationKind, ApplyResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.state is RunState.DONE

    @property
    def updated_rows(self) -> int:
        return sum(r.changes for r in self.results.values())


class BackfillPipeline:
    """
    Count → generate → apply, run on the calling thread.

    Progress, messages and state changes go through `ctx`; another thread may
    call `ctx.cancel()` at any time and the run stops at the next row.
    """

    def __init__(self, db: sqlite3.Connection, config: ProcessConfig, ctx: Optional[ProgressContext] = None):
        self.db = db
        self.config = config
        self.ctx = ctx or ProgressContext()
        self.state = RunState.IDLE
        self.result: Optional[RunResult] = None

    def _set_state(self, state: RunState) -> None:
        self.state = state
        logger.debug("Run state: %s", state.value)
        self.ctx.publish(StateChange(state))

    def _check_abort(self) -> None:
        if self.ctx.cancelled:
            raise RunAborted()

    # ---- phases ----
    def count_operations(self) -> int:
        total = 0
        for kind in PHASE_ORDER:
            if not self.config.enabled(kind):
                continue
            count = count_pending(self.db, kind)
            self.ctx.notify(f"Found {count} {SELECTIONS[kind].description}.")
            total += OPERATION_WEIGHTS[kind] * count
        self.ctx.set_total(total)
        return total

    def generate(self) -> dict[OperationKind, list]:
        config, ctx = self.config, self.ctx
        operations: dict[OperationKind, list] = {kind: [] for kind in PHASE_ORDER}

        if config.enabled(OperationKind.PLAYLIST_IMAGE):
            operations[OperationKind.PLAYLIST_IMAGE] = generate_playlist_image_operations(self.db, config, ctx)
            self._check_abort()

        if config.enabled(OperationKind.PLAYLIST_TRACKLIST):
            operations[OperationKind.PLAYLIST_TRACKLIST] = generate_playlist_tracks_operations(self.db, config, ctx)
            self._check_abort()

        if config.enabled(OperationKind.TRACK_NUMBER):
            operations[OperationKind.TRACK_NUMBER] = generate_track_number_operations(self.db, config, ctx)
            self._check_abort()

        if config.enabled(OperationKind.ALBUM):
            operations[OperationKind.ALBUM] = generate_album_operations(
                self.db, config, ctx, operations[OperationKind.PLAYLIST_IMAGE]
            )
            self._check_abort()

        return operations

    def apply(self, operations: dict[OperationKind, list], result: RunResult) -> None:
        appliers = {
            OperationKind.PLAYLIST_IMAGE: apply_playlist_image_operations,
            OperationKind.ALBUM: apply_album_operations,
            OperationKind.TRACK_NUMBER: apply_track_number_operations,
            OperationKind.PLAYLIST_TRACKLIST: apply_tracklist_operations,
        }
        for kind in PHASE_ORDER:
            if not self.config.enabled(kind):
                continue
            applied = appliers[kind](self.db, self.config, operations[kind], self.ctx)
            result.results[kind] = applied
            result.errors.extend(str(e) for e in applied.errors)
            # Operation lists are not needed once their phase is written.
            operations[kind] = []
            self._check_abort()

    # ---- run ----
    def run(self) -> RunResult:
        result = RunResult(RunState.IDLE)
        try:
            self._set_state(RunState.COUNTING)
            if self.count_operations() == 0:
                self.ctx.notify("No update operations to perform.")
                result.state = RunState.DONE
            else:
                self._check_abort()
                self._set_state(RunState.GENERATING)
                self.ctx.notify("Generating UPDATE data...")
                operations = self.generate()

                self._set_state(RunState.APPLYING)
                self.ctx.notify("Finished generating data, updating database. Please wait...")
                self.apply(operations, result)

                result.state = RunState.DONE
                if result.errors:
                    self.ctx.notify(f"Finished with {len(result.errors)} database errors.", "warn")
                else:
                    self.ctx.notify("Finished!", "success")
        except RunAborted:
            result.state = RunState.ABORTED
            result.error = ABORTED_MESSAGE
            self.ctx.notify(ABORTED_MESSAGE, "warn")
        except CatalogError as e:
            result.state = RunState.FAILED
            result.error = str(e)
            self.ctx.notify(str(e), "error")
        except Exception as e:
            logger.exception("Backfill run failed")
            result.state = RunState.FAILED
            result.error = f"Exception: {e}"
            self.ctx.notify(result.error, "error")
        finally:
            self._set_state(result.state)
            self.ctx.finish()

        self.result = result
        return result
