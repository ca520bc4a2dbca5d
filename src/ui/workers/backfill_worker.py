# ui/workers/backfill_worker.py
from PySide6.QtCore import QThread, Signal

from core.models import ProcessConfig
from core.pipeline import BackfillPipeline
from core.state import Notify, ProgressContext, ProgressUpdate, RunState, StateChange
from db.catalog import open_catalog


class BackfillWorker(QThread):
    progress = Signal(int)                 # percent
    message = Signal(str, str)             # text, notify type
    state_changed = Signal(str)            # RunState value
    finished_signal = Signal(bool, str)    # ok, message

    def __init__(self, db_path: str, config: ProcessConfig, parent=None):
        super().__init__(parent)
        self.db_path = db_path
        self.config = config
        self.context = ProgressContext(keep_events=False)
        self.context.subscribe(self._forward)
        self.result = None

    def stop(self):
        self.context.cancel()

    def _forward(self, event) -> None:
        # Called on the worker thread; Qt queues the signals to the receivers.
        if isinstance(event, ProgressUpdate):
            self.progress.emit(event.percent)
        elif isinstance(event, Notify):
            self.message.emit(event.message, event.notify_type)
        elif isinstance(event, StateChange):
            self.state_changed.emit(event.state.value)

    def run(self):
        db = None
        try:
            # IMPORTANT: open db connection inside this thread
            db = open_catalog(self.db_path)

            pipeline = BackfillPipeline(db, self.config, self.context)
            self.result = pipeline.run()

            if self.result.state is RunState.DONE:
                self.finished_signal.emit(True, "Finished!")
            else:
                self.finished_signal.emit(False, self.result.error or self.result.state.value)
        except Exception as e:
            self.context.finish()
            self.finished_signal.emit(False, f"Backfill failed: {e}")
        finally:
            if db is not None:
                db.close()
