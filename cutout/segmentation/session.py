"""
Segmentation session.

Owns the one expensive resource in the system: the loaded segmentation
model. Per-request pixel data is never stored here.

Lifecycle:
    session = SegmentationSession.create("transformers", model_config)
    model = session.ensure_ready(progress)   # loads once, then cached
    ...
    session.drop()                           # next ensure_ready reloads
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import List, Optional

from loguru import logger

from cutout.config import ModelConfig
from cutout.core.contracts import ProgressEvent
from cutout.core.errors import ModelInitError
from cutout.core.progress import ProgressReporter, ProgressSink, as_sink
from .backends import SegmentationBackend, SegmentationModel, get_backend


class _BroadcastSink(ProgressSink):
    """Forwards initialization progress to every caller waiting on it."""

    def __init__(self, session: SegmentationSession):
        self._session = session

    def emit(self, event: ProgressEvent) -> None:
        for reporter in self._session._snapshot_subscribers():
            reporter.report(event.stage, event.percent)


class SegmentationSession:
    """
    Lazily initialized, shareable segmentation model handle.

    Guarantees:
    - At most one initialization runs at a time (single-flight)
    - Concurrent callers during initialization share its outcome
    - A failed initialization is not cached; the next call retries
    - Each caller's progress never regresses
    """

    def __init__(self, backend: SegmentationBackend):
        """
        Create a session. Nothing is loaded until ensure_ready().

        Args:
            backend: Model loader
        """
        self.backend = backend

        self._lock = threading.Lock()
        self._model: Optional[SegmentationModel] = None
        self._pending: Optional[Future] = None
        self._subscribers: List[ProgressReporter] = []

        # Number of times backend.load() has been invoked
        self.init_count = 0

    @classmethod
    def create(
        cls,
        backend_name: str = "transformers",
        config: Optional[ModelConfig] = None,
    ) -> SegmentationSession:
        """Create a session for a registered backend."""
        return cls(get_backend(backend_name, config))

    @property
    def is_ready(self) -> bool:
        with self._lock:
            return self._model is not None

    @property
    def is_initializing(self) -> bool:
        with self._lock:
            return self._pending is not None

    def ensure_ready(self, progress_sink=None) -> SegmentationModel:
        """
        Return the loaded model, initializing it on first use.

        Args:
            progress_sink: ProgressSink or (stage, percent) callable

        Returns:
            Ready model handle

        Raises:
            ModelInitError: If the backend failed to load
        """
        reporter = ProgressReporter(as_sink(progress_sink))

        with self._lock:
            if self._model is not None:
                return self._model

            if self._pending is not None:
                future = self._pending
                self._subscribers.append(reporter)
                owner = False
                logger.debug("Joining in-flight model initialization")
            else:
                future = Future()
                self._pending = future
                self._subscribers = [reporter]
                owner = True

        if owner:
            self._initialize(future)

        return future.result()

    def _snapshot_subscribers(self) -> List[ProgressReporter]:
        with self._lock:
            return list(self._subscribers)

    def _finish(self, model: Optional[SegmentationModel]) -> None:
        with self._lock:
            self._model = model
            self._pending = None
            self._subscribers = []

    def _initialize(self, future: Future) -> None:
        """Run backend.load() and resolve the shared future."""
        self.init_count += 1
        logger.info(f"Initializing segmentation backend '{self.backend.name}'")
        broadcast = ProgressReporter(_BroadcastSink(self))

        try:
            model = self.backend.load(broadcast)
        except Exception as e:
            logger.error(f"Failed to initialize segmentation backend: {e}")
            if isinstance(e, ModelInitError):
                error = e
            else:
                error = ModelInitError(
                    "Failed to load AI model. Please check your internet connection."
                )
                error.__cause__ = e
            self._finish(None)
            future.set_exception(error)
            return
        except BaseException:
            # Interrupted: release waiters, then let the interrupt propagate
            self._finish(None)
            future.set_exception(ModelInitError("Model initialization interrupted"))
            raise

        if model is None:
            self._finish(None)
            future.set_exception(ModelInitError("Backend returned no model"))
            return

        self._finish(model)
        future.set_result(model)
        logger.info("Segmentation session ready")

    def drop(self) -> None:
        """Release the cached model. An in-flight initialization is not cancelled."""
        with self._lock:
            model = self._model
            self._model = None

        if model is not None:
            model.close()
            logger.info("Segmentation session dropped")

    def __enter__(self) -> SegmentationSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.drop()
