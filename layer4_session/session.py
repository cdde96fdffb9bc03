"""
Layer 4 — Scan Session
Runs the MRZ pipeline over a stream of frames until the first accepted result.

- At most one frame is analysed at a time; frames offered meanwhile are dropped
- The session completes exactly once; later results are discarded
- The result callback is handed to ``dispatch`` (e.g. an event loop's
  ``call_soon_threadsafe``) so it runs in the controlling context
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from error_handlers import InvalidRegionError
from layer1_normalization import Region
from .pipeline import MRZPipeline, ScanResult

logger = logging.getLogger(__name__)


def _call_directly(callback, *args):
    callback(*args)


@dataclass
class SessionConfig:
    """Configuration for a scan session."""
    require_valid: bool = True        # Only complete on results with all check digits valid
    thread_name_prefix: str = "mrz-scan"


class ScanSession:
    """
    One scanning session: frames in, a single ScanResult out.
    """

    def __init__(self, pipeline: MRZPipeline,
                 on_result: Callable[[ScanResult], None],
                 cutout: Optional[Region] = None,
                 config: Optional[SessionConfig] = None,
                 dispatch: Optional[Callable] = None,
                 on_stop: Optional[Callable[[], None]] = None):
        """
        Initialize scan session.

        Args:
            pipeline: Per-frame MRZ pipeline
            on_result: Called once with the accepted ScanResult
            cutout: Document cutout in frame coordinates (whole frame if None)
            config: Session configuration (uses defaults if not provided)
            dispatch: Runs ``on_result`` in the controlling context (direct call if None)
            on_stop: Called once when scanning stops after a result (e.g. to stop the camera)
        """
        self.pipeline = pipeline
        self.cutout = cutout
        self.config = config or SessionConfig()
        self._on_result = on_result
        self._on_stop = on_stop
        self._dispatch = dispatch or _call_directly

        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=self.config.thread_name_prefix
        )
        self._in_flight = threading.Lock()
        self._completion_lock = threading.Lock()
        self._completed = threading.Event()
        self._stopped = threading.Event()
        self._result: Optional[ScanResult] = None
        self._stats_lock = threading.Lock()

        self._stats = {
            'frames_offered': 0,
            'frames_dropped': 0,
            'frames_analysed': 0,
            'results_discarded': 0
        }

        logger.info("ScanSession started")
        logger.debug(f"Config: {self.config}")

    @property
    def is_complete(self) -> bool:
        return self._completed.is_set()

    @property
    def is_scanning(self) -> bool:
        return not (self._completed.is_set() or self._stopped.is_set())

    @property
    def result(self) -> Optional[ScanResult]:
        return self._result

    def offer_frame(self, frame: np.ndarray) -> bool:
        """
        Hand a frame to the worker without blocking.

        Returns:
            bool: True if the frame was accepted, False if it was dropped
        """
        self._count("frames_offered")

        if not self.is_scanning:
            return False

        if not self._in_flight.acquire(blocking=False):
            self._count("frames_dropped")
            return False

        try:
            self._executor.submit(self._run, frame)
        except RuntimeError:
            # Executor already shut down
            self._in_flight.release()
            return False

        return True

    def _run(self, frame: np.ndarray):
        try:
            self.analyse_frame(frame)
        except Exception as e:
            logger.warning(f"Frame processing error: {e}")
            logger.exception("Full traceback:")
        finally:
            self._in_flight.release()

    def analyse_frame(self, frame: np.ndarray) -> Optional[ScanResult]:
        """
        Analyse one frame synchronously in the calling thread.

        Returns:
            ScanResult if this frame completed the session, None otherwise
        """
        if not self.is_scanning:
            return None

        self._count("frames_analysed")

        try:
            scan_result = self.pipeline.scan_frame(frame, self.cutout)
        except InvalidRegionError as e:
            logger.warning(f"Skipping frame: {e.message}")
            return None

        if scan_result is None:
            return None

        if self.config.require_valid and not scan_result.mrz_result.all_check_digits_valid:
            logger.debug(f"MRZ rejected, invalid fields: {scan_result.mrz_result.invalid_fields}")
            return None

        if not self._complete(scan_result):
            self._count("results_discarded")
            logger.debug("Late result discarded, session already finished")
            return None

        return scan_result

    def _complete(self, scan_result: ScanResult) -> bool:
        with self._completion_lock:
            if self._completed.is_set() or self._stopped.is_set():
                return False
            self._result = scan_result
            self._completed.set()

        mrz = scan_result.mrz_result
        logger.info(f"✓ MRZ found: {mrz.format.name} {mrz.document_number}")

        try:
            if self._on_stop is not None:
                self._on_stop()
        finally:
            # The session is complete, so the result must reach the consumer
            self._dispatch(self._on_result, scan_result)
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[ScanResult]:
        """Block until the session completes or the timeout expires."""
        self._completed.wait(timeout)
        return self._result

    def stop(self):
        """Stop accepting frames; in-flight results are discarded."""
        self._stopped.set()
        logger.info("ScanSession stopped")

    def close(self):
        """Stop the session and wait for the worker to finish."""
        self.stop()
        self._executor.shutdown(wait=True)

    def _count(self, key: str):
        with self._stats_lock:
            self._stats[key] += 1

    def get_stats(self) -> Dict:
        """Get frame statistics."""
        with self._stats_lock:
            return self._stats.copy()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
