"""
Tests for Layer 4 — per-frame pipeline and scan session.
"""
import threading

import numpy as np
import pytest

from error_handlers import InvalidRegionError
from layer1_normalization import Region
from layer3_mrz import MRZFormat
from layer4_session import MRZPipeline, ScanResult, ScanSession, SessionConfig


def replace_char(line, index, char):
    return line[:index] + char + line[index + 1:]


class StubPipeline:
    """Pipeline returning queued outcomes, optionally blocking until released."""

    def __init__(self, outcomes, gate=None):
        self.outcomes = list(outcomes)
        self.gate = gate
        self.entered = threading.Event()
        self.calls = 0

    def scan_frame(self, frame, cutout=None):
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def frame():
    return np.zeros((10, 10, 3), dtype=np.uint8)


@pytest.fixture
def valid_result(parser, sample_mrz_td3):
    return ScanResult(parser.parse(sample_mrz_td3), np.zeros((10, 10, 3), dtype=np.uint8))


@pytest.fixture
def invalid_result(parser, sample_mrz_td3):
    lines = [sample_mrz_td3[0], replace_char(sample_mrz_td3[1], 9, "4")]
    return ScanResult(parser.parse(lines), np.zeros((10, 10, 3), dtype=np.uint8))


class TestScanSession:
    """Test session completion and frame scheduling."""

    def test_completes_once(self, frame, valid_result):
        """Test the callback fires once and later frames are refused."""
        received = []
        session = ScanSession(StubPipeline([valid_result, valid_result]), received.append)

        assert session.analyse_frame(frame) is valid_result
        assert session.analyse_frame(frame) is None
        assert session.offer_frame(frame) is False

        assert received == [valid_result]
        assert session.is_complete
        assert not session.is_scanning
        assert session.result is valid_result
        session.close()

    def test_invalid_result_does_not_complete(self, frame, valid_result, invalid_result):
        """Test results with failed check digits keep the session scanning."""
        received = []
        session = ScanSession(StubPipeline([invalid_result, valid_result]), received.append)

        assert session.analyse_frame(frame) is None
        assert session.is_scanning
        assert session.analyse_frame(frame) is valid_result
        assert received == [valid_result]
        session.close()

    def test_invalid_result_accepted_when_not_required(self, frame, invalid_result):
        received = []
        session = ScanSession(
            StubPipeline([invalid_result]),
            received.append,
            config=SessionConfig(require_valid=False)
        )

        assert session.analyse_frame(frame) is invalid_result
        assert received == [invalid_result]
        session.close()

    def test_no_mrz_keeps_scanning(self, frame):
        session = ScanSession(StubPipeline([None, None]), lambda result: None)
        assert session.analyse_frame(frame) is None
        assert session.analyse_frame(frame) is None
        assert session.is_scanning
        assert session.get_stats()['frames_analysed'] == 2
        session.close()

    def test_invalid_region_skips_frame(self, frame, valid_result):
        """Test degenerate cutouts skip the frame instead of failing the session."""
        session = ScanSession(
            StubPipeline([InvalidRegionError((0, 0)), valid_result]),
            lambda result: None
        )
        assert session.analyse_frame(frame) is None
        assert session.analyse_frame(frame) is valid_result
        session.close()

    def test_concurrent_completion_fires_once(self, frame, valid_result):
        """Test two workers finishing together complete the session once."""
        received = []
        session = ScanSession(StubPipeline([valid_result, valid_result]), received.append)
        barrier = threading.Barrier(2)
        returned = []

        def worker():
            barrier.wait()
            returned.append(session.analyse_frame(frame))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert received == [valid_result]
        assert sorted(r is None for r in returned) == [False, True]
        session.close()

    def test_frames_dropped_while_busy(self, frame, valid_result):
        """Test frames offered during analysis are dropped, not queued."""
        gate = threading.Event()
        pipeline = StubPipeline([valid_result], gate=gate)
        received = []
        session = ScanSession(pipeline, received.append)

        assert session.offer_frame(frame) is True
        assert pipeline.entered.wait(timeout=5)
        assert session.offer_frame(frame) is False

        gate.set()
        assert session.wait(timeout=5) is valid_result
        session.close()

        stats = session.get_stats()
        assert stats['frames_offered'] == 2
        assert stats['frames_dropped'] == 1
        assert pipeline.calls == 1
        assert received == [valid_result]

    def test_stop_discards_in_flight_result(self, frame, valid_result):
        """Test a result arriving after stop() is never delivered."""
        gate = threading.Event()
        pipeline = StubPipeline([valid_result], gate=gate)
        received = []
        session = ScanSession(pipeline, received.append)

        assert session.offer_frame(frame) is True
        assert pipeline.entered.wait(timeout=5)
        session.stop()
        gate.set()
        session.close()

        assert received == []
        assert session.result is None
        assert not session.is_complete
        assert session.get_stats()['results_discarded'] == 1

    def test_worker_errors_do_not_stall_session(self, frame, valid_result):
        """Test an unexpected error frees the worker for the next frame."""
        pipeline = StubPipeline([RuntimeError("boom"), valid_result])
        session = ScanSession(pipeline, lambda result: None)

        assert session.offer_frame(frame) is True
        for _ in range(100):
            if session.offer_frame(frame):
                break
            threading.Event().wait(0.01)

        assert session.wait(timeout=5) is valid_result
        session.close()

    def test_dispatch_and_on_stop(self, frame, valid_result):
        """Test the callback is routed through dispatch after on_stop."""
        events = []

        def dispatch(callback, *args):
            events.append("dispatch")
            callback(*args)

        session = ScanSession(
            StubPipeline([valid_result]),
            lambda result: events.append("result"),
            dispatch=dispatch,
            on_stop=lambda: events.append("stop")
        )
        session.analyse_frame(frame)

        assert events == ["stop", "dispatch", "result"]
        session.close()

    def test_failing_on_stop_still_delivers_result(self, frame, valid_result):
        """Test the result reaches the consumer even if stopping the source fails."""
        received = []

        def release_camera():
            raise RuntimeError("camera already released")

        session = ScanSession(StubPipeline([valid_result]), received.append, on_stop=release_camera)

        assert session.offer_frame(frame) is True
        assert session.wait(timeout=5) is valid_result
        session.close()

        assert session.is_complete
        assert received == [valid_result]

    def test_stats_counted_across_threads(self, frame):
        """Test frame counts from concurrent callers are not lost."""
        session = ScanSession(StubPipeline([]), lambda result: None)
        session.stop()

        def offer_many():
            for _ in range(500):
                session.offer_frame(frame)

        threads = [threading.Thread(target=offer_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        session.close()

        assert session.get_stats()['frames_offered'] == 4000

    def test_context_manager_closes(self, frame):
        with ScanSession(StubPipeline([]), lambda result: None) as session:
            assert session.is_scanning
        assert not session.is_scanning
        assert session.offer_frame(frame) is False


class TestMRZPipeline:
    """Test the real per-frame pipeline with a canned recognizer."""

    def test_read_mrz(self, make_recognizer, parser, sample_mrz_td3):
        recognizer = make_recognizer("\n".join(sample_mrz_td3))
        pipeline = MRZPipeline(recognizer, parser=parser)

        result = pipeline.read_mrz(np.full((40, 200, 3), 200, dtype=np.uint8))

        assert result.format is MRZFormat.TD3
        assert result.all_check_digits_valid
        assert recognizer.calls == 1

    def test_recognition_failure_is_no_result(self, make_recognizer):
        pipeline = MRZPipeline(make_recognizer(None))
        assert pipeline.read_mrz(np.full((40, 200, 3), 200, dtype=np.uint8)) is None

    def test_unstructured_text_is_no_result(self, make_recognizer):
        pipeline = MRZPipeline(make_recognizer("HELLO\nWORLD"))
        assert pipeline.read_mrz(np.full((40, 200, 3), 200, dtype=np.uint8)) is None

    def test_scan_frame(self, make_recognizer, parser, sample_mrz_td3, mrz_frame):
        """Test the MRZ is found in the bottom band and the document image returned."""
        pipeline = MRZPipeline(make_recognizer("\n".join(sample_mrz_td3)), parser=parser)

        scan_result = pipeline.scan_frame(mrz_frame)

        assert scan_result is not None
        assert scan_result.mrz_result.surname == "ERIKSSON"
        # Bottom 40% band (200 rows) grown by 5% of its height, clipped at the frame edge
        assert scan_result.document_image.shape == (210, mrz_frame.shape[1], 3)
        assert scan_result.timestamp
        assert scan_result.to_dict()['mrz']['document_number'] == "L898902C"

    def test_scan_frame_without_mrz(self, make_recognizer, sample_mrz_td3):
        recognizer = make_recognizer("\n".join(sample_mrz_td3))
        pipeline = MRZPipeline(recognizer)
        blank = np.full((500, 600, 3), 255, dtype=np.uint8)

        assert pipeline.scan_frame(blank) is None
        assert recognizer.calls == 0

    def test_degenerate_cutout_raises(self, make_recognizer, mrz_frame):
        pipeline = MRZPipeline(make_recognizer(None))
        with pytest.raises(InvalidRegionError):
            pipeline.scan_frame(mrz_frame, Region(0, 0, 0, 0))

    def test_scan_image_falls_back_to_whole_image(self, make_recognizer, sample_mrz_td3):
        """Test still images without a located block are read whole."""
        recognizer = make_recognizer("\n".join(sample_mrz_td3))
        pipeline = MRZPipeline(recognizer)

        result = pipeline.scan_image(np.full((100, 300, 3), 255, dtype=np.uint8))

        assert result is not None
        assert recognizer.calls == 1

    def test_session_over_real_pipeline(self, make_recognizer, parser, sample_mrz_td3, mrz_frame):
        pipeline = MRZPipeline(make_recognizer("\n".join(sample_mrz_td3)), parser=parser)
        received = []

        with ScanSession(pipeline, received.append) as session:
            assert session.offer_frame(mrz_frame) is True
            scan_result = session.wait(timeout=10)

        assert scan_result is not None
        assert received == [scan_result]
