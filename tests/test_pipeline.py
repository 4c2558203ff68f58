"""
Tests for the pipeline engine.
"""

import logging
from unittest.mock import MagicMock, patch

import numpy as np
import paho.mqtt.client as mqtt
import pytest

from conftest import FixedCountDetector, ScriptedSource
from detection.hog import HogPeopleDetector
from models.detection import BoundingBox, DetectionResult
from observation.base import CameraUnavailable
from ops.logging import STATUS_LOGGER_NAME
from pipeline.engine import EngineConfig, PipelineEngine, PipelineState, STATUS_LABEL, box_label
from telemetry.publisher import MqttPublisher

NO_DELAY = EngineConfig(display=False, empty_read_delay=0)


def _frame():
    return np.zeros((160, 128, 3), dtype=np.uint8)


def _stop_after(engine, n):
    seen = []

    def callback(frame_data, result):
        seen.append(frame_data.frame_index)
        if len(seen) >= n:
            engine.stop()

    engine.add_callback(callback)
    return seen


def _status_values(caplog):
    return [r.value for r in caplog.records if r.name == STATUS_LOGGER_NAME]


class TestProcessing:
    def test_logged_and_published_counts_match(self, recording_publisher, caplog):
        counts = [0, 3, 1, 5]
        source = ScriptedSource([_frame() for _ in counts])
        engine = PipelineEngine(source, FixedCountDetector(counts), recording_publisher, NO_DELAY)
        _stop_after(engine, len(counts))

        with caplog.at_level(logging.INFO, logger=STATUS_LOGGER_NAME):
            engine.run()

        assert _status_values(caplog) == counts
        assert recording_publisher.counts == counts
        assert engine.stats.frame_count == 4
        assert engine.stats.last_count == 5

    def test_status_label(self, recording_publisher, caplog):
        source = ScriptedSource([_frame()])
        engine = PipelineEngine(source, FixedCountDetector([2]), recording_publisher, NO_DELAY)
        _stop_after(engine, 1)

        with caplog.at_level(logging.INFO, logger=STATUS_LOGGER_NAME):
            engine.run()

        record = [r for r in caplog.records if r.name == STATUS_LOGGER_NAME][0]
        assert record.label == STATUS_LABEL

    def test_frames_processed_in_capture_order(self, recording_publisher):
        source = ScriptedSource([_frame() for _ in range(5)])
        engine = PipelineEngine(source, FixedCountDetector([1]), recording_publisher, NO_DELAY)
        seen = _stop_after(engine, 5)

        engine.run()

        assert seen == [1, 2, 3, 4, 5]


class TestEmptyReads:
    def test_empty_reads_produce_no_log_or_publish(self, recording_publisher, caplog):
        source = ScriptedSource([None, None, _frame(), None, _frame()])
        engine = PipelineEngine(source, FixedCountDetector([0, 2]), recording_publisher, NO_DELAY)
        _stop_after(engine, 2)

        with caplog.at_level(logging.INFO, logger=STATUS_LOGGER_NAME):
            engine.run()

        assert _status_values(caplog) == [0, 2]
        assert recording_publisher.counts == [0, 2]
        assert engine.stats.empty_reads == 3
        assert engine.stats.frame_count == 2

    def test_empty_read_backs_off(self, recording_publisher):
        source = ScriptedSource([None, _frame()])
        engine = PipelineEngine(
            source, FixedCountDetector([1]), recording_publisher,
            EngineConfig(empty_read_delay=0.005),
        )
        _stop_after(engine, 1)

        with patch("pipeline.engine.time.sleep") as sleep:
            engine.run()

        sleep.assert_called_once_with(0.005)


class TestPublishFailures:
    def test_failing_publish_does_not_stop_loop(self, caplog):
        client = MagicMock()
        client.publish.side_effect = OSError("connection lost")
        publisher = MqttPublisher("10.0.0.5", 1884, client=client)
        publisher.connect()

        source = ScriptedSource([_frame() for _ in range(3)])
        engine = PipelineEngine(source, FixedCountDetector([1, 2, 3]), publisher, NO_DELAY)
        _stop_after(engine, 3)

        with caplog.at_level(logging.INFO):
            engine.run()
            publisher._executor.shutdown(wait=True)

        assert engine.stats.frame_count == 3
        assert engine.state == PipelineState.STOPPED
        assert client.publish.call_count == 3
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 3

    def test_raising_publisher_does_not_stop_loop(self, caplog):
        publisher = MagicMock()
        publisher.publish.side_effect = [ValueError("bad publisher"), None, None]
        engine = PipelineEngine(
            ScriptedSource([_frame() for _ in range(3)]), FixedCountDetector([1]), publisher, NO_DELAY
        )
        _stop_after(engine, 2)

        with caplog.at_level(logging.ERROR):
            engine.run()

        assert publisher.publish.call_count == 3
        assert engine.stats.failed_iterations == 1
        assert "bad publisher" in caplog.text
        publisher.close.assert_called_once()


class FlakyDetector:
    """Raises on the first call, then finds nobody."""

    def __init__(self):
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("transient detector failure")
        return DetectionResult()


class FlakySource(ScriptedSource):
    """Raises on the first read, then follows its script."""

    def read(self):
        if self.reads == 0:
            self.reads += 1
            raise OSError("camera read failed")
        return super().read()


class TestIterationFailures:
    def test_detector_failure_is_contained(self, recording_publisher, caplog):
        source = ScriptedSource([_frame() for _ in range(3)])
        engine = PipelineEngine(source, FlakyDetector(), recording_publisher, NO_DELAY)
        _stop_after(engine, 2)

        with caplog.at_level(logging.ERROR):
            engine.run()

        assert recording_publisher.counts == [0, 0]
        assert engine.stats.frame_count == 2
        assert engine.stats.failed_iterations == 1
        assert engine.state == PipelineState.STOPPED
        assert "transient detector failure" in caplog.text

    def test_read_failure_is_contained(self, recording_publisher):
        source = FlakySource([_frame()])
        engine = PipelineEngine(source, FixedCountDetector([2]), recording_publisher, NO_DELAY)
        _stop_after(engine, 1)

        engine.run()

        assert recording_publisher.counts == [2]
        assert engine.stats.failed_iterations == 1
        assert source.closed

    def test_failed_iteration_backs_off(self, recording_publisher):
        source = ScriptedSource([_frame(), _frame()])
        engine = PipelineEngine(
            source, FlakyDetector(), recording_publisher, EngineConfig(empty_read_delay=0.005)
        )
        _stop_after(engine, 1)

        with patch("pipeline.engine.time.sleep") as sleep:
            engine.run()

        sleep.assert_called_once_with(0.005)
        assert recording_publisher.counts == [0]


class TestEndToEnd:
    def test_blank_frame_reports_zero(self, blank_gray_frame, caplog):
        client = MagicMock()
        client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        publisher = MqttPublisher("10.0.0.5", 1884, client=client)
        publisher.connect()

        engine = PipelineEngine(
            ScriptedSource([blank_gray_frame]), HogPeopleDetector(), publisher, NO_DELAY
        )
        results = []

        def callback(frame_data, result):
            results.append(result)
            engine.stop()

        engine.add_callback(callback)

        with caplog.at_level(logging.INFO, logger=STATUS_LOGGER_NAME):
            engine.run()
        publisher._executor.shutdown(wait=True)

        assert results[0].boxes == ()
        assert _status_values(caplog) == [0]
        client.publish.assert_called_once_with("person_detector", "0", qos=1, retain=False)


class TestLifecycle:
    def test_cleanup_closes_source_and_publisher(self, recording_publisher):
        source = ScriptedSource([_frame()])
        engine = PipelineEngine(source, FixedCountDetector([0]), recording_publisher, NO_DELAY)
        _stop_after(engine, 1)

        engine.run()

        assert source.closed
        assert recording_publisher.closed
        assert engine.state == PipelineState.STOPPED

    def test_camera_unavailable_propagates(self, recording_publisher):
        source = MagicMock()
        source.open.side_effect = CameraUnavailable("Unable to open camera 2")
        engine = PipelineEngine(source, FixedCountDetector([0]), recording_publisher, NO_DELAY)

        with pytest.raises(CameraUnavailable):
            engine.run()

        source.read.assert_not_called()
        assert recording_publisher.closed

    def test_keyboard_interrupt_is_clean_stop(self, recording_publisher):
        detector = MagicMock()
        detector.detect.side_effect = KeyboardInterrupt
        source = ScriptedSource([_frame()])
        engine = PipelineEngine(source, detector, recording_publisher, NO_DELAY)

        engine.run()

        assert source.closed
        assert engine.state == PipelineState.STOPPED

    def test_callback_errors_are_ignored(self, recording_publisher):
        source = ScriptedSource([_frame(), _frame()])
        engine = PipelineEngine(source, FixedCountDetector([1]), recording_publisher, NO_DELAY)
        engine.add_callback(lambda fd, result: 1 / 0)
        _stop_after(engine, 2)

        engine.run()

        assert recording_publisher.counts == [1, 1]


class TestDisplay:
    def test_quit_key_stops_loop(self, recording_publisher):
        source = ScriptedSource([_frame() for _ in range(3)])
        engine = PipelineEngine(
            source, FixedCountDetector([2]), recording_publisher,
            EngineConfig(display=True, empty_read_delay=0),
        )

        with patch("pipeline.engine.cv2.namedWindow"), \
                patch("pipeline.engine.cv2.imshow") as imshow, \
                patch("pipeline.engine.cv2.waitKey", return_value=ord("q")), \
                patch("pipeline.engine.cv2.destroyAllWindows") as destroy:
            engine.run()

        assert engine.stats.frame_count == 1
        imshow.assert_called_once()
        destroy.assert_called_once()

    def test_overlay_does_not_modify_source_frame(self, recording_publisher):
        frame = _frame()
        source = ScriptedSource([frame])
        engine = PipelineEngine(
            source, FixedCountDetector([1]), recording_publisher,
            EngineConfig(display=True, empty_read_delay=0),
        )
        shown = []

        with patch("pipeline.engine.cv2.namedWindow"), \
                patch("pipeline.engine.cv2.imshow", side_effect=lambda name, img: shown.append(img)), \
                patch("pipeline.engine.cv2.waitKey", return_value=ord("q")), \
                patch("pipeline.engine.cv2.destroyAllWindows"):
            engine.run()

        assert not frame.any()
        assert shown[0].any()

    def test_box_label_shows_area_score(self, recording_publisher):
        source = ScriptedSource([_frame()])
        engine = PipelineEngine(
            source, FixedCountDetector([1]), recording_publisher,
            EngineConfig(display=True, empty_read_delay=0),
        )

        with patch("pipeline.engine.cv2.namedWindow"), \
                patch("pipeline.engine.cv2.imshow"), \
                patch("pipeline.engine.cv2.putText") as put_text, \
                patch("pipeline.engine.cv2.waitKey", return_value=ord("q")), \
                patch("pipeline.engine.cv2.destroyAllWindows"):
            engine.run()

        labels = [c.args[1] for c in put_text.call_args_list]
        # FixedCountDetector boxes are 64x128
        assert labels == ["Person: 8.19%", "People: 1"]


class TestBoxLabel:
    def test_area_in_thousands(self):
        assert box_label(BoundingBox(x=0, y=0, width=64, height=128)) == "Person: 8.19%"

    def test_capped_at_100(self):
        assert box_label(BoundingBox(x=0, y=0, width=640, height=480)) == "Person: 100.00%"
