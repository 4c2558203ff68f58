"""
Pipeline engine for the occupancy monitor.

Each iteration reads one frame, runs people detection, logs the count,
hands it to the telemetry publisher without waiting, and optionally shows
an annotated preview.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import cv2
import numpy as np

from detection.base import Detector
from models.detection import BoundingBox, DetectionResult
from models.frame import FrameData
from observation.base import ObservationSource
from ops.logging import log_status

STATUS_LABEL = "People detected"
WINDOW_NAME = "Frame"
QUIT_KEY = "q"

COLOR_BOX = (0, 255, 0)  # Green (BGR)
COLOR_TEXT = (0, 0, 255)  # Red (BGR)


def box_label(box: BoundingBox) -> str:
    """Per-box overlay label: box area in thousands of pixels, capped at 100."""
    return f"Person: {min(box.area / 1000.0, 100.0):.2f}%"


class PipelineState(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    TERMINATING = "terminating"
    STOPPED = "stopped"


@dataclass
class EngineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        display: Show the annotated preview window; the quit key stops the loop.
        empty_read_delay: Seconds to wait after an empty frame read.
    """
    display: bool = False
    empty_read_delay: float = 0.001


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    empty_reads: int = 0
    failed_iterations: int = 0
    last_count: Optional[int] = None
    start_time: float = field(default_factory=time.time)


class PipelineEngine:
    """
    Capture/detect/publish loop.

    The publisher only needs a non-blocking `publish(count)`; everything it
    does after that is its own business. An exception raised anywhere in an
    iteration is logged and the loop moves on to the next frame.

    Example:
        source = OpenCVSource(OpenCVSourceConfig(camera_index=0))
        engine = PipelineEngine(source, HogPeopleDetector(), publisher)
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        detector: Detector,
        publisher,
        config: Optional[EngineConfig] = None,
    ):
        self.source = source
        self.detector = detector
        self.publisher = publisher
        self.config = config or EngineConfig()
        self.stats = PipelineStats()
        self.state = PipelineState.INITIALIZING
        self._running = False
        self._window_open = False
        self._callbacks: List[Callable[[FrameData, DetectionResult], None]] = []

    def add_callback(self, callback: Callable[[FrameData, DetectionResult], None]) -> None:
        """
        Add a callback to be called after each processed frame.

        Args:
            callback: Function taking (frame_data, result) as arguments.
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run the main processing loop until stopped.

        Raises:
            CameraUnavailable: If the source cannot be opened.
        """
        self.state = PipelineState.INITIALIZING
        self.stats = PipelineStats()
        self._running = True

        try:
            self.source.open()
            if self.config.display:
                cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_AUTOSIZE)
                self._window_open = True

            self.state = PipelineState.RUNNING
            logging.info(f"Pipeline started: source={self.source.source_id}")

            while self._running:
                try:
                    if not self._step():
                        logging.info("Quit key pressed")
                        break
                except Exception:
                    self.stats.failed_iterations += 1
                    logging.exception("Error processing frame")
                    time.sleep(self.config.empty_read_delay)
        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        finally:
            self._cleanup()

    def _step(self) -> bool:
        """
        Run one Running iteration.

        Returns False if the quit key was pressed.
        """
        frame_data = self.source.read()
        if frame_data is None:
            self.stats.empty_reads += 1
            time.sleep(self.config.empty_read_delay)
            return True

        result = self.process_frame(frame_data)

        for callback in self._callbacks:
            try:
                callback(frame_data, result)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        if self.config.display:
            return self._handle_display(frame_data, result)
        return True

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def process_frame(self, frame_data: FrameData) -> DetectionResult:
        """
        Detect people in one frame, log the count and dispatch it.

        The same count is logged and published.
        """
        result = self.detector.detect(frame_data.frame)
        count = result.count

        self.stats.frame_count += 1
        self.stats.last_count = count

        log_status(STATUS_LABEL, count)
        self.publisher.publish(count)
        return result

    def _draw_overlays(self, frame: np.ndarray, result: DetectionResult) -> np.ndarray:
        """Draw detection boxes and the current count."""
        for box in result:
            cv2.rectangle(frame, (box.x, box.y), (box.x2, box.y2), COLOR_BOX, 2, cv2.LINE_AA)
            cv2.putText(
                frame,
                box_label(box),
                (box.x, max(box.y - 10, 0)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                COLOR_BOX,
                1,
                cv2.LINE_AA,
            )

        cv2.putText(
            frame,
            f"People: {result.count}",
            (10, 30),
            cv2.FONT_HERSHEY_SIMPLEX,
            1,
            COLOR_TEXT,
            2,
        )
        return frame

    def _handle_display(self, frame_data: FrameData, result: DetectionResult) -> bool:
        """
        Show the annotated frame.

        Returns False if the quit key was pressed.
        """
        annotated = self._draw_overlays(frame_data.frame.copy(), result)
        cv2.imshow(WINDOW_NAME, annotated)
        key = cv2.waitKey(1) & 0xFF
        return key != ord(QUIT_KEY)

    def _cleanup(self) -> None:
        """Release the source, close the window and the publisher."""
        self.state = PipelineState.TERMINATING
        self._running = False

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self._window_open:
            cv2.destroyAllWindows()
            self._window_open = False

        try:
            self.publisher.close()
        except Exception as e:
            logging.warning(f"Error closing publisher: {e}")

        elapsed = time.time() - self.stats.start_time
        logging.info(
            f"Pipeline stopped: frames={self.stats.frame_count}, "
            f"empty_reads={self.stats.empty_reads}, failed={self.stats.failed_iterations}, "
            f"last_count={self.stats.last_count}, "
            f"elapsed={elapsed:.1f}s"
        )
        self.state = PipelineState.STOPPED
