"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import time
from typing import List, Optional

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.detection import BoundingBox, DetectionResult  # noqa: E402
from models.frame import FrameData  # noqa: E402
from observation.base import ObservationConfig, ObservationSource  # noqa: E402


class ScriptedSource(ObservationSource):
    """
    Source that replays a script of frames; None entries are empty reads.

    Once the script runs out, reads keep returning None.
    """

    def __init__(self, script: List[Optional[np.ndarray]], source_id: str = "scripted"):
        super().__init__(ObservationConfig(source_id=source_id))
        self._script = list(script)
        self._pos = 0
        self.reads = 0
        self.closed = False

    def open(self) -> None:
        self._is_open = True
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        self.reads += 1
        if not self._is_open or self._pos >= len(self._script):
            return None
        frame = self._script[self._pos]
        self._pos += 1
        if frame is None:
            return None
        self._frame_index += 1
        return FrameData(
            frame=frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class FixedCountDetector:
    """Returns a preset number of boxes per call, cycling through counts."""

    def __init__(self, counts: List[int]):
        self._counts = list(counts)
        self._calls = 0

    def detect(self, frame):
        n = self._counts[self._calls % len(self._counts)]
        self._calls += 1
        return DetectionResult(
            boxes=tuple(BoundingBox(x=10 * i, y=10, width=64, height=128) for i in range(n))
        )


class RecordingPublisher:
    """Publisher double that records counts instead of sending them."""

    def __init__(self):
        self.counts: List[int] = []
        self.closed = False

    def publish(self, count: int) -> None:
        self.counts.append(count)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def blank_gray_frame():
    """Single-channel frame with no structure in it."""
    return np.zeros((160, 128), dtype=np.uint8)


@pytest.fixture
def blank_bgr_frame():
    return np.zeros((160, 128, 3), dtype=np.uint8)


@pytest.fixture
def recording_publisher():
    return RecordingPublisher()


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
log_level: "INFO"
display: false

camera:
  empty_read_delay: 0.001

telemetry:
  client_id: ""
  dispatch_workers: 4
""")

    return config_dir
