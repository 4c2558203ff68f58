"""
OpenCV-based observation source for local cameras.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2

from models.frame import FrameData
from .base import CameraUnavailable, ObservationConfig, ObservationSource


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for an OpenCV camera.

    Attributes:
        camera_index: cv2.VideoCapture device index.
    """
    camera_index: int = 0

    @classmethod
    def from_pipeline_config(cls, pipeline_cfg) -> "OpenCVSourceConfig":
        """Adapter: Create from a resolved PipelineConfig."""
        return cls(
            source_id=f"camera-{pipeline_cfg.camera_index}",
            resolution=pipeline_cfg.resolution,
            camera_index=pipeline_cfg.camera_index,
        )


class OpenCVSource(ObservationSource):
    """
    Wraps cv2.VideoCapture and returns frames as FrameData.

    Opening fails fast: there is no retry, since nothing useful can happen
    without a camera. Empty reads are passed up as None.

    Example:
        config = OpenCVSourceConfig(camera_index=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def camera_index(self) -> int:
        return self._opencv_config.camera_index

    def open(self) -> None:
        """Open the camera and apply the requested resolution."""
        if self._is_open:
            return

        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailable(f"Unable to open camera {self.camera_index}")

        self._cap = cap
        self._is_open = True
        self._frame_index = 0

        if self._opencv_config.resolution:
            self.configure(*self._opencv_config.resolution)

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"camera={self.camera_index}, resolution={self._opencv_config.resolution}"
        )

    def configure(self, width: int, height: int) -> None:
        """Request a capture resolution. The driver may pick the nearest mode."""
        if self._cap is None:
            raise RuntimeError("Source must be open before configuring")

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))

        actual_w = self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        actual_h = self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        if (actual_w, actual_h) != (width, height):
            logging.warning(
                f"Camera resolution requested {width}x{height}, got {actual_w:.0f}x{actual_h:.0f}"
            )
        else:
            logging.debug(f"Camera resolution set to {width}x{height}")

    def read(self) -> Optional[FrameData]:
        """Read the next frame, or None if the camera had nothing to give."""
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None or frame.size == 0:
            return None

        self._frame_index += 1
        return FrameData(
            frame=frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        """Release the camera handle."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False
