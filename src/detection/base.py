"""
Detection interface.

Detectors take a raw frame and return a DetectionResult with boxes in the
original frame's pixel coordinates.
"""

from __future__ import annotations

import numpy as np

from models.detection import DetectionResult


class Detector:
    """Detector interface returning boxes in pixel space."""

    def detect(self, frame: np.ndarray) -> DetectionResult:
        raise NotImplementedError
