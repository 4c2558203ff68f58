"""
HOG people detector adapter.

Wraps OpenCV's pretrained HOG + linear SVM people detector. The detection
parameters are fixed so that counts stay reproducible across deployments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from models.detection import DetectionResult
from .base import Detector


@dataclass(frozen=True)
class HogParameters:
    """
    Arguments to HOGDescriptor.detectMultiScale.

    Attributes:
        hit_threshold: SVM decision threshold for a window to count as a hit.
        win_stride: Sliding window step (x, y).
        padding: Padding added around the image (x, y).
        scale: Image pyramid scale factor between levels.
        group_threshold: Overlap grouping factor for rectangle grouping.
        use_meanshift_grouping: Merge overlapping boxes with mean shift.
    """
    hit_threshold: float = 0.88
    win_stride: Tuple[int, int] = (8, 8)
    padding: Tuple[int, int] = (26, 26)
    scale: float = 1.03
    group_threshold: float = 2.0
    use_meanshift_grouping: bool = False


DEFAULT_HOG_PARAMETERS = HogParameters()


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR/BGRA frame to single-channel intensity."""
    if frame.ndim == 2:
        return frame
    channels = frame.shape[2]
    if channels == 1:
        return frame[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class HogPeopleDetector(Detector):
    """
    People detector backed by cv2.HOGDescriptor.

    Boxes come back exactly as the descriptor reports them: no suppression,
    merging or filtering is applied on top.
    """

    def __init__(self, hog: Optional[cv2.HOGDescriptor] = None) -> None:
        if hog is None:
            hog = cv2.HOGDescriptor()
            hog.setSVMDetector(cv2.HOGDescriptor.getDefaultPeopleDetector())
        self._hog = hog
        self._params = DEFAULT_HOG_PARAMETERS
        logging.info(f"HOG people detector initialized: {self._params}")

    @property
    def parameters(self) -> HogParameters:
        return self._params

    def detect(self, frame: np.ndarray) -> DetectionResult:
        gray = to_grayscale(frame)
        p = self._params
        rects, _weights = self._hog.detectMultiScale(
            gray,
            p.hit_threshold,
            p.win_stride,
            p.padding,
            p.scale,
            p.group_threshold,
            p.use_meanshift_grouping,
        )
        return DetectionResult.from_rects(rects)
