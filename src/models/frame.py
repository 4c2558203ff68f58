"""
Captured frame record passed from a source to the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class FrameData:
    """
    One frame as read from a camera.

    Attributes:
        frame: Pixel buffer (BGR, BGRA or 2-D grayscale).
        timestamp: Unix time of the read.
        frame_index: 1-based count of non-empty reads since open.
        source: Id of the source that produced it.
    """
    frame: np.ndarray
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None
