"""
Observation layer: where frames come from.

The pipeline reads FrameData from an ObservationSource and never touches
the capture device directly.
"""

from .base import CameraUnavailable, ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "CameraUnavailable",
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
]
