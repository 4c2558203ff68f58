"""
ObservationSource interface for frame sources.

The pipeline only needs three things from a source: open it once, pull
frames on demand, and release it at shutdown. Anything that can do that
(a USB camera, a CSI camera, a test double) implements this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from models.frame import FrameData


class CameraUnavailable(RuntimeError):
    """Raised when a frame source cannot be opened."""


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Identifier for this source (e.g., "camera-2").
        resolution: Requested resolution as (width, height). None = driver default.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to acquire the device
        3. Call read() repeatedly to get frames
        4. Call close() to release it

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        """Identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device.

        Raises:
            CameraUnavailable: If the source cannot be opened. Callers treat
                this as fatal; sources do not retry.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Read the next frame.

        Returns:
            FrameData for the captured frame, or None when no frame is
            available right now. None is not an error; callers back off
            and read again.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release the device. Safe to call multiple times.
        """
        pass

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
